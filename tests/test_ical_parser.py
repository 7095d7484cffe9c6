from datetime import date

from ical.parser import expand_dates, parse_ical_feed


def feed(*events: str) -> str:
    body = "\r\n".join(events)
    return f"BEGIN:VCALENDAR\r\nVERSION:2.0\r\nPRODID:-//Airbnb Inc//Hosting Calendar//EN\r\n{body}\r\nEND:VCALENDAR\r\n"


def test_all_day_event():
    events = parse_ical_feed(feed(
        "BEGIN:VEVENT",
        "UID:abc",
        "DTSTART;VALUE=DATE:20260101",
        "DTEND;VALUE=DATE:20260104",
        "SUMMARY:Reserved",
        "END:VEVENT",
    ))

    assert len(events) == 1
    event = events[0]
    assert event.uid == "abc"
    assert event.start == date(2026, 1, 1)
    assert event.end == date(2026, 1, 4)
    assert event.summary == "Reserved"


def test_missing_dtend_means_one_day():
    events = parse_ical_feed(feed("BEGIN:VEVENT", "UID:one-day", "DTSTART;VALUE=DATE:20260210", "END:VEVENT"))

    assert events[0].end == date(2026, 2, 11)
    assert events[0].summary is None


def test_time_of_day_is_ignored():
    events = parse_ical_feed(feed(
        "BEGIN:VEVENT",
        "UID:timed",
        "DTSTART:20260305T140000Z",
        "DTEND:20260307T100000Z",
        "END:VEVENT",
    ))

    assert (events[0].start, events[0].end) == (date(2026, 3, 5), date(2026, 3, 7))


def test_folded_lines_are_unfolded():
    events = parse_ical_feed(feed(
        "BEGIN:VEVENT",
        "UID:1418fb94e984-7ba66d5ad5e1a4b1c5c6b1a1@air",
        " bnb.com",
        "DTSTART;VALUE=DATE:20260401",
        "DTEND;VALUE=DATE:20260402",
        "SUMMARY:Airbnb (Not",
        "\t available)",
        "END:VEVENT",
    ))

    assert events[0].uid == "1418fb94e984-7ba66d5ad5e1a4b1c5c6b1a1@airbnb.com"
    assert events[0].summary == "Airbnb (Not available)"


def test_events_without_uid_or_start_are_dropped():
    events = parse_ical_feed(feed(
        "BEGIN:VEVENT",
        "DTSTART;VALUE=DATE:20260101",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:no-start",
        "SUMMARY:Nothing",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:kept",
        "DTSTART;VALUE=DATE:20260102",
        "END:VEVENT",
    ))

    assert [e.uid for e in events] == ["kept"]


def test_empty_calendar():
    assert parse_ical_feed(feed("X-WR-CALNAME:Listing")) == []


def test_expand_dates_excludes_end():
    assert expand_dates(date(2026, 1, 30), date(2026, 2, 2)) == [
        date(2026, 1, 30), date(2026, 1, 31), date(2026, 2, 1)
    ]
    assert expand_dates(date(2026, 1, 5), date(2026, 1, 5)) == []
