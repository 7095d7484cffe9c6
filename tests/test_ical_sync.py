import asyncio
from datetime import date

from sqlalchemy.exc import OperationalError

import ical.services
from config import settings
from conftest import FakeResponse
from ical.models import LockedDate
from ical.services import FeedFetchError, IcalSyncService

AIRBNB_URL = "https://calendar.example.com/airbnb.ics"
BOOKING_URL = "https://calendar.example.com/booking.ics"


def vevent(uid, start, end=None, summary="Reserved"):
    lines = ["BEGIN:VEVENT", f"UID:{uid}", f"DTSTART;VALUE=DATE:{start}"]
    if end:
        lines.append(f"DTEND;VALUE=DATE:{end}")
    if summary:
        lines.append(f"SUMMARY:{summary}")
    lines.append("END:VEVENT")
    return "\r\n".join(lines)


def calendar(*events):
    return "\r\n".join(["BEGIN:VCALENDAR", "VERSION:2.0", *events, "END:VCALENDAR"]) + "\r\n"


class StaticFeedSession:
    """Serves canned feeds by URL."""

    def __init__(self, feeds):
        self.feeds = feeds
        self.requests = []

    def get(self, url, headers=None, timeout=None):
        self.requests.append({"url": url, "headers": headers, "timeout": timeout})
        feed = self.feeds[url]
        if isinstance(feed, FakeResponse):
            return feed
        return FakeResponse(text=feed)


def external_locks(db, subscription_id):
    return db.query(LockedDate).filter(
        LockedDate.subscription_id == subscription_id,
        LockedDate.source == "external"
    ).order_by(LockedDate.date).all()


def test_three_night_event_locks_three_dates(db, make_ical_subscription):
    sub = make_ical_subscription()
    session = StaticFeedSession({AIRBNB_URL: calendar(vevent("abc", "20260101", "20260104"))})

    result = IcalSyncService(session).sync_subscription(sub, db)

    locks = external_locks(db, sub.id)
    assert [lock.date for lock in locks] == [date(2026, 1, 1), date(2026, 1, 2), date(2026, 1, 3)]
    assert {lock.external_uid for lock in locks} == {"abc"}
    assert {lock.source_name for lock in locks} == {"airbnb"}
    assert {lock.reason for lock in locks} == {"Reserved"}
    assert result.success is True
    assert (result.eventsFound, result.datesUpserted, result.datesRemoved) == (1, 3, 0)
    db.refresh(sub)
    assert sub.last_sync_status == "success"
    assert sub.last_error_message is None
    assert sub.last_synced_at is not None


def test_fetch_sends_user_agent():
    session = StaticFeedSession({AIRBNB_URL: calendar()})

    IcalSyncService(session).fetch_feed(AIRBNB_URL)

    headers = session.requests[0]["headers"]
    assert headers["User-Agent"] == settings.ICAL_USER_AGENT
    assert headers["Accept"] == "text/calendar"


def test_unchanged_feed_is_idempotent(db, make_ical_subscription):
    sub = make_ical_subscription()
    session = StaticFeedSession({AIRBNB_URL: calendar(
        vevent("abc", "20260101", "20260104"),
        vevent("def", "20260110", "20260112"),
    )})
    service = IcalSyncService(session)

    service.sync_subscription(sub, db)
    before = [(lock.id, lock.date, lock.external_uid) for lock in external_locks(db, sub.id)]
    second = service.sync_subscription(sub, db)
    after = [(lock.id, lock.date, lock.external_uid) for lock in external_locks(db, sub.id)]

    assert second.datesRemoved == 0
    assert second.datesUpserted == 5
    assert after == before


def test_vanished_event_removes_only_its_dates(db, make_ical_subscription, add_manual_lock):
    sub = make_ical_subscription()
    manual = add_manual_lock(date(2026, 1, 11), reason="Owner stay")
    session = StaticFeedSession({AIRBNB_URL: calendar(
        vevent("abc", "20260101", "20260104"),
        vevent("def", "20260110", "20260112"),
    )})
    service = IcalSyncService(session)
    service.sync_subscription(sub, db)

    session.feeds[AIRBNB_URL] = calendar(vevent("abc", "20260101", "20260104"))
    result = service.sync_subscription(sub, db)

    assert result.datesRemoved == 2
    locks = external_locks(db, sub.id)
    assert [lock.date for lock in locks] == [date(2026, 1, 1), date(2026, 1, 2), date(2026, 1, 3)]
    assert db.query(LockedDate).filter(LockedDate.id == manual.id).count() == 1


def test_moved_event_keeps_uid_and_drops_uncovered_days(db, make_ical_subscription):
    sub = make_ical_subscription()
    session = StaticFeedSession({AIRBNB_URL: calendar(vevent("abc", "20260101", "20260104"))})
    service = IcalSyncService(session)
    service.sync_subscription(sub, db)

    session.feeds[AIRBNB_URL] = calendar(vevent("abc", "20260102", "20260106"))
    result = service.sync_subscription(sub, db)

    locks = external_locks(db, sub.id)
    assert [lock.date for lock in locks] == [date(2026, 1, 2), date(2026, 1, 3), date(2026, 1, 4), date(2026, 1, 5)]
    assert {lock.external_uid for lock in locks} == {"abc"}
    assert result.datesRemoved == 1


def test_empty_feed_clears_previous_locks(db, make_ical_subscription):
    sub = make_ical_subscription()
    session = StaticFeedSession({AIRBNB_URL: calendar(vevent("abc", "20260101", "20260104"))})
    service = IcalSyncService(session)
    service.sync_subscription(sub, db)

    session.feeds[AIRBNB_URL] = calendar()
    result = service.sync_subscription(sub, db)

    assert result.success is True
    assert result.eventsFound == 0
    assert result.datesRemoved == 3
    assert external_locks(db, sub.id) == []


def test_two_feeds_may_lock_the_same_date(db, make_ical_subscription):
    airbnb = make_ical_subscription(feed_url=AIRBNB_URL, source_name="airbnb")
    booking = make_ical_subscription(feed_url=BOOKING_URL, source_name="booking")
    session = StaticFeedSession({
        AIRBNB_URL: calendar(vevent("air-1", "20260301", "20260303")),
        BOOKING_URL: calendar(vevent("bk-1", "20260302", "20260304")),
    })

    response = IcalSyncService(session).sync_feeds(db)

    assert (response["synced"], response["failed"]) == (2, 0)
    assert [lock.date for lock in external_locks(db, airbnb.id)] == [date(2026, 3, 1), date(2026, 3, 2)]
    assert [lock.date for lock in external_locks(db, booking.id)] == [date(2026, 3, 2), date(2026, 3, 3)]


def test_failed_feed_does_not_block_others(db, make_ical_subscription):
    broken = make_ical_subscription(feed_url=AIRBNB_URL, source_name="airbnb")
    healthy = make_ical_subscription(feed_url=BOOKING_URL, source_name="booking")
    session = StaticFeedSession({
        AIRBNB_URL: FakeResponse(status_code=503, reason="Service Unavailable"),
        BOOKING_URL: calendar(vevent("bk-1", "20260302", "20260304")),
    })

    response = IcalSyncService(session).sync_feeds(db)

    assert response["success"] is True
    assert (response["synced"], response["failed"]) == (1, 1)
    by_id = {r["subscriptionId"]: r for r in response["results"]}
    assert by_id[broken.id]["success"] is False
    assert by_id[broken.id]["error"] == "HTTP 503: Service Unavailable"
    assert by_id[broken.id]["sourceName"] == "airbnb"
    assert by_id[healthy.id]["datesUpserted"] == 2
    assert "error" not in by_id[healthy.id]
    db.refresh(broken)
    assert broken.last_sync_status == "error"
    assert broken.last_error_message == "HTTP 503: Service Unavailable"


def test_non_2xx_raises_fetch_error():
    session = StaticFeedSession({AIRBNB_URL: FakeResponse(status_code=404, reason="Not Found")})

    try:
        IcalSyncService(session).fetch_feed(AIRBNB_URL)
    except FeedFetchError as e:
        assert str(e) == "HTTP 404: Not Found"
    else:
        raise AssertionError("expected FeedFetchError")


def test_failed_batch_falls_back_to_single_rows(db, make_ical_subscription, monkeypatch):
    monkeypatch.setattr(settings, "ICAL_UPSERT_BATCH_SIZE", 2)
    real_upsert = ical.services.upsert
    bad_day = date(2026, 5, 2)

    def flaky_upsert(session, model, rows, conflict_columns):
        if any(row["date"] == bad_day for row in rows):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        return real_upsert(session, model, rows, conflict_columns)

    monkeypatch.setattr(ical.services, "upsert", flaky_upsert)
    sub = make_ical_subscription()
    session = StaticFeedSession({AIRBNB_URL: calendar(vevent("may", "20260501", "20260505"))})

    result = IcalSyncService(session).sync_subscription(sub, db)

    assert result.success is True
    assert result.datesUpserted == 3
    assert result.datesFailed == 1
    assert [lock.date for lock in external_locks(db, sub.id)] == [date(2026, 5, 1), date(2026, 5, 3), date(2026, 5, 4)]


def test_inactive_subscriptions_are_skipped(db, make_ical_subscription):
    make_ical_subscription(is_active=False)

    response = IcalSyncService(StaticFeedSession({})).sync_feeds(db)

    assert response == {
        "success": True,
        "synced": 0,
        "failed": 0,
        "message": "No active subscriptions to sync",
        "results": [],
    }


def test_sync_route_single_subscription(client, db, make_ical_subscription, monkeypatch):
    target = make_ical_subscription(feed_url=AIRBNB_URL)
    other = make_ical_subscription(feed_url=BOOKING_URL)
    feeds = {AIRBNB_URL: calendar(vevent("abc", "20260101", "20260104"))}
    monkeypatch.setattr(IcalSyncService, "fetch_feed", lambda self, url: feeds[url])

    response = client.post("/ical/sync", json={"subscriptionId": target.id})

    assert response.status_code == 200
    body = response.json()
    assert (body["synced"], body["failed"]) == (1, 0)
    assert body["results"][0]["subscriptionId"] == target.id
    assert body["results"][0]["datesUpserted"] == 3
    assert external_locks(db, other.id) == []


def test_sync_route_without_body_syncs_all(client, make_ical_subscription, monkeypatch):
    make_ical_subscription(feed_url=AIRBNB_URL)
    make_ical_subscription(feed_url=BOOKING_URL)
    monkeypatch.setattr(IcalSyncService, "fetch_feed", lambda self, url: calendar())

    response = client.post("/ical/sync")

    assert response.status_code == 200
    assert response.json()["synced"] == 2


def test_sync_route_fetches_off_the_event_loop(client, make_ical_subscription, monkeypatch):
    make_ical_subscription(feed_url=AIRBNB_URL)
    seen = []

    def fetch_feed(self, url):
        try:
            asyncio.get_running_loop()
            seen.append("event loop")
        except RuntimeError:
            seen.append("worker thread")
        return calendar()

    monkeypatch.setattr(IcalSyncService, "fetch_feed", fetch_feed)

    response = client.post("/ical/sync")

    assert response.status_code == 200
    assert seen == ["worker thread"]
