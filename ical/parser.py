# src/ical/parser.py
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from icalendar import Calendar

from ical.schemas import ParsedEvent

logger = logging.getLogger(__name__)


def _as_date(prop) -> Optional[date]:
    """Keep only the calendar date of a DTSTART/DTEND value."""
    value = getattr(prop, "dt", None)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def parse_ical_feed(ical_text: str) -> List[ParsedEvent]:
    """Extract all-day spans from a VCALENDAR document.

    Folded lines are unfolded by the parser. Events without UID or DTSTART cannot be
    reconciled on the next sync and are dropped. A missing DTEND means a single day.
    """
    calendar = Calendar.from_ical(ical_text)
    events: List[ParsedEvent] = []
    for component in calendar.walk("VEVENT"):
        try:
            uid = str(component.get("uid") or "").strip()
            start = _as_date(component.get("dtstart"))
            end = _as_date(component.get("dtend"))
        except (ValueError, TypeError) as e:
            logger.info(f"SKIP: unreadable VEVENT: {str(e)}")
            continue
        if not uid or start is None:
            logger.info(f"SKIP: VEVENT without UID or DTSTART (uid={uid!r})")
            continue
        if end is None:
            end = start + timedelta(days=1)
        summary = component.get("summary")
        summary = str(summary).strip() if summary is not None else None
        events.append(ParsedEvent(uid=uid, start=start, end=end, summary=summary or None))
    return events


def expand_dates(start: date, end: date) -> List[date]:
    """Every day in [start, end)."""
    days = []
    current = start
    while current < end:
        days.append(current)
        current += timedelta(days=1)
    return days
