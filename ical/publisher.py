# src/ical/publisher.py
import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple

from icalendar import Calendar, Event, vText
from sqlalchemy.orm import Session

from config import settings
from ical.models import SOURCE_MANUAL, IcalFeedToken, LockedDate
from rental.models import INACTIVE_RESERVATION_STATUSES, Property, Reservation

logger = logging.getLogger(__name__)

DEFAULT_LOCK_REASON = "Blocked"


class FeedTokenError(Exception):
    """The feed token cannot be served; carries the HTTP status to answer with."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def group_locked_dates(locked_dates) -> List[Tuple[date, date, str]]:
    """Collapse runs of consecutive days with the same reason into (first_day, last_day, reason)."""
    ordered = sorted(locked_dates, key=lambda lock: lock.date)
    groups: List[Tuple[date, date, str]] = []
    for lock in ordered:
        reason = lock.reason or DEFAULT_LOCK_REASON
        if groups:
            first_day, last_day, group_reason = groups[-1]
            if lock.date - last_day == timedelta(days=1) and reason == group_reason:
                groups[-1] = (first_day, lock.date, group_reason)
                continue
        groups.append((lock.date, lock.date, reason))
    return groups


def _busy_event(uid: str, start: date, end: date, summary: str, dtstamp: datetime) -> Event:
    event = Event()
    event.add("uid", uid)
    event.add("dtstamp", dtstamp)
    event.add("dtstart", start)
    event.add("dtend", end)
    event.add("summary", vText(summary))
    event.add("status", "CONFIRMED")
    event.add("transp", "OPAQUE")
    return event


def render_property_calendar(property_name: str, reservations, locked_dates, generated_at: datetime) -> bytes:
    """Render reservations and manual locks as an all-day VCALENDAR.

    UIDs derive from the reservation id or the lock run's dates, so the same data and
    the same generated_at always give the same bytes.
    """
    dtstamp = generated_at.replace(tzinfo=timezone.utc) if generated_at.tzinfo is None else generated_at
    domain = settings.ICAL_UID_DOMAIN

    cal = Calendar()
    cal.add("prodid", settings.ICAL_PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")
    cal.add("x-wr-calname", vText(property_name))

    for reservation in sorted(reservations, key=lambda r: (r.check_in, r.id)):
        cal.add_component(_busy_event(
            f"reservation-{reservation.id}@{domain}",
            reservation.check_in,
            reservation.check_out,
            "Booked",
            dtstamp,
        ))

    for first_day, last_day, reason in group_locked_dates(locked_dates):
        end = last_day + timedelta(days=1)
        cal.add_component(_busy_event(
            f"locked-{first_day:%Y%m%d}-{end:%Y%m%d}@{domain}",
            first_day,
            end,
            reason,
            dtstamp,
        ))

    return cal.to_ical()


def feed_filename(property_name: str) -> str:
    return f"{re.sub(r'[^a-zA-Z0-9]', '_', property_name)}.ics"


class IcalFeedService:
    @staticmethod
    def resolve_token(token: str, db: Session, now: datetime) -> IcalFeedToken:
        feed_token = db.query(IcalFeedToken).filter(IcalFeedToken.token == token).first()
        if not feed_token:
            raise FeedTokenError(404, "Invalid token")
        if not feed_token.is_active:
            raise FeedTokenError(403, "This feed has been deactivated")
        if feed_token.expires_at is not None and feed_token.expires_at < now:
            raise FeedTokenError(403, "This feed has expired")
        return feed_token

    @staticmethod
    def build_feed(token: Optional[str], db: Session, now: Optional[datetime] = None) -> Tuple[str, bytes]:
        """Return (filename, ics body) for the property behind a feed token. Read-only."""
        if not token:
            raise FeedTokenError(400, "Missing token parameter")
        now = now or datetime.now(timezone.utc).replace(tzinfo=None)
        feed_token = IcalFeedService.resolve_token(token, db, now)

        prop = db.query(Property).filter(Property.id == feed_token.property_id).first()
        if not prop:
            raise FeedTokenError(404, "Property not found")

        reservations = db.query(Reservation).filter(
            Reservation.property_id == prop.id,
            Reservation.status.notin_(INACTIVE_RESERVATION_STATUSES)
        ).all()
        locked_dates = db.query(LockedDate).filter(
            LockedDate.property_id == prop.id,
            LockedDate.source == SOURCE_MANUAL
        ).all()
        logger.info(f"Publishing feed for property {prop.id}: {len(reservations)} reservations, "
                    f"{len(locked_dates)} manual locks")

        return feed_filename(prop.name), render_property_calendar(prop.name, reservations, locked_dates, now)
