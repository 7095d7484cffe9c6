# src/sharing/services.py
import calendar
import logging
from datetime import date, datetime, timezone
from typing import Dict, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from ical.models import LockedDate
from rental.models import INACTIVE_RESERVATION_STATUSES, Property, Reservation
from sharing.models import CalendarShareToken
from subscription.models import ACTIVE, GRACE_PERIOD, Subscription
from user.models import User

logger = logging.getLogger(__name__)

UNLIMITED = -1


class SharedCalendarError(Exception):
    """A rejected shared calendar read, with the HTTP status and JSON fields to answer with."""

    def __init__(self, status_code: int, error: str, limit: Optional[int] = None, is_paid: Optional[bool] = None):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.limit = limit
        self.is_paid = is_paid

    def to_dict(self) -> Dict:
        body = {"error": self.error}
        if self.limit is not None:
            body["limit"] = self.limit
        if self.is_paid is not None:
            body["isPaid"] = self.is_paid
        return body


def month_offset(year: int, month: int, today: date) -> int:
    return (year - today.year) * 12 + (month - today.month)


class SharedCalendarService:
    @staticmethod
    def validate_token(token: str, db: Session, now: datetime) -> CalendarShareToken:
        share_token = db.query(CalendarShareToken).filter(CalendarShareToken.token == token).first()
        if not share_token:
            raise SharedCalendarError(404, "Invalid or expired share link")
        if not share_token.is_active:
            raise SharedCalendarError(403, "This share link has been deactivated")
        if share_token.expires_at is not None and share_token.expires_at < now:
            raise SharedCalendarError(403, "This share link has expired")
        return share_token

    @staticmethod
    def resolve_calendar_months_limit(user_id: str, db: Session) -> Tuple[int, bool]:
        """Return (months visible either side of today, owner has a paid subscription).

        Priority: per-user override, then the plan of the active or grace period
        subscription, then the free tier. -1 means unlimited.
        """
        subscription = db.query(Subscription).filter(
            Subscription.user_id == user_id,
            Subscription.status.in_((ACTIVE, GRACE_PERIOD))
        ).order_by(Subscription.current_period_end.desc()).first()
        is_paid = subscription is not None

        user = db.query(User).filter(User.id == user_id).first()
        if user is not None and user.calendar_months_override is not None:
            override = user.calendar_months_override
            return (UNLIMITED if override < 0 else override), is_paid

        if subscription is not None and subscription.plan is not None:
            plan_limit = subscription.plan.calendar_months_limit
            if plan_limit is None or plan_limit < 0:
                return UNLIMITED, is_paid
            return plan_limit, is_paid

        return settings.FREE_CALENDAR_MONTHS, is_paid

    @staticmethod
    def get_shared_calendar(token: str, year: int, month: int, db: Session,
                            now: Optional[datetime] = None) -> Dict:
        """Calendar data for one month of a shared property, within the owner's plan window."""
        now = now or datetime.now(timezone.utc).replace(tzinfo=None)
        share_token = SharedCalendarService.validate_token(token, db, now)

        prop = db.query(Property).filter(Property.id == share_token.property_id).first()
        if not prop:
            raise SharedCalendarError(404, "Property not found")

        limit, is_paid = SharedCalendarService.resolve_calendar_months_limit(share_token.user_id, db)
        offset = month_offset(year, month, now.date())
        if limit != UNLIMITED and abs(offset) > limit:
            raise SharedCalendarError(403, "Month not accessible", limit=limit, is_paid=is_paid)

        first_day = date(year, month, 1)
        last_day = date(year, month, calendar.monthrange(year, month)[1])

        reservations = db.query(Reservation).filter(
            Reservation.property_id == prop.id,
            Reservation.status.notin_(INACTIVE_RESERVATION_STATUSES),
            Reservation.check_in <= last_day,
            Reservation.check_out > first_day
        ).order_by(Reservation.check_in).all()
        locked_dates = db.query(LockedDate).filter(
            LockedDate.property_id == prop.id,
            LockedDate.date >= first_day,
            LockedDate.date <= last_day
        ).order_by(LockedDate.date).all()

        SharedCalendarService.record_view(share_token, now, db)

        return {
            "property": {
                "id": prop.id,
                "name": prop.name,
                "city": prop.city,
                "province": prop.province,
            },
            "reservations": [
                {
                    "id": r.id,
                    "check_in": r.check_in.isoformat(),
                    "check_out": r.check_out.isoformat(),
                    "status": r.status,
                }
                for r in reservations
            ],
            "lockedDates": [{"id": lock.id, "date": lock.date.isoformat()} for lock in locked_dates],
            "calendarMonthsLimit": limit,
            "isPaid": is_paid,
            "currentYear": now.year,
            "currentMonth": now.month,
        }

    @staticmethod
    def record_view(share_token: CalendarShareToken, now: datetime, db: Session) -> None:
        """Bump the view counter; a failure here never fails the read."""
        try:
            share_token.view_count = (share_token.view_count or 0) + 1
            share_token.last_viewed_at = now
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Could not record view for share token {share_token.id}: {str(e)}")
