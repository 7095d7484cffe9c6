# src/subscription/services.py
import logging
from datetime import datetime, time, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from notification.services import PushService, build_message, is_valid_push_token
from subscription.models import ACTIVE, EXPIRED, GRACE_PERIOD, Subscription, SubscriptionReminder
from user.models import User

logger = logging.getLogger(__name__)

EXPIRING_7_DAYS = "expiring_7_days"
EXPIRING_3_DAYS = "expiring_3_days"
EXPIRING_1_DAY = "expiring_1_day"
GRACE_PERIOD_START = "grace_period_start"
GRACE_PERIOD_DAY_2 = "grace_period_day_2"
GRACE_PERIOD_FINAL = "grace_period_final"
REMINDER_EXPIRED = "expired"

# (days before current_period_end, reminder type, title)
REMINDER_SCHEDULE = [
    (7, EXPIRING_7_DAYS, "Subscription Reminder"),
    (3, EXPIRING_3_DAYS, "Expiring Soon!"),
    (1, EXPIRING_1_DAY, "Last Day to Renew!"),
]

# Keyed by whole days elapsed since current_period_end. Day 0 is the grace transition itself.
GRACE_REMINDERS = {
    1: (GRACE_PERIOD_DAY_2, "2 Days Left in Grace Period"),
    2: (GRACE_PERIOD_FINAL, "Final Day - Act Now!"),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _display_name(user: Optional[User]) -> str:
    return (user.full_name if user is not None else None) or "there"


def expiring_body(days: int, name: str) -> str:
    if days == 7:
        return f"Hi {name}! Your Premium subscription expires in 7 days. Renew now to keep unlimited access."
    if days == 3:
        return f"Hi {name}! Only 3 days left on your Premium subscription. Don't lose your unlimited access!"
    return f"Hi {name}! Your Premium subscription expires tomorrow. Renew now to avoid interruption!"


def grace_body(reminder_type: str, name: str) -> str:
    if reminder_type == GRACE_PERIOD_START:
        return (f"Hi {name}! Your Premium subscription has expired. "
                f"You have {settings.GRACE_PERIOD_DAYS} days to renew before losing access.")
    if reminder_type == GRACE_PERIOD_DAY_2:
        return f"Hi {name}! Only 2 days left to renew your Premium subscription. Don't lose your features!"
    if reminder_type == GRACE_PERIOD_FINAL:
        return f"Hi {name}! This is your last day to renew. Your Premium access ends tonight!"
    return f"Hi {name}! Your Premium subscription has ended. Upgrade again to restore full access."


class SubscriptionLifecycleService:
    """Moves subscriptions through active -> grace_period -> expired and sends the matching reminders.

    Every reminder is guarded by the subscription_reminders log: a type already logged
    for a subscription is never sent again, however often the job runs.
    """

    def __init__(self, push_service: Optional[PushService] = None):
        self.push_service = push_service or PushService()

    @staticmethod
    def reminder_already_sent(subscription_id: str, reminder_type: str, db: Session) -> bool:
        return db.query(SubscriptionReminder.id).filter(
            SubscriptionReminder.subscription_id == subscription_id,
            SubscriptionReminder.reminder_type == reminder_type
        ).first() is not None

    def record_reminder(self, subscription: Subscription, reminder_type: str, now: datetime, db: Session) -> bool:
        """Append the log row for this reminder. Returns False when it was logged before."""
        if self.reminder_already_sent(subscription.id, reminder_type, db):
            return False
        try:
            with db.begin_nested():
                db.add(SubscriptionReminder(
                    subscription_id=subscription.id,
                    user_id=subscription.user_id,
                    reminder_type=reminder_type,
                    channel="push",
                    sent_at=now
                ))
        except IntegrityError:
            # Another run logged it between our check and insert.
            logger.info(f"Reminder {reminder_type} for subscription {subscription.id} already recorded")
            return False
        return True

    def check_subscriptions(self, db: Session, now: Optional[datetime] = None) -> Dict:
        """Run one lifecycle pass: grace transitions, grace reminders, expirations."""
        now = now or _utcnow()
        moved_to_grace = self._move_to_grace_period(db, now)
        self._send_grace_period_reminders(db, now)
        moved_to_expired = self._expire_grace_periods(db, now)
        return {
            "success": True,
            "moved_to_grace": moved_to_grace,
            "moved_to_expired": moved_to_expired,
        }

    def _move_to_grace_period(self, db: Session, now: datetime) -> int:
        expired_active = db.query(Subscription).filter(
            Subscription.status == ACTIVE,
            Subscription.current_period_end < now
        ).all()
        logger.info(f"Found {len(expired_active)} subscriptions to move to grace period")

        grace_period_end = now + timedelta(days=settings.GRACE_PERIOD_DAYS)
        messages: List[Dict] = []
        moved = 0
        for sub in expired_active:
            try:
                sub.status = GRACE_PERIOD
                sub.grace_period_end = grace_period_end
                sub.last_reminder_type = GRACE_PERIOD_START
                sub.updated_at = now
                user = sub.user
                if user is not None:
                    user.subscription_status = GRACE_PERIOD
                    user.updated_at = now
                logged = self.record_reminder(sub, GRACE_PERIOD_START, now, db)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to move subscription {sub.id} to grace period: {str(e)}")
                continue
            moved += 1
            if logged and user is not None and is_valid_push_token(user.push_token):
                messages.append(build_message(
                    user.push_token, "Subscription Expired", grace_body(GRACE_PERIOD_START, _display_name(user))
                ))

        if messages:
            self.push_service.send(messages)
            logger.info(f"Sent {len(messages)} grace period start notifications")
        return moved

    def _send_grace_period_reminders(self, db: Session, now: datetime) -> int:
        try:
            in_grace = db.query(Subscription).filter(Subscription.status == GRACE_PERIOD).all()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error fetching grace period subscriptions: {str(e)}")
            return 0

        messages: List[Dict] = []
        for sub in in_grace:
            days_since_expiry = (now - sub.current_period_end) // timedelta(days=1)
            reminder = GRACE_REMINDERS.get(days_since_expiry)
            if reminder is None:
                continue
            reminder_type, title = reminder
            try:
                if not self.record_reminder(sub, reminder_type, now, db):
                    continue
                sub.last_reminder_type = reminder_type
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to record {reminder_type} for subscription {sub.id}: {str(e)}")
                continue
            user = sub.user
            if user is not None and is_valid_push_token(user.push_token):
                messages.append(build_message(user.push_token, title, grace_body(reminder_type, _display_name(user))))
                logger.info(f"Queued {reminder_type} notification for user {sub.user_id}")

        if messages:
            self.push_service.send(messages)
        return len(messages)

    def _expire_grace_periods(self, db: Session, now: datetime) -> int:
        expired_grace = db.query(Subscription).filter(
            Subscription.status == GRACE_PERIOD,
            Subscription.grace_period_end < now
        ).all()
        logger.info(f"Found {len(expired_grace)} subscriptions to expire")

        messages: List[Dict] = []
        moved = 0
        for sub in expired_grace:
            try:
                sub.status = EXPIRED
                sub.last_reminder_type = REMINDER_EXPIRED
                sub.updated_at = now
                user = sub.user
                if user is not None:
                    user.subscription_status = EXPIRED
                    user.property_limit = settings.FREE_PROPERTY_LIMIT
                    user.updated_at = now
                logged = self.record_reminder(sub, REMINDER_EXPIRED, now, db)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to expire subscription {sub.id}: {str(e)}")
                continue
            moved += 1
            if logged and user is not None and is_valid_push_token(user.push_token):
                messages.append(build_message(
                    user.push_token, "Subscription Ended", grace_body(REMINDER_EXPIRED, _display_name(user))
                ))

        if messages:
            self.push_service.send(messages)
            logger.info(f"Sent {len(messages)} expiration notifications")
        return moved

    def send_payment_reminders(self, db: Session, now: Optional[datetime] = None) -> Dict:
        """Send the 7/3/1-day pre-expiry ladder to active subscriptions, once per type."""
        now = now or _utcnow()
        total_sent = 0
        by_type: Dict[str, int] = {}

        for days, reminder_type, title in REMINDER_SCHEDULE:
            day_start = datetime.combine((now + timedelta(days=days)).date(), time.min)
            day_end = day_start + timedelta(days=1)
            try:
                subscriptions = db.query(Subscription).filter(
                    Subscription.status == ACTIVE,
                    Subscription.current_period_end >= day_start,
                    Subscription.current_period_end < day_end
                ).all()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Error fetching subscriptions for {reminder_type}: {str(e)}")
                continue
            logger.info(f"Found {len(subscriptions)} subscriptions expiring in {days} days")

            messages: List[Dict] = []
            for sub in subscriptions:
                user = sub.user
                if user is None or not is_valid_push_token(user.push_token):
                    continue
                try:
                    if not self.record_reminder(sub, reminder_type, now, db):
                        continue
                    sub.last_reminder_type = reminder_type
                    sub.reminder_sent_at = now
                    db.commit()
                except SQLAlchemyError as e:
                    db.rollback()
                    logger.error(f"Failed to record {reminder_type} for subscription {sub.id}: {str(e)}")
                    continue
                messages.append(build_message(user.push_token, title, expiring_body(days, _display_name(user))))

            if messages:
                self.push_service.send(messages)
                logger.info(f"Sent {len(messages)} {reminder_type} notifications")
                total_sent += len(messages)
                by_type[reminder_type] = len(messages)

        return {
            "success": True,
            "total_reminders_sent": total_sent,
            "by_type": by_type,
        }
