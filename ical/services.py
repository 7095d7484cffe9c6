# src/ical/services.py
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from database import upsert
from ical.models import (
    LOCKED_DATE_CONFLICT_KEY, SOURCE_EXTERNAL, SYNC_ERROR, SYNC_SUCCESS, IcalSubscription, LockedDate
)
from ical.parser import expand_dates, parse_ical_feed
from ical.schemas import SyncResult

logger = logging.getLogger(__name__)


class FeedFetchError(Exception):
    """The external calendar server did not return the feed."""


class IcalSyncService:
    """Mirrors external iCal feeds into locked_dates, keyed by event UID."""

    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()

    def fetch_feed(self, feed_url: str) -> str:
        response = self.session.get(
            feed_url,
            headers={"User-Agent": settings.ICAL_USER_AGENT, "Accept": "text/calendar"},
            timeout=settings.ICAL_FETCH_TIMEOUT_SECONDS,
        )
        if not response.ok:
            raise FeedFetchError(f"HTTP {response.status_code}: {response.reason}")
        return response.text

    @staticmethod
    def build_rows(subscription: IcalSubscription, events) -> List[Dict]:
        """One locked_dates row per covered day. A day claimed by two events keeps the later one."""
        rows_by_date: Dict[date, Dict] = {}
        for event in events:
            for day in expand_dates(event.start, event.end):
                rows_by_date[day] = {
                    "id": str(uuid.uuid4()),
                    "property_id": subscription.property_id,
                    "user_id": subscription.user_id,
                    "date": day,
                    "reason": event.summary,
                    "source": SOURCE_EXTERNAL,
                    "source_name": subscription.source_name,
                    "external_uid": event.uid,
                    "subscription_id": subscription.id,
                }
        return [rows_by_date[day] for day in sorted(rows_by_date)]

    @staticmethod
    def remove_stale_locks(subscription: IcalSubscription, current_uids, current_dates, db: Session) -> int:
        """Delete this subscription's external locks that the feed no longer produces.

        A row goes when its UID left the feed, or when its date is no longer covered by any
        current event (a shortened or moved stay keeps its UID but gives up days). Rows
        without a UID are never produced by a sync, so they count as stale too.
        """
        existing = db.query(LockedDate.id, LockedDate.external_uid, LockedDate.date).filter(
            LockedDate.subscription_id == subscription.id,
            LockedDate.source == SOURCE_EXTERNAL
        ).all()
        stale_ids = [
            lock_id for lock_id, external_uid, day in existing
            if external_uid not in current_uids or day not in current_dates
        ]
        if stale_ids:
            db.query(LockedDate).filter(LockedDate.id.in_(stale_ids)).delete(synchronize_session=False)
            logger.info(f"Subscription {subscription.id}: removed {len(stale_ids)} stale locked dates")
        return len(stale_ids)

    @staticmethod
    def upsert_rows(subscription: IcalSubscription, rows: List[Dict], db: Session):
        """Upsert in batches; a failed batch is retried row by row so one bad row loses only itself."""
        upserted = 0
        failed_dates: List[date] = []
        batch_size = settings.ICAL_UPSERT_BATCH_SIZE
        for start in range(0, len(rows), batch_size):
            batch = rows[start:start + batch_size]
            try:
                with db.begin_nested():
                    upsert(db, LockedDate, batch, LOCKED_DATE_CONFLICT_KEY)
                upserted += len(batch)
                continue
            except SQLAlchemyError as e:
                logger.error(f"Subscription {subscription.id}: batch upsert error, falling back to single rows: {str(e)}")
            for row in batch:
                try:
                    with db.begin_nested():
                        upsert(db, LockedDate, [row], LOCKED_DATE_CONFLICT_KEY)
                    upserted += 1
                except SQLAlchemyError as e:
                    failed_dates.append(row["date"])
                    logger.error(f"Subscription {subscription.id}: could not upsert {row['date'].isoformat()}: {str(e)}")
        return upserted, failed_dates

    def sync_subscription(self, subscription: IcalSubscription, db: Session,
                          now: Optional[datetime] = None) -> SyncResult:
        now = now or datetime.now(timezone.utc).replace(tzinfo=None)
        result = SyncResult(
            subscriptionId=subscription.id,
            sourceName=subscription.source_name,
            propertyId=subscription.property_id,
            success=False,
        )
        try:
            events = parse_ical_feed(self.fetch_feed(subscription.feed_url))
            logger.info(f"Subscription {subscription.id}: parsed {len(events)} events from {subscription.source_name}")

            rows = self.build_rows(subscription, events)
            current_uids = {event.uid for event in events}
            current_dates = {row["date"] for row in rows}

            result.datesRemoved = self.remove_stale_locks(subscription, current_uids, current_dates, db)
            upserted, failed_dates = self.upsert_rows(subscription, rows, db)
            if rows:
                logger.info(f"Subscription {subscription.id}: upserted {upserted} locked dates")

            subscription.last_synced_at = now
            subscription.last_sync_status = SYNC_SUCCESS
            subscription.last_error_message = None
            subscription.updated_at = now
            db.commit()

            result.success = True
            result.eventsFound = len(events)
            result.datesUpserted = upserted
            result.datesFailed = len(failed_dates)
            return result
        except Exception as e:
            db.rollback()
            error_message = str(e) or e.__class__.__name__
            logger.error(f"Subscription {subscription.id} sync failed: {error_message}")
            result.datesRemoved = 0
            result.error = error_message
            self._record_failure(subscription, error_message, now, db)
            return result

    @staticmethod
    def _record_failure(subscription: IcalSubscription, error_message: str, now: datetime, db: Session) -> None:
        try:
            subscription.last_synced_at = now
            subscription.last_sync_status = SYNC_ERROR
            subscription.last_error_message = error_message
            subscription.updated_at = now
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Subscription {subscription.id}: could not record sync failure: {str(e)}")

    def sync_feeds(self, db: Session, subscription_id: Optional[str] = None,
                   now: Optional[datetime] = None) -> Dict:
        """Sync one subscription, or every active one, and report per-subscription results."""
        query = db.query(IcalSubscription).filter(IcalSubscription.is_active.is_(True))
        if subscription_id:
            query = query.filter(IcalSubscription.id == subscription_id)
        subscriptions = query.all()

        if not subscriptions:
            return {
                "success": True,
                "synced": 0,
                "failed": 0,
                "message": "No active subscriptions to sync",
                "results": [],
            }

        logger.info(f"Syncing {len(subscriptions)} iCal subscription(s)")
        results = [self.sync_subscription(subscription, db, now) for subscription in subscriptions]
        synced = sum(1 for r in results if r.success)
        failed = len(results) - synced
        logger.info(f"Sync complete: {synced} succeeded, {failed} failed")

        return {
            "success": True,
            "synced": synced,
            "failed": failed,
            "results": [r.model_dump(exclude_none=True) for r in results],
        }
