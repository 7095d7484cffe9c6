# src/scheduler/tasks.py
import logging
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session
from database import SessionLocal
from cashflow.services import RecurringExpenseService
from config import settings
from ical.services import IcalSyncService
from subscription.services import SubscriptionLifecycleService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

def check_subscriptions():
    """Move expired subscriptions through grace period and expiry."""
    logger.info("Starting check_subscriptions task")
    db: Session = SessionLocal()
    try:
        result = SubscriptionLifecycleService().check_subscriptions(db)
        logger.info(f"check_subscriptions result: {result}")
    except Exception as e:
        db.rollback()
        logger.error(f"Error in check_subscriptions: {str(e)}")
    finally:
        db.close()
    logger.info("Finished check_subscriptions task")

def send_payment_reminders():
    """Send the pre-expiry reminder ladder."""
    logger.info("Starting send_payment_reminders task")
    db: Session = SessionLocal()
    try:
        result = SubscriptionLifecycleService().send_payment_reminders(db)
        logger.info(f"send_payment_reminders result: {result}")
    except Exception as e:
        db.rollback()
        logger.error(f"Error in send_payment_reminders: {str(e)}")
    finally:
        db.close()
    logger.info("Finished send_payment_reminders task")

def sync_ical_feeds():
    """Pull every active external calendar into locked dates."""
    logger.info("Starting sync_ical_feeds task")
    db: Session = SessionLocal()
    try:
        result = IcalSyncService().sync_feeds(db)
        logger.info(f"sync_ical_feeds: {result['synced']} synced, {result['failed']} failed")
    except Exception as e:
        db.rollback()
        logger.error(f"Error in sync_ical_feeds: {str(e)}")
    finally:
        db.close()
    logger.info("Finished sync_ical_feeds task")

def process_recurring_expenses():
    """Generate due recurring cashflow entries."""
    logger.info("Starting process_recurring_expenses task")
    db: Session = SessionLocal()
    try:
        result = RecurringExpenseService.process_recurring_expenses(db)
        logger.info(f"process_recurring_expenses result: {result}")
    except Exception as e:
        db.rollback()
        logger.error(f"Error in process_recurring_expenses: {str(e)}")
    finally:
        db.close()
    logger.info("Finished process_recurring_expenses task")

def start_scheduler() -> BackgroundScheduler:
    """Start the background scheduler."""
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(check_subscriptions, 'interval', minutes=settings.CHECK_SUBSCRIPTIONS_INTERVAL_MINUTES)
    scheduler.add_job(send_payment_reminders, 'cron', hour=1)
    scheduler.add_job(sync_ical_feeds, 'interval', minutes=settings.SYNC_ICAL_INTERVAL_MINUTES)
    scheduler.add_job(process_recurring_expenses, 'cron', hour=0, minute=30)
    scheduler.start()
    return scheduler
