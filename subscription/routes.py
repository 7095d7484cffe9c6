# src/subscription/routes.py
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from database import get_db
from subscription.schemas import LifecycleRunResponse, ReminderRunResponse
from subscription.services import SubscriptionLifecycleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("/check", response_model=LifecycleRunResponse)
def check_subscriptions(db: Session = Depends(get_db)):
    """Advance subscription statuses and send grace period reminders."""
    try:
        return SubscriptionLifecycleService().check_subscriptions(db)
    except Exception as e:
        db.rollback()
        logger.error(f"Error in check_subscriptions: {str(e)}")
        return JSONResponse(status_code=500, content={"error": str(e)})


@router.post("/reminders", response_model=ReminderRunResponse)
def send_payment_reminders(db: Session = Depends(get_db)):
    """Send pre-expiry reminders to active subscriptions."""
    try:
        return SubscriptionLifecycleService().send_payment_reminders(db)
    except Exception as e:
        db.rollback()
        logger.error(f"Error in send_payment_reminders: {str(e)}")
        return JSONResponse(status_code=500, content={"error": str(e)})
