# src/cashflow/routes.py
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from cashflow.services import RecurringExpenseService
from database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cashflow", tags=["cashflow"])


@router.post("/process-recurring")
def process_recurring_expenses(db: Session = Depends(get_db)):
    """Generate the cashflow entries that recurring templates have come due for."""
    try:
        return RecurringExpenseService.process_recurring_expenses(db)
    except Exception as e:
        db.rollback()
        logger.error(f"Error in process_recurring_expenses: {str(e)}")
        return JSONResponse(status_code=500, content={"error": str(e)})
