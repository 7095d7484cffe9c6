# src/cashflow/services.py
import calendar
import logging
from datetime import date, datetime, timezone
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cashflow.models import CashflowEntry

logger = logging.getLogger(__name__)

FREQUENCY_MONTHS = {
    "monthly": 1,
    "quarterly": 3,
    "yearly": 12,
}


def add_frequency(day: date, frequency: Optional[str]) -> date:
    """Advance by the recurrence step; days past the end of the target month clamp to its last day."""
    months = FREQUENCY_MONTHS.get(frequency or "monthly", 1)
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


class RecurringExpenseService:
    @staticmethod
    def process_recurring_expenses(db: Session, today: Optional[date] = None) -> Dict:
        """Materialize every due recurring entry and move its template to the next due date."""
        today = today or datetime.now(timezone.utc).date()
        due_entries = db.query(CashflowEntry).filter(
            CashflowEntry.is_recurring.is_(True),
            CashflowEntry.next_due_date <= today
        ).all()
        logger.info(f"Found {len(due_entries)} recurring entries due")

        created = 0
        for entry in due_entries:
            try:
                db.add(CashflowEntry(
                    property_id=entry.property_id,
                    user_id=entry.user_id,
                    type=entry.type,
                    category=entry.category,
                    subcategory=entry.subcategory,
                    description=entry.description,
                    amount=entry.amount,
                    currency=entry.currency,
                    transaction_date=entry.next_due_date,
                    payment_method=entry.payment_method,
                    notes=entry.notes,
                    is_recurring=False,
                    parent_entry_id=entry.id
                ))
                next_due = add_frequency(entry.next_due_date, entry.recurrence_frequency)
                if entry.recurrence_end_date and next_due > entry.recurrence_end_date:
                    entry.is_recurring = False
                    entry.next_due_date = None
                else:
                    entry.next_due_date = next_due
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to create entry for parent {entry.id}: {str(e)}")
                continue
            created += 1

        logger.info(f"Created {created} new entries")
        return {"success": True, "processed": len(due_entries), "created": created}
