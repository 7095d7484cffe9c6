# src/cashflow/models.py
import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Numeric, String

from database import Base


class CashflowEntry(Base):
    """Income or expense line; recurring rows act as templates for generated entries."""
    __tablename__ = "cashflow_entries"

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    property_id: str = Column(String(36), ForeignKey("properties.id"), nullable=True)
    user_id: str = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type: str = Column(String, nullable=False)  # income, expense
    category: str = Column(String, nullable=False)
    subcategory: str = Column(String, nullable=True)
    description: str = Column(String, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency: str = Column(String, nullable=False, default="PHP")
    transaction_date: date = Column(Date, nullable=False)
    payment_method: str = Column(String, nullable=True)
    reference_number: str = Column(String, nullable=True)
    receipt_url: str = Column(String, nullable=True)
    notes: str = Column(String, nullable=True)
    is_recurring: bool = Column(Boolean, nullable=False, default=False)
    recurrence_frequency: str = Column(String, nullable=True)  # monthly, quarterly, yearly
    next_due_date: date = Column(Date, nullable=True, index=True)
    recurrence_end_date: date = Column(Date, nullable=True)
    parent_entry_id: str = Column(String(36), ForeignKey("cashflow_entries.id"), nullable=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
