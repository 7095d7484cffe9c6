# src/subscription/models.py
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base

ACTIVE = "active"
GRACE_PERIOD = "grace_period"
EXPIRED = "expired"
CANCELLED = "cancelled"


class SubscriptionPlan(Base):
    """A purchasable plan and the limits it grants."""
    __tablename__ = "subscription_plans"

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: str = Column(String, nullable=False)
    property_limit: int = Column(Integer, nullable=False, default=1)
    calendar_months_limit: int = Column(Integer, nullable=True)  # null or negative = unlimited


class Subscription(Base):
    """Represents a user subscription."""
    __tablename__ = "subscriptions"

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: str = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    plan_id: str = Column(String(36), ForeignKey("subscription_plans.id"), nullable=True)
    status: str = Column(String, nullable=False, default=ACTIVE)  # active, grace_period, expired, cancelled
    current_period_start: datetime = Column(DateTime, nullable=False)
    current_period_end: datetime = Column(DateTime, nullable=False, index=True)
    grace_period_end: datetime = Column(DateTime, nullable=True)
    last_reminder_type: str = Column(String, nullable=True)
    reminder_sent_at: datetime = Column(DateTime, nullable=True)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow)

    user = relationship("User")
    plan = relationship("SubscriptionPlan")


class SubscriptionReminder(Base):
    """Append-only log of reminders; at most one row per subscription and reminder type."""
    __tablename__ = "subscription_reminders"
    __table_args__ = (
        UniqueConstraint("subscription_id", "reminder_type", name="uq_subscription_reminders_type"),
    )

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    subscription_id: str = Column(String(36), ForeignKey("subscriptions.id"), nullable=False, index=True)
    user_id: str = Column(String(36), ForeignKey("users.id"), nullable=False)
    reminder_type: str = Column(String, nullable=False)
    channel: str = Column(String, nullable=False, default="push")
    sent_at: datetime = Column(DateTime, nullable=False, default=datetime.utcnow)

    subscription = relationship("Subscription")
