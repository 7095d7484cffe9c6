# src/ical/models.py
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, UniqueConstraint

from database import Base

SOURCE_MANUAL = "manual"
SOURCE_EXTERNAL = "external"

SYNC_SUCCESS = "success"
SYNC_ERROR = "error"

LOCKED_DATE_CONFLICT_KEY = ("property_id", "date", "subscription_id")


class LockedDate(Base):
    """A single day on which a property cannot be booked."""
    __tablename__ = "locked_dates"
    __table_args__ = (
        UniqueConstraint(*LOCKED_DATE_CONFLICT_KEY, name="uq_locked_dates_property_date_subscription"),
    )

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    property_id: str = Column(String(36), ForeignKey("properties.id"), nullable=False, index=True)
    user_id: str = Column(String(36), ForeignKey("users.id"), nullable=False)
    date = Column(Date, nullable=False)
    reason: str = Column(String, nullable=True)
    source: str = Column(String, nullable=False, default=SOURCE_MANUAL)  # manual, external
    source_name: str = Column(String, nullable=True)
    external_uid: str = Column(String, nullable=True)
    subscription_id: str = Column(String(36), ForeignKey("ical_subscriptions.id", ondelete="CASCADE"), nullable=True, index=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)


class IcalSubscription(Base):
    """An external calendar feed attached to a property."""
    __tablename__ = "ical_subscriptions"

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    property_id: str = Column(String(36), ForeignKey("properties.id"), nullable=False, index=True)
    user_id: str = Column(String(36), ForeignKey("users.id"), nullable=False)
    feed_url: str = Column(String, nullable=False)
    source_name: str = Column(String, nullable=False)  # airbnb, booking, vrbo, other
    source_label: str = Column(String, nullable=True)
    is_active: bool = Column(Boolean, nullable=False, default=True)
    last_synced_at: datetime = Column(DateTime, nullable=True)
    last_sync_status: str = Column(String, nullable=True)  # success, error
    last_error_message: str = Column(String, nullable=True)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow)


class IcalFeedToken(Base):
    """Public token for the outbound .ics feed of one property."""
    __tablename__ = "ical_feed_tokens"

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    token: str = Column(String, unique=True, index=True, nullable=False)
    property_id: str = Column(String(36), ForeignKey("properties.id"), nullable=False)
    user_id: str = Column(String(36), ForeignKey("users.id"), nullable=False)
    is_active: bool = Column(Boolean, nullable=False, default=True)
    expires_at: datetime = Column(DateTime, nullable=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
