# src/sharing/models.py
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from database import Base


class CalendarShareToken(Base):
    """Public link granting read-only access to one property's calendar."""
    __tablename__ = "calendar_share_tokens"

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    token: str = Column(String, unique=True, index=True, nullable=False)
    property_id: str = Column(String(36), ForeignKey("properties.id"), nullable=False)
    user_id: str = Column(String(36), ForeignKey("users.id"), nullable=False)
    is_active: bool = Column(Boolean, nullable=False, default=True)
    expires_at: datetime = Column(DateTime, nullable=True)
    view_count: int = Column(Integer, nullable=False, default=0)
    last_viewed_at: datetime = Column(DateTime, nullable=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
