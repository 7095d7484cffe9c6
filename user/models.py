# src/user/models.py
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from database import Base


class User(Base):
    """Represents a property owner. Only the fields the backend jobs rely on are mapped."""
    __tablename__ = "users"

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: str = Column(String, unique=True, index=True, nullable=False)
    full_name: str = Column(String, nullable=True)
    push_token: str = Column(String, nullable=True)
    subscription_status: str = Column(String, nullable=True)  # mirror of the current subscription status
    property_limit: int = Column(Integer, nullable=False, default=1)
    calendar_months_override: int = Column(Integer, nullable=True)  # null = plan default, -1 = unlimited
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow)
