# src/rental/models.py
import uuid
from datetime import date, datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, String

from database import Base

INACTIVE_RESERVATION_STATUSES = ("cancelled", "no_show")


class Property(Base):
    """Represents a rental property."""
    __tablename__ = "properties"

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: str = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    name: str = Column(String, nullable=False)
    city: str = Column(String, nullable=True)
    province: str = Column(String, nullable=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)


class Reservation(Base):
    """Represents a guest reservation; check_out is the first free night."""
    __tablename__ = "reservations"

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    property_id: str = Column(String(36), ForeignKey("properties.id"), nullable=False, index=True)
    guest_name: str = Column(String, nullable=True)
    check_in: date = Column(Date, nullable=False)
    check_out: date = Column(Date, nullable=False)
    status: str = Column(String, nullable=False, default="confirmed")
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
