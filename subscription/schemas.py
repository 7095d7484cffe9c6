# src/subscription/schemas.py
from typing import Dict

from pydantic import BaseModel


class LifecycleRunResponse(BaseModel):
    """Summary of one lifecycle pass."""
    success: bool
    moved_to_grace: int
    moved_to_expired: int


class ReminderRunResponse(BaseModel):
    """Summary of one pre-expiry reminder pass."""
    success: bool
    total_reminders_sent: int
    by_type: Dict[str, int]
