# src/ical/schemas.py
from datetime import date
from typing import List, Optional

from pydantic import BaseModel


class ParsedEvent(BaseModel):
    """An all-day span read from an external feed; end is exclusive."""
    uid: str
    start: date
    end: date
    summary: Optional[str] = None


class SyncRequest(BaseModel):
    subscriptionId: Optional[str] = None


class SyncResult(BaseModel):
    """Outcome of syncing one iCal subscription."""
    subscriptionId: str
    sourceName: str
    propertyId: str
    success: bool
    eventsFound: int = 0
    datesUpserted: int = 0
    datesRemoved: int = 0
    datesFailed: int = 0
    error: Optional[str] = None


class SyncResponse(BaseModel):
    success: bool
    synced: int
    failed: int
    message: Optional[str] = None
    results: List[SyncResult]
