# src/sharing/schemas.py
from pydantic import BaseModel, Field


class SharedCalendarRequest(BaseModel):
    """Body of a shared calendar read. Months are 1-12."""
    token: str = Field(min_length=1)
    year: int = Field(ge=1, le=9999)
    month: int = Field(ge=1, le=12)
