# src/sharing/routes.py
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from database import get_db
from sharing.schemas import SharedCalendarRequest
from sharing.services import SharedCalendarError, SharedCalendarService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.post("/shared")
async def get_shared_calendar(request: Request, db: Session = Depends(get_db)):
    """Read one month of a shared property calendar by public token."""
    try:
        payload = SharedCalendarRequest.model_validate(await request.json())
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Missing required parameters: token, year, month"})

    try:
        return await run_in_threadpool(
            SharedCalendarService.get_shared_calendar, payload.token, payload.year, payload.month, db
        )
    except SharedCalendarError as e:
        return JSONResponse(status_code=e.status_code, content=e.to_dict())
    except Exception as e:
        db.rollback()
        logger.error(f"Error in get_shared_calendar: {str(e)}")
        return JSONResponse(status_code=500, content={"error": str(e) or "An unexpected error occurred"})
