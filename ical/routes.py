# src/ical/routes.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from sqlalchemy.orm import Session

from database import get_db
from ical.publisher import FeedTokenError, IcalFeedService
from ical.schemas import SyncRequest, SyncResponse
from ical.services import IcalSyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ical", tags=["ical"])


@router.post("/sync", response_model=SyncResponse)
async def sync_ical_feeds(request: Request, db: Session = Depends(get_db)):
    """Sync one iCal subscription, or every active one when no id is given."""
    subscription_id = None
    try:
        subscription_id = SyncRequest.model_validate(await request.json()).subscriptionId
    except ValueError:
        pass  # no body or not JSON: sync everything

    try:
        return await run_in_threadpool(IcalSyncService().sync_feeds, db, subscription_id=subscription_id)
    except Exception as e:
        db.rollback()
        logger.error(f"Error in sync_ical_feeds: {str(e)}")
        return JSONResponse(status_code=500, content={"error": str(e) or "Unexpected error"})


def _feed_response(token: Optional[str], db: Session) -> Response:
    try:
        filename, body = IcalFeedService.build_feed(token, db)
    except FeedTokenError as e:
        return PlainTextResponse(e.message, status_code=e.status_code)
    except Exception as e:
        logger.error(f"Error in ical feed: {str(e)}")
        return PlainTextResponse("Internal server error", status_code=500)
    return Response(
        content=body,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/feed")
def get_ical_feed(token: Optional[str] = None, db: Session = Depends(get_db)):
    """Outbound feed addressed by ?token=..."""
    return _feed_response(token, db)


@router.get("/feed/{filename}")
def get_ical_feed_file(filename: str, token: Optional[str] = None, db: Session = Depends(get_db)):
    """Outbound feed addressed as /feed/<token>.ics, for calendar apps that need a file URL."""
    if not token and filename.endswith(".ics"):
        token = filename[:-len(".ics")]
    return _feed_response(token, db)
