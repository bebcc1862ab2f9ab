"""
FastAPI router for check-in endpoints.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from common.utils import paginated_response, success_response
from engagement.dependencies import CurrentUser, get_checkin_processor
from engagement.pipelines import checkins as pipelines
from engagement.schemas.checkins import CheckInRequest
from engagement.services.checkin import CheckInProcessor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkins", tags=["checkins"])

Processor = Annotated[CheckInProcessor, Depends(get_checkin_processor)]


@router.post("", status_code=201)
async def submit_checkin(body: CheckInRequest, user: CurrentUser, processor: Processor):
    """
    Submit today's check-in.

    Returns the receipt with coins earned and the updated streak.
    """
    receipt = await pipelines.submit_checkin_pipeline(
        processor=processor,
        user_id=str(user["_id"]),
        mood=body.mood,
        note=body.note,
        source=body.source,
    )
    return success_response(receipt, message="Check-in completed successfully")


@router.get("/today")
async def get_today(user: CurrentUser, processor: Processor):
    return success_response(await processor.get_today(str(user["_id"])))


@router.get("/history")
async def get_history(
    user: CurrentUser,
    processor: Processor,
    page: int = Query(1, ge=1),
    limit: int = Query(30, ge=1, le=100),
    startDate: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}-\d{2}$", description="YYYY-MM-DD"),
    endDate: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}-\d{2}$", description="YYYY-MM-DD"),
):
    """Paginated check-in history with mood statistics over the same range."""
    result = await pipelines.get_history_pipeline(
        processor=processor,
        user_id=str(user["_id"]),
        page=page,
        limit=limit,
        start_day=startDate,
        end_day=endDate,
    )
    return paginated_response(
        result["items"],
        total=result["total"],
        page=page,
        limit=limit,
        extra={"statistics": result["statistics"]},
    )


@router.get("/trend")
async def get_trend(
    user: CurrentUser,
    processor: Processor,
    days: int = Query(7, ge=1, le=90),
):
    return success_response(await processor.get_mood_trend(str(user["_id"]), days=days))
