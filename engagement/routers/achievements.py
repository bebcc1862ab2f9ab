"""
FastAPI router for achievement endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from common.utils import success_response
from engagement.dependencies import CurrentUser, get_achievement_service
from engagement.services.achievements import AchievementService

router = APIRouter(prefix="/achievements", tags=["achievements"])

Achievements = Annotated[AchievementService, Depends(get_achievement_service)]


@router.get("/progress")
async def get_progress(user: CurrentUser, achievements: Achievements):
    """Progress toward every active achievement, earned ones included."""
    progress = await achievements.progress_for(str(user["_id"]))
    earned = sum(1 for p in progress if p["isEarned"])
    return success_response({
        "achievements": progress,
        "summary": {"total": len(progress), "earned": earned},
    })


@router.get("/earned")
async def get_earned(user: CurrentUser, achievements: Achievements):
    earned = await achievements.list_earned(str(user["_id"]))
    return success_response({"achievements": earned, "count": len(earned)})
