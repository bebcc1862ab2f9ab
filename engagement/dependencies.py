"""
FastAPI dependencies for the WellnessAI engagement engine.

Services live on the ``EngagementContext`` stored in ``app.state.context``
during the lifespan; the getters below hand them to routers.
"""

from typing import Annotated, Any, Callable, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, Request

from common.auth import JWTAuth, create_auth_dependency
from common.utils.exceptions import ForbiddenException, UnauthorizedException
from engagement.context import EngagementContext
from engagement.database import collections
from engagement.services.achievements import AchievementService
from engagement.services.checkin import CheckInProcessor
from engagement.services.notifications import NotificationSink
from engagement.services.rewards import RecognitionService, RewardService
from engagement.services.scheduler import SurveyScheduler
from engagement.services.surveys import SurveyService


# ─────────────────────────────────────────────────────────────────
# Context
# ─────────────────────────────────────────────────────────────────

def get_context(request: Request) -> EngagementContext:
    """Get the engagement context built at startup."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise RuntimeError("Engagement context not initialized.")
    return context


Context = Annotated[EngagementContext, Depends(get_context)]


# ─────────────────────────────────────────────────────────────────
# Authentication
# ─────────────────────────────────────────────────────────────────

_auth_provider: Optional[JWTAuth] = None


def init_auth(auth: Optional[JWTAuth]) -> None:
    """Install the token verifier used by every protected route."""
    global _auth_provider
    _auth_provider = auth


def get_auth_provider() -> JWTAuth:
    """Get JWT auth provider."""
    if _auth_provider is None:
        raise RuntimeError("Auth provider not initialized.")
    return _auth_provider


get_current_user_id = create_auth_dependency(get_auth_provider)


async def require_auth(
    context: Context,
    user_id: Annotated[str, Depends(get_current_user_id)],
) -> Dict[str, Any]:
    """Dependency that requires an authenticated, active user."""
    try:
        oid = ObjectId(user_id)
    except (InvalidId, TypeError):
        raise UnauthorizedException("Invalid token subject", code="INVALID_TOKEN")

    user = await context.db[collections.USERS].find_one({"_id": oid})
    if not user:
        raise UnauthorizedException("User not found", code="USER_NOT_FOUND")
    if user.get("isActive") is False:
        raise UnauthorizedException("Account is deactivated", code="ACCOUNT_INACTIVE")
    return user


CurrentUser = Annotated[Dict[str, Any], Depends(require_auth)]


def require_roles(*roles: str) -> Callable:
    """Build a dependency that admits only users with one of ``roles``."""

    async def guard(user: CurrentUser) -> Dict[str, Any]:
        if user.get("role") not in roles:
            raise ForbiddenException(
                f"Requires role: {' or '.join(roles)}",
                code="INSUFFICIENT_PERMISSIONS",
            )
        return user

    return guard


# ─────────────────────────────────────────────────────────────────
# Service getters
# ─────────────────────────────────────────────────────────────────

def get_checkin_processor(context: Context) -> CheckInProcessor:
    return context.processor


def get_achievement_service(context: Context) -> AchievementService:
    return context.achievements


def get_survey_service(context: Context) -> SurveyService:
    return context.surveys


def get_survey_scheduler(context: Context) -> SurveyScheduler:
    return context.scheduler


def get_notification_sink(context: Context) -> NotificationSink:
    return context.sink


def get_recognition_service(context: Context) -> RecognitionService:
    return context.recognitions


def get_reward_service(context: Context) -> RewardService:
    return context.rewards
