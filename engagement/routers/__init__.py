"""
API routers for the engagement engine.
"""

from engagement.routers.checkins import router as checkins_router
from engagement.routers.achievements import router as achievements_router
from engagement.routers.surveys import router as surveys_router
from engagement.routers.notifications import router as notifications_router
from engagement.routers.recognitions import router as recognitions_router
from engagement.routers.rewards import router as rewards_router

ALL_ROUTERS = [
    checkins_router,
    achievements_router,
    surveys_router,
    notifications_router,
    recognitions_router,
    rewards_router,
]

__all__ = ["ALL_ROUTERS"]
