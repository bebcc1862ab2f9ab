"""
WellnessAI collection names and index definitions.

Index creation runs once on connect (see ``MongoDB.connect(on_connect=...)``).
Uniqueness constraints here are what make check-ins, awards and survey
responses at-most-once under concurrent requests.
"""

import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────
# Collection names
# ─────────────────────────────────────────────────────────────────

USERS = "users"
CHECK_INS = "checkIns"
ACHIEVEMENTS = "achievements"
USER_ACHIEVEMENTS = "userAchievements"
RECOGNITIONS = "recognitions"
REWARDS = "rewards"
REDEMPTIONS = "redemptions"
SURVEYS = "surveys"
SURVEY_RESPONSES = "surveyResponses"
NOTIFICATIONS = "notifications"
COIN_CREDITS = "coinCredits"


# ─────────────────────────────────────────────────────────────────
# Index creation
# ─────────────────────────────────────────────────────────────────

async def ensure_indexes(db: AsyncIOMotorDatabase, credit_replay_window_days: int = 7) -> None:
    """
    Create the indexes the engagement engine relies on.

    Args:
        db: Motor database
        credit_replay_window_days: Retention of the coin credit journal
    """
    await db[USERS].create_index([("role", ASCENDING), ("isActive", ASCENDING)])
    await db[USERS].create_index([("department", ASCENDING)])

    await db[CHECK_INS].create_index(
        [("userId", ASCENDING), ("day", ASCENDING)],
        unique=True,
        name="one_checkin_per_day",
    )
    await db[CHECK_INS].create_index([("userId", ASCENDING), ("createdAt", DESCENDING)])

    await db[ACHIEVEMENTS].create_index([("name", ASCENDING)], unique=True)
    await db[USER_ACHIEVEMENTS].create_index(
        [("userId", ASCENDING), ("achievementId", ASCENDING)],
        unique=True,
        name="one_award_per_achievement",
    )

    await db[RECOGNITIONS].create_index([("toUserId", ASCENDING), ("createdAt", DESCENDING)])
    await db[RECOGNITIONS].create_index([("fromUserId", ASCENDING)])

    await db[REDEMPTIONS].create_index([("redemptionCode", ASCENDING)], unique=True)
    await db[REDEMPTIONS].create_index([("userId", ASCENDING), ("createdAt", DESCENDING)])

    await db[SURVEYS].create_index([("status", ASCENDING), ("dueDate", ASCENDING)])
    await db[SURVEYS].create_index([("type", ASCENDING), ("createdAt", DESCENDING)])
    await db[SURVEY_RESPONSES].create_index(
        [("surveyId", ASCENDING), ("userId", ASCENDING)],
        unique=True,
        name="one_response_per_survey",
    )

    await db[NOTIFICATIONS].create_index(
        [("userId", ASCENDING), ("isRead", ASCENDING), ("createdAt", DESCENDING)]
    )
    await db[NOTIFICATIONS].create_index([("expiresAt", ASCENDING)], expireAfterSeconds=0)

    await db[COIN_CREDITS].create_index([("reasonKey", ASCENDING)], unique=True)
    await db[COIN_CREDITS].create_index(
        [("createdAt", ASCENDING)],
        expireAfterSeconds=credit_replay_window_days * 24 * 3600,
    )

    logger.info("Engagement indexes ensured")
