"""
Default achievement catalog.

Installed at startup when SEED_DEFAULT_ACHIEVEMENTS is on. Installation is
an upsert keyed by name, so existing badges (and admin edits to them) are
left alone.
"""

import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from common.utils.clock import Clock
from engagement.database import collections
from engagement.services.achievements.criteria import CriteriaType, parse_definition

logger = logging.getLogger(__name__)


def _badge(
    name: str,
    description: str,
    category: str,
    icon: str,
    criteria_type: CriteriaType,
    value: int,
    criteria_description: str,
    rarity: str,
    coins: int,
    sort_order: int,
) -> Dict[str, Any]:
    return {
        "name": name,
        "description": description,
        "category": category,
        "icon": icon,
        "criteria": {"type": criteria_type.value, "value": value, "description": criteria_description},
        "rarity": rarity,
        "happyCoinsReward": coins,
        "sortOrder": sort_order,
        "isActive": True,
    }


DEFAULT_ACHIEVEMENTS: List[Dict[str, Any]] = [
    # Check-in milestones
    _badge("First Steps", "Completed your first wellness check-in", "checkin", "🏆",
           CriteriaType.TOTAL_CHECKINS, 1, "Complete 1 check-in", "common", 50, 1),
    _badge("Wellness Warrior", "Completed 10 wellness check-ins", "checkin", "💪",
           CriteriaType.TOTAL_CHECKINS, 10, "Complete 10 check-ins", "common", 100, 2),
    _badge("Dedicated Member", "Completed 30 wellness check-ins", "checkin", "🌟",
           CriteriaType.TOTAL_CHECKINS, 30, "Complete 30 check-ins", "rare", 200, 3),
    _badge("Wellness Champion", "Completed 100 wellness check-ins", "checkin", "👑",
           CriteriaType.TOTAL_CHECKINS, 100, "Complete 100 check-ins", "legendary", 500, 4),

    # Streaks
    _badge("Getting Started", "Maintained check-ins for 3 consecutive days", "streak", "🔥",
           CriteriaType.STREAK_DAYS, 3, "3-day check-in streak", "common", 75, 5),
    _badge("Week Warrior", "Maintained check-ins for 7 consecutive days", "streak", "🔥",
           CriteriaType.STREAK_DAYS, 7, "7-day check-in streak", "common", 150, 6),
    _badge("Consistency King", "Maintained check-ins for 14 consecutive days", "streak", "⚡",
           CriteriaType.STREAK_DAYS, 14, "14-day check-in streak", "rare", 250, 7),
    _badge("Monthly Master", "Maintained check-ins for 30 consecutive days", "streak", "⭐",
           CriteriaType.STREAK_DAYS, 30, "30-day check-in streak", "epic", 400, 8),
    _badge("Unstoppable Force", "Maintained check-ins for 60 consecutive days", "streak", "💎",
           CriteriaType.STREAK_DAYS, 60, "60-day check-in streak", "legendary", 750, 9),

    # Mood
    _badge("Positivity Pioneer", "Maintained good mood (4+) for 5 consecutive check-ins", "mood", "😊",
           CriteriaType.CONSECUTIVE_GOOD_MOOD, 5, "5 consecutive good mood check-ins", "common", 100, 10),
    _badge("Happiness Hero", "Maintained good mood (4+) for 3 consecutive check-ins", "mood", "😄",
           CriteriaType.CONSECUTIVE_GOOD_MOOD, 3, "3 consecutive good mood check-ins", "rare", 200, 11),

    # Engagement
    _badge("Survey Starter", "Completed your first survey", "engagement", "📋",
           CriteriaType.SURVEY_COMPLETION, 1, "Complete 1 survey", "common", 50, 12),
    _badge("Feedback Champion", "Completed 5 surveys", "engagement", "📊",
           CriteriaType.SURVEY_COMPLETION, 5, "Complete 5 surveys", "rare", 150, 13),

    # Special
    _badge("Team Player", "Received peer recognition", "special", "🤝",
           CriteriaType.PEER_RECOGNITION, 1, "Receive peer recognition", "common", 75, 14),
    _badge("Wellness Ambassador", "Sent peer recognition to others", "special", "🌟",
           CriteriaType.CUSTOM, 1, "Send peer recognition", "common", 50, 15),
]


async def install_default_catalog(db: AsyncIOMotorDatabase, clock: Optional[Clock] = None) -> int:
    """
    Insert any default achievement that is not there yet.

    Returns:
        Number of achievements created
    """
    now = (clock or Clock()).now()
    collection = db[collections.ACHIEVEMENTS]
    created = 0

    for badge in DEFAULT_ACHIEVEMENTS:
        parse_definition({**badge, "_id": badge["name"]})
        result = await collection.update_one(
            {"name": badge["name"]},
            {"$setOnInsert": {**badge, "createdAt": now, "updatedAt": now}},
            upsert=True,
        )
        if result.upserted_id is not None:
            created += 1

    if created:
        logger.info(f"Installed {created} default achievements")
    return created
