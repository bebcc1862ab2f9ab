"""
Achievement criteria.

Each ``CriteriaType`` has exactly one measure handler returning the user's
*current* value for that criterion; an achievement is earned when
``current >= criteria.value``. ``custom`` achievements dispatch to a hook
registered under the achievement's name.

The handler table is checked for completeness when this module is imported,
so adding a criteria type without a handler fails at startup.
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from common.config import ConfigurationError
from engagement.database import collections

logger = logging.getLogger(__name__)

GOOD_MOOD = 4


class AchievementConfigError(ConfigurationError):
    """An achievement definition cannot be evaluated."""


class CriteriaType(str, Enum):
    TOTAL_CHECKINS = "total_checkins"
    STREAK_DAYS = "streak_days"
    CONSECUTIVE_GOOD_MOOD = "consecutive_good_mood"
    SURVEY_COMPLETION = "survey_completion"
    PEER_RECOGNITION = "peer_recognition"
    CUSTOM = "custom"


class AchievementCriteria(BaseModel):
    """What has to be reached, and how far."""
    type: CriteriaType
    value: int = Field(..., ge=1)


class AchievementDefinition(BaseModel):
    """An achievement document parsed into its typed form."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., max_length=500)
    category: str = "special"
    icon: str = "🏆"
    rarity: str = "common"
    happyCoinsReward: int = Field(0, ge=0)
    criteria: AchievementCriteria
    isActive: bool = True
    sortOrder: int = 0

    @property
    def target(self) -> int:
        return self.criteria.value

    def to_response(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "icon": self.icon,
            "rarity": self.rarity,
            "happyCoinsReward": self.happyCoinsReward,
            "criteria": {"type": self.criteria.type.value, "value": self.criteria.value},
        }


MeasureHandler = Callable[[AsyncIOMotorDatabase, ObjectId, AchievementDefinition], Awaitable[int]]

CRITERIA_HANDLERS: Dict[CriteriaType, MeasureHandler] = {}
CUSTOM_HOOKS: Dict[str, MeasureHandler] = {}


def criteria_handler(criteria_type: CriteriaType):
    """Register the measure handler for one criteria type."""
    def register(func: MeasureHandler) -> MeasureHandler:
        if criteria_type in CRITERIA_HANDLERS:
            raise AchievementConfigError(f"Duplicate handler for criteria type '{criteria_type.value}'")
        CRITERIA_HANDLERS[criteria_type] = func
        return func
    return register


def custom_hook(achievement_name: str):
    """Register the measure for a ``custom`` achievement, keyed by its name."""
    def register(func: MeasureHandler) -> MeasureHandler:
        CUSTOM_HOOKS[achievement_name] = func
        return func
    return register


# =============================================================================
# Handlers
# =============================================================================

@criteria_handler(CriteriaType.TOTAL_CHECKINS)
async def measure_total_checkins(db, user_id, definition) -> int:
    return await db[collections.CHECK_INS].count_documents({"userId": user_id})


@criteria_handler(CriteriaType.STREAK_DAYS)
async def measure_streak_days(db, user_id, definition) -> int:
    user = await db[collections.USERS].find_one({"_id": user_id}, {"wellness.currentStreak": 1})
    return ((user or {}).get("wellness") or {}).get("currentStreak", 0)


@criteria_handler(CriteriaType.CONSECUTIVE_GOOD_MOOD)
async def measure_consecutive_good_mood(db, user_id, definition) -> int:
    """
    All-or-nothing: the last ``target`` check-ins by day must all be good.

    A single lower mood among them drops the measure to 0.
    """
    target = definition.target
    cursor = db[collections.CHECK_INS].find({"userId": user_id}, {"mood": 1})
    recent = await cursor.sort("day", -1).limit(target).to_list(length=target)
    if len(recent) < target:
        return 0
    return target if all(c["mood"] >= GOOD_MOOD for c in recent) else 0


@criteria_handler(CriteriaType.SURVEY_COMPLETION)
async def measure_survey_completion(db, user_id, definition) -> int:
    return await db[collections.SURVEY_RESPONSES].count_documents({"userId": user_id})


@criteria_handler(CriteriaType.PEER_RECOGNITION)
async def measure_peer_recognition(db, user_id, definition) -> int:
    return await db[collections.RECOGNITIONS].count_documents({"toUserId": user_id})


@criteria_handler(CriteriaType.CUSTOM)
async def measure_custom(db, user_id, definition) -> int:
    hook = CUSTOM_HOOKS.get(definition.name)
    if hook is None:
        raise AchievementConfigError(f"No custom hook registered for '{definition.name}'")
    return await hook(db, user_id, definition)


@custom_hook("Wellness Ambassador")
async def measure_recognitions_sent(db, user_id, definition) -> int:
    return await db[collections.RECOGNITIONS].count_documents({"fromUserId": user_id})


_missing = [t.value for t in CriteriaType if t not in CRITERIA_HANDLERS]
if _missing:
    raise AchievementConfigError(f"Criteria types without a handler: {', '.join(_missing)}")


# =============================================================================
# Parsing
# =============================================================================

def parse_definition(doc: Dict[str, Any]) -> AchievementDefinition:
    """
    Parse an ``achievements`` document.

    Raises:
        AchievementConfigError: Unknown criteria type, malformed fields, or a
            custom achievement with no registered hook
    """
    try:
        definition = AchievementDefinition.model_validate({**doc, "id": str(doc.get("_id", doc.get("id", "")))})
    except ValidationError as e:
        raise AchievementConfigError(f"Invalid achievement '{doc.get('name')}': {e}") from e

    if definition.criteria.type == CriteriaType.CUSTOM and definition.name not in CUSTOM_HOOKS:
        raise AchievementConfigError(f"Custom achievement '{definition.name}' has no registered hook")

    return definition


async def measure(
    db: AsyncIOMotorDatabase,
    user_id: ObjectId,
    definition: AchievementDefinition,
) -> int:
    """Current measure of ``definition`` for the user."""
    return await CRITERIA_HANDLERS[definition.criteria.type](db, user_id, definition)


def percentage(current: int, target: int) -> int:
    return round(min(current / target, 1) * 100) if target > 0 else 100
