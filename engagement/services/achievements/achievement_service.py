"""
Achievement evaluator.

Reacts to engagement events by measuring every active, not-yet-earned
achievement for the affected user and awarding the ones whose measure has
reached the target. The (userId, achievementId) unique index keeps awards
at-most-once, so re-running an evaluation on unchanged state is a no-op.
"""

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from common.utils.clock import Clock
from engagement.database import collections
from engagement.events import CheckInRecorded, RecognitionSent, SurveyCompleted
from engagement.services.achievements.criteria import (
    AchievementConfigError,
    AchievementDefinition,
    measure,
    parse_definition,
    percentage,
)
from engagement.services.notifications.notification_sink import NotificationSink
from engagement.services.notifications.templates import MilestoneAchieved
from engagement.services.wellness.ledger_service import CreditReason, WellnessLedger

logger = logging.getLogger(__name__)


class AchievementService:
    """Evaluates, awards and reports achievements."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        ledger: WellnessLedger,
        sink: NotificationSink,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize AchievementService.

        Args:
            db: MongoDB database connection
            ledger: Credits achievement rewards
            sink: Sends MILESTONE_ACHIEVED notifications
            clock: Source of the current instant
        """
        self._db = db
        self._achievements_collection = db[collections.ACHIEVEMENTS]
        self._user_achievements_collection = db[collections.USER_ACHIEVEMENTS]
        self._ledger = ledger
        self._sink = sink
        self._clock = clock or Clock()

    # ─────────────────────────────────────────────────────────────────
    # Definitions
    # ─────────────────────────────────────────────────────────────────

    async def load_definitions(self) -> List[AchievementDefinition]:
        """
        Active achievements in display order.

        Definitions that fail to parse are logged and left out; the catalog
        is validated at startup with ``validate_catalog``.
        """
        cursor = self._achievements_collection.find({"isActive": True})
        cursor = cursor.sort([("category", 1), ("sortOrder", 1)])

        definitions = []
        async for doc in cursor:
            try:
                definitions.append(parse_definition(doc))
            except AchievementConfigError as e:
                logger.error(f"Skipping achievement: {e}")
        return definitions

    async def validate_catalog(self) -> int:
        """
        Parse every active achievement.

        Returns:
            Number of valid achievements

        Raises:
            AchievementConfigError: On the first invalid definition
        """
        count = 0
        async for doc in self._achievements_collection.find({"isActive": True}):
            parse_definition(doc)
            count += 1
        logger.info(f"Achievement catalog validated: {count} active achievements")
        return count

    async def _earned_map(self, user_id: ObjectId) -> Dict[str, Any]:
        cursor = self._user_achievements_collection.find(
            {"userId": user_id}, {"achievementId": 1, "earnedAt": 1}
        )
        return {str(ua["achievementId"]): ua.get("earnedAt") async for ua in cursor}

    # ─────────────────────────────────────────────────────────────────
    # Event handlers
    # ─────────────────────────────────────────────────────────────────

    async def on_check_in(self, event: CheckInRecorded) -> None:
        await self.evaluate(event.user_id)

    async def on_recognition(self, event: RecognitionSent) -> None:
        # Recipient counts toward peer_recognition, sender toward the custom hook
        await self.evaluate(event.to_user_id)
        await self.evaluate(event.from_user_id)

    async def on_survey_completed(self, event: SurveyCompleted) -> None:
        await self.evaluate(event.user_id)

    # ─────────────────────────────────────────────────────────────────
    # Evaluation
    # ─────────────────────────────────────────────────────────────────

    async def evaluate(self, user_id: str) -> List[Dict[str, Any]]:
        """
        Award every achievement the user now qualifies for.

        A failure on one achievement is logged and does not stop the others.

        Args:
            user_id: User to evaluate

        Returns:
            The newly created userAchievement documents
        """
        oid = ObjectId(user_id)
        if not await self._db[collections.USERS].find_one({"_id": oid}, {"_id": 1}):
            logger.warning(f"User {user_id} not found for achievement check")
            return []

        earned = await self._earned_map(oid)
        awarded = []

        for definition in await self.load_definitions():
            if definition.id in earned:
                continue
            try:
                current = await measure(self._db, oid, definition)
                if current < definition.target:
                    continue
                user_achievement = await self._award(user_id, definition)
                if user_achievement:
                    awarded.append(user_achievement)
            except Exception:
                logger.exception(f"Error evaluating achievement '{definition.name}' for user {user_id}")

        return awarded

    async def _award(self, user_id: str, definition: AchievementDefinition) -> Optional[Dict[str, Any]]:
        """
        Record the award, then credit its reward and notify.

        Returns:
            The userAchievement document, or None if it was already awarded
        """
        doc = {
            "userId": ObjectId(user_id),
            "achievementId": ObjectId(definition.id),
            "achievement": {
                "name": definition.name,
                "description": definition.description,
                "icon": definition.icon,
                "category": definition.category,
                "rarity": definition.rarity,
            },
            "earnedAt": self._clock.now(),
            "happyCoinsEarned": definition.happyCoinsReward,
        }
        try:
            result = await self._user_achievements_collection.insert_one(doc)
        except DuplicateKeyError:
            logger.debug(f"Achievement '{definition.name}' already awarded to user {user_id}")
            return None
        doc["_id"] = result.inserted_id
        logger.info(f"User {user_id} earned achievement: {definition.name}")

        if definition.happyCoinsReward > 0:
            credited = await self._ledger.credit_coins(
                user_id,
                definition.happyCoinsReward,
                CreditReason(
                    source="achievement",
                    key=f"achievement:{user_id}:{definition.id}",
                    description=f"Achievement: {definition.name}",
                ),
            )
            if not credited.ok:
                logger.error(f"Reward for '{definition.name}' not credited to user {user_id}: {credited.error.code}")

        await self._sink.emit(
            user_id,
            MilestoneAchieved(
                achievement_id=definition.id,
                achievement_name=definition.name,
                description=definition.description,
                happy_coins=definition.happyCoinsReward,
                icon=definition.icon,
                rarity=definition.rarity,
            ),
        )
        return doc

    # ─────────────────────────────────────────────────────────────────
    # Read side
    # ─────────────────────────────────────────────────────────────────

    async def progress_for(self, user_id: str) -> List[Dict[str, Any]]:
        """
        Progress toward every active achievement.

        Earned achievements report ``current == target``. Unearned
        consecutive_good_mood achievements report 0 unless the whole run is
        in place.
        """
        oid = ObjectId(user_id)
        earned = await self._earned_map(oid)
        progress = []

        for definition in await self.load_definitions():
            is_earned = definition.id in earned
            target = definition.target
            if is_earned:
                current = target
            else:
                try:
                    current = await measure(self._db, oid, definition)
                except Exception:
                    logger.exception(f"Progress for '{definition.name}' failed for user {user_id}")
                    current = 0

            earned_at = earned.get(definition.id)
            progress.append({
                "achievement": definition.to_response(),
                "isEarned": is_earned,
                "earnedAt": earned_at.isoformat() if earned_at else None,
                "progress": {
                    "current": current,
                    "target": target,
                    "percentage": percentage(current, target),
                },
            })

        return progress

    async def list_earned(self, user_id: str) -> List[Dict[str, Any]]:
        """Earned achievements, newest first."""
        cursor = self._user_achievements_collection.find({"userId": ObjectId(user_id)})
        cursor = cursor.sort("earnedAt", -1)
        return [
            {
                "id": str(ua["_id"]),
                "achievementId": str(ua["achievementId"]),
                "achievement": ua.get("achievement", {}),
                "earnedAt": ua["earnedAt"].isoformat() if ua.get("earnedAt") else None,
                "happyCoinsEarned": ua.get("happyCoinsEarned", 0),
            }
            async for ua in cursor
        ]
