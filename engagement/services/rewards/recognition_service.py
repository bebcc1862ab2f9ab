"""
Peer recognition.

A recognition credits the recipient, notifies them and publishes
RecognitionSent so both sides are re-evaluated for achievements.
"""

import logging
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase

from common.events import EventBus
from common.utils.clock import Clock
from common.utils.outcomes import Outcome
from engagement.database import collections
from engagement.events import RecognitionSent
from engagement.services.notifications.notification_sink import NotificationSink
from engagement.services.notifications.templates import RecognitionReceived
from engagement.services.wellness.ledger_service import CreditReason, WellnessLedger

logger = logging.getLogger(__name__)

RECOGNITION_TYPES = ("kudos", "thank_you", "great_job", "team_player", "innovation", "leadership")
RECOGNITION_CATEGORIES = ("collaboration", "innovation", "leadership", "support", "achievement", "other")
VISIBILITY_OPTIONS = ("public", "team", "private")
MAX_MESSAGE_LENGTH = 500


class RecognitionService:
    """Sends peer recognitions."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        ledger: WellnessLedger,
        sink: NotificationSink,
        bus: EventBus,
        clock: Optional[Clock] = None,
        recognition_coins: int = 25,
    ):
        self._collection = db[collections.RECOGNITIONS]
        self._users = db[collections.USERS]
        self._ledger = ledger
        self._sink = sink
        self._bus = bus
        self._clock = clock or Clock()
        self._recognition_coins = recognition_coins

    @staticmethod
    def validate(
        recognition_type: str,
        message: str,
        category: str,
        visibility: str,
    ) -> Optional[Outcome]:
        if recognition_type not in RECOGNITION_TYPES:
            return Outcome.validation(f"Unknown recognition type '{recognition_type}'", code="INVALID_RECOGNITION_TYPE")
        if not message or not message.strip():
            return Outcome.validation("Recognition message is required", code="MESSAGE_REQUIRED")
        if len(message) > MAX_MESSAGE_LENGTH:
            return Outcome.validation(
                f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters", code="MESSAGE_TOO_LONG"
            )
        if category not in RECOGNITION_CATEGORIES:
            return Outcome.validation(f"Unknown recognition category '{category}'", code="INVALID_CATEGORY")
        if visibility not in VISIBILITY_OPTIONS:
            return Outcome.validation(f"Unknown visibility '{visibility}'", code="INVALID_VISIBILITY")
        return None

    async def send_recognition(
        self,
        from_user_id: str,
        to_user_id: str,
        recognition_type: str,
        message: str,
        category: str = "other",
        visibility: str = "team",
        is_anonymous: bool = False,
    ) -> Outcome[Dict[str, Any]]:
        """
        Recognize a colleague.

        Returns:
            Outcome with ``{recognition: {id, type, happyCoinsAwarded}}``, or
            SELF_RECOGNITION / RECIPIENT_NOT_FOUND / validation failures
        """
        if str(from_user_id) == str(to_user_id):
            return Outcome.conflict("Cannot recognize yourself", code="SELF_RECOGNITION")

        invalid = self.validate(recognition_type, message, category, visibility)
        if invalid:
            return invalid

        try:
            recipient_id = ObjectId(to_user_id)
        except (InvalidId, TypeError):
            return Outcome.not_found("Recipient not found", code="RECIPIENT_NOT_FOUND")

        recipient = await self._users.find_one({"_id": recipient_id, "isActive": {"$ne": False}}, {"name": 1})
        if not recipient:
            return Outcome.not_found("Recipient not found", code="RECIPIENT_NOT_FOUND")

        sender = await self._users.find_one({"_id": ObjectId(from_user_id)}, {"name": 1})
        if not sender:
            return Outcome.not_found("User not found", code="USER_NOT_FOUND")

        now = self._clock.now()
        doc = {
            "fromUserId": sender["_id"],
            "toUserId": recipient_id,
            "type": recognition_type,
            "message": message.strip(),
            "category": category,
            "value": {"happyCoins": self._recognition_coins, "points": 1},
            "visibility": visibility,
            "isAnonymous": is_anonymous,
            "createdAt": now,
            "updatedAt": now,
        }
        result = await self._collection.insert_one(doc)
        recognition_id = str(result.inserted_id)
        logger.info(f"Recognition {recognition_id} sent from {from_user_id} to {to_user_id}")

        coins = doc["value"]["happyCoins"]
        awarded = 0
        if coins > 0:
            credited = await self._ledger.credit_coins(
                to_user_id,
                coins,
                CreditReason(source="recognition", key=f"recognition:{recognition_id}"),
            )
            if credited.ok:
                awarded = coins
            else:
                logger.error(f"Recognition coins not credited to {to_user_id}: {credited.error.code}")

        await self._sink.emit(
            to_user_id,
            RecognitionReceived(
                from_user_name="Someone" if is_anonymous else sender.get("name") or "A colleague",
                recognition_type=recognition_type.replace("_", " "),
                happy_coins=awarded,
                recognition_id=recognition_id,
            ),
        )

        await self._bus.publish(RecognitionSent(
            recognition_id=recognition_id,
            from_user_id=str(from_user_id),
            to_user_id=str(to_user_id),
            happy_coins=awarded,
        ))

        return Outcome.success({
            "recognition": {
                "id": recognition_id,
                "type": recognition_type,
                "happyCoinsAwarded": awarded,
            }
        })
