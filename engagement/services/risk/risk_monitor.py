"""
Low-mood risk signal.

After each check-in, looks at the user's most recent check-ins; when all of
the last ``consecutive_days`` moods are at or below the threshold, every
active HR/admin user is alerted. One alert per employee per day.
"""

import logging
from typing import List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from common.utils.clock import Clock
from engagement.database import collections
from engagement.events import CheckInRecorded
from engagement.services.notifications.notification_sink import NotificationSink
from engagement.services.notifications.templates import NotificationType, RiskAlert

logger = logging.getLogger(__name__)

REVIEWER_ROLES = ("hr", "admin")


class RiskMonitor:
    """Raises RISK_ALERT notifications for sustained low mood."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        sink: NotificationSink,
        clock: Optional[Clock] = None,
        low_mood_threshold: float = 2.5,
        consecutive_days: int = 3,
    ):
        self._users = db[collections.USERS]
        self._checkins = db[collections.CHECK_INS]
        self._notifications = db[collections.NOTIFICATIONS]
        self._sink = sink
        self._clock = clock or Clock()
        self._threshold = low_mood_threshold
        self._consecutive_days = consecutive_days

    async def recent_moods(self, user_id: str) -> List[int]:
        cursor = (
            self._checkins.find({"userId": ObjectId(user_id)}, {"mood": 1})
            .sort("day", -1)
            .limit(self._consecutive_days)
        )
        return [doc["mood"] for doc in await cursor.to_list(length=self._consecutive_days)]

    def is_at_risk(self, moods: List[int]) -> bool:
        return len(moods) >= self._consecutive_days and all(m <= self._threshold for m in moods)

    async def on_check_in(self, event: CheckInRecorded) -> int:
        """
        Evaluate the user after a check-in.

        Returns:
            Number of reviewers alerted
        """
        moods = await self.recent_moods(event.user_id)
        if not self.is_at_risk(moods):
            return 0

        alert_key = f"low_mood:{event.user_id}:{event.day}"
        already_sent = await self._notifications.find_one(
            {"type": NotificationType.RISK_ALERT.value, "data.alertKey": alert_key},
            {"_id": 1},
        )
        if already_sent:
            logger.debug(f"Risk alert {alert_key} already sent")
            return 0

        employee = await self._users.find_one({"_id": ObjectId(event.user_id)}, {"name": 1})
        if not employee:
            return 0

        cursor = self._users.find(
            {"role": {"$in": list(REVIEWER_ROLES)}, "isActive": True},
            {"_id": 1},
        )
        reviewer_ids = [str(u["_id"]) for u in await cursor.to_list(length=None)]
        if not reviewer_ids:
            logger.warning(f"No HR/admin users to receive risk alert for {event.user_id}")
            return 0

        docs = await self._sink.emit_bulk(
            reviewer_ids,
            RiskAlert(
                employee_id=event.user_id,
                employee_name=employee.get("name") or "An employee",
                risk_level="high",
                reason=f"Low mood for {self._consecutive_days} consecutive check-ins",
                alert_key=alert_key,
                recent_moods=list(reversed(moods)),
            ),
        )
        logger.info(f"Risk alert for user {event.user_id} sent to {len(docs)} reviewers")
        return len(docs)
