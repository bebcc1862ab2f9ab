"""
Streak warning sweep.

Warns employees whose streak is still alive (last check-in was yesterday in
their time zone) but who have not checked in today.
"""

import logging
import math
from typing import Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from common.utils.clock import Clock, previous_day
from engagement.database import collections
from engagement.services.notifications.notification_sink import NotificationSink
from engagement.services.notifications.templates import StreakWarning

logger = logging.getLogger(__name__)

MIN_HOURS_LEFT = 2
MAX_HOURS_LEFT = 18


class StreakWarningService:
    """Sends STREAK_WARNING notifications to users about to lose a streak."""

    def __init__(self, db: AsyncIOMotorDatabase, sink: NotificationSink, clock: Optional[Clock] = None):
        self._users = db[collections.USERS]
        self._sink = sink
        self._clock = clock or Clock()

    async def send_streak_warnings(self) -> Dict[str, int]:
        """
        Warn every active employee whose streak ends tonight.

        Returns:
            Dict with ``warningsSent`` and ``errors`` counts
        """
        logger.info("Checking for users at risk of losing their streak")

        cursor = self._users.find(
            {
                "wellness.currentStreak": {"$gt": 0},
                "wellness.lastCheckInDay": {"$ne": None},
                "isActive": True,
                "role": "employee",
            },
            {"wellness": 1, "timezone": 1},
        )

        warnings_sent = 0
        errors = 0

        async for user in cursor:
            try:
                tz = user.get("timezone")
                today = self._clock.day_of(tz=tz)
                if user["wellness"]["lastCheckInDay"] != previous_day(today):
                    continue

                hours_left = math.ceil(self._clock.hours_until_local_midnight(tz))
                if not MIN_HOURS_LEFT < hours_left <= MAX_HOURS_LEFT:
                    continue

                sent = await self._sink.emit(
                    str(user["_id"]),
                    StreakWarning(
                        current_streak=user["wellness"]["currentStreak"],
                        hours_left=hours_left,
                    ),
                )
                if sent:
                    warnings_sent += 1
            except Exception:
                logger.exception(f"Error checking streak for user {user['_id']}")
                errors += 1

        logger.info(f"Streak warning check completed: {warnings_sent} warnings sent, {errors} errors")
        return {"warningsSent": warnings_sent, "errors": errors}
