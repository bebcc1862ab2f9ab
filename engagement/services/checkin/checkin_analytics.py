"""
Check-in analytics service.

Mood statistics for history pages and mood trend direction.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from common.utils.clock import Clock
from engagement.services.checkin.checkin_service import CheckInService
from engagement.services.notifications.templates import MOOD_LABELS

logger = logging.getLogger(__name__)

# Recent-vs-older average difference that counts as a real change
TREND_THRESHOLD = 0.3
RECENT_WINDOW = 3


class CheckInAnalytics:
    """
    Analytics and data formatting for check-ins.
    """

    def __init__(self, checkin_service: CheckInService, clock: Optional[Clock] = None):
        """
        Initialize CheckInAnalytics.

        Args:
            checkin_service: For fetching check-in data
            clock: Source of the current instant
        """
        self._checkin_service = checkin_service
        self._clock = clock or Clock()

    async def mood_statistics(
        self,
        user_id: str,
        start_day: Optional[str] = None,
        end_day: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Aggregate mood statistics over a day range.

        Returns:
            dict with totalCheckIns, averageMood and moodDistribution
        """
        moods = await self._checkin_service.get_moods(user_id, start_day, end_day)

        distribution = {str(level): 0 for level in range(1, 6)}
        for mood in moods:
            distribution[str(mood)] = distribution.get(str(mood), 0) + 1

        return {
            "totalCheckIns": len(moods),
            "averageMood": round(sum(moods) / len(moods), 2) if moods else 0,
            "moodDistribution": distribution,
        }

    async def mood_trend(self, user_id: str, days: int = 7, tz: Optional[str] = None) -> Dict[str, Any]:
        """
        Mood series for the last ``days`` days with its direction.

        Returns:
            dict with ``trend`` points and an ``analysis`` summary
        """
        start_day = self._clock.day_of(self._clock.now() - timedelta(days=days), tz)
        checkins = await self._checkin_service.get_since(user_id, start_day)

        moods = [c["mood"] for c in checkins]
        direction = self.calculate_trend_direction(moods)

        return {
            "trend": [
                {"date": c["day"], "mood": c["mood"], "moodLabel": MOOD_LABELS.get(c["mood"])}
                for c in checkins
            ],
            "analysis": {
                "direction": direction["direction"],
                "change": direction["change"],
                "period": f"{days} days",
                "averageMood": direction["average"],
            },
        }

    @staticmethod
    def calculate_trend_direction(moods: List[int]) -> Dict[str, Any]:
        """
        Compare the average of the last three moods with the older ones.

        Args:
            moods: Mood values, oldest first

        Returns:
            dict with direction (improving, declining, stable), change and average
        """
        if len(moods) < 2:
            return {"direction": "stable", "change": 0, "average": moods[0] if moods else 0}

        recent = moods[-RECENT_WINDOW:]
        older = moods[:-RECENT_WINDOW]

        recent_avg = sum(recent) / len(recent)
        older_avg = sum(older) / len(older) if older else recent_avg
        change = recent_avg - older_avg

        direction = "stable"
        if change > TREND_THRESHOLD:
            direction = "improving"
        elif change < -TREND_THRESHOLD:
            direction = "declining"

        return {
            "direction": direction,
            "change": round(change, 2),
            "average": round(sum(moods) / len(moods), 2),
        }
