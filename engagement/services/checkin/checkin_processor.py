"""
Check-in processor.

Runs a daily check-in through the engagement engine in a fixed order:
record -> streak -> base coins -> mood bonus -> notification -> event.

The stored check-in is authoritative. Once it exists, the remaining steps
are retried a bounded number of times and then logged; every coin credit
carries a key derived from the check-in id so a retry never pays twice.
"""

import logging
from datetime import datetime, time, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from common.events import EventBus
from common.utils.clock import Clock
from common.utils.outcomes import ErrorKind, Outcome
from engagement.database import collections
from engagement.events import CheckInRecorded
from engagement.services.checkin.checkin_analytics import CheckInAnalytics
from engagement.services.checkin.checkin_service import CheckInService
from engagement.services.notifications.notification_sink import NotificationSink
from engagement.services.notifications.templates import (
    MOOD_LABELS,
    CheckInCompleted,
    StreakMilestone,
)
from engagement.services.wellness.ledger_service import CreditReason, StreakUpdate, WellnessLedger

logger = logging.getLogger(__name__)

VALID_SOURCES = ("web", "whatsapp", "slack")
MAX_NOTE_LENGTH = 500
POSITIVE_MOOD = 4
STEP_ATTEMPTS = 3
NEXT_CHECKIN_HOUR = 9


class CheckInProcessor:
    """Validates, records and fans out daily check-ins."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        checkin_service: CheckInService,
        analytics: CheckInAnalytics,
        ledger: WellnessLedger,
        sink: NotificationSink,
        bus: EventBus,
        clock: Optional[Clock] = None,
        daily_checkin_coins: int = 50,
        positive_mood_bonus: int = 25,
    ):
        self._users = db[collections.USERS]
        self._checkins = checkin_service
        self._analytics = analytics
        self._ledger = ledger
        self._sink = sink
        self._bus = bus
        self._clock = clock or Clock()
        self._daily_checkin_coins = daily_checkin_coins
        self._positive_mood_bonus = positive_mood_bonus

    # ─────────────────────────────────────────────────────────────────
    # Submit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def validate(mood: Any, note: Optional[str], source: str) -> Optional[Outcome]:
        """Return a failed outcome for invalid input, None when valid."""
        if isinstance(mood, bool) or not isinstance(mood, int) or not 1 <= mood <= 5:
            return Outcome.validation("Mood must be an integer between 1 and 5", code="INVALID_MOOD")
        if note is not None and len(note) > MAX_NOTE_LENGTH:
            return Outcome.validation(
                f"Note cannot exceed {MAX_NOTE_LENGTH} characters", code="NOTE_TOO_LONG"
            )
        if source not in VALID_SOURCES:
            return Outcome.validation(f"Unknown check-in source '{source}'", code="INVALID_SOURCE")
        return None

    async def submit(
        self,
        user_id: str,
        mood: Any,
        note: Optional[str] = None,
        source: str = "web",
    ) -> Outcome[Dict[str, Any]]:
        """
        Record today's check-in and apply its consequences.

        Args:
            user_id: User checking in
            mood: Mood scalar 1-5
            note: Optional note (max 500 chars)
            source: web, whatsapp or slack

        Returns:
            Outcome with the check-in receipt, or INVALID_MOOD /
            ALREADY_CHECKED_IN_TODAY / USER_NOT_FOUND failures
        """
        invalid = self.validate(mood, note, source)
        if invalid:
            return invalid

        user = await self._users.find_one({"_id": ObjectId(user_id)}, {"timezone": 1})
        if not user:
            return Outcome.not_found("User not found", code="USER_NOT_FOUND")

        day = self._clock.day_of(tz=user.get("timezone"))

        checkin = await self._checkins.record(user_id, day, mood, note, source)
        if checkin is None:
            return Outcome.conflict(
                "You have already checked in today. Come back tomorrow!",
                code="ALREADY_CHECKED_IN_TODAY",
            )
        checkin_id = str(checkin["_id"])

        streak: Optional[StreakUpdate] = await self._attempt(
            "streak", lambda: self._ledger.apply_checkin_to_streak(user_id, day)
        )
        if streak is None:
            wellness = await self._ledger.get_wellness(user_id) or {}
            current = wellness.get("currentStreak", 0)
            streak = StreakUpdate(current, current, unchanged=True)

        base = await self._credit(user_id, self._daily_checkin_coins, f"checkin:{checkin_id}:base", "Daily check-in")
        mood_bonus = 0
        if mood >= POSITIVE_MOOD:
            mood_bonus = await self._credit(
                user_id, self._positive_mood_bonus, f"checkin:{checkin_id}:mood_bonus", "Positive mood bonus"
            )

        coins = {
            "base": base,
            "moodBonus": mood_bonus,
            "streakBonus": streak.bonus_coins,
            "total": base + mood_bonus + streak.bonus_coins,
        }
        milestone = streak.bonuses_credited[0] if streak.bonuses_credited else None

        # One step per notification
        await self._attempt("notification", lambda: self._sink.emit(user_id, CheckInCompleted(
            mood=mood,
            streak=streak.new_streak,
            coins_earned=coins["total"],
            streak_bonus=streak.bonus_coins,
            broke_streak=streak.broke_streak,
        )))
        if milestone:
            await self._attempt("milestone notification", lambda: self._sink.emit(user_id, StreakMilestone(
                streak_days=milestone["days"],
                bonus_coins=milestone["coins"],
            )))

        await self._attempt("checkin outcome", lambda: self._checkins.set_outcome(
            checkin["_id"], coins["total"], streak.new_streak
        ))

        await self._attempt("event", lambda: self._bus.publish(CheckInRecorded(
            user_id=user_id,
            check_in_id=checkin_id,
            mood=mood,
            day=day,
            previous_streak=streak.previous_streak,
            new_streak=streak.new_streak,
        )))

        wellness = await self._ledger.get_wellness(user_id) or {}

        return Outcome.success({
            "checkInId": checkin_id,
            "day": day,
            "mood": mood,
            "moodLabel": MOOD_LABELS[mood],
            "source": source,
            "coinsEarned": coins,
            "streak": {
                "previous": streak.previous_streak,
                "current": streak.new_streak,
                "longest": wellness.get("longestStreak", streak.new_streak),
                "brokeStreak": streak.broke_streak,
            },
            "streakMilestone": milestone,
            "happyCoins": wellness.get("happyCoins", 0),
            "nextCheckIn": self.next_checkin_time(),
        })

    async def _credit(self, user_id: str, amount: int, key: str, description: str) -> int:
        if amount <= 0:
            return 0
        movement = await self._attempt("coins", lambda: self._ledger.credit_coins(
            user_id, amount, CreditReason(source="check_in", key=key, description=description)
        ))
        return amount if movement is not None else 0

    async def _attempt(self, step: str, action: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run a post-record step up to STEP_ATTEMPTS times.

        Outcome-returning steps are retried only on CONFLICT; other failed
        outcomes are final. Returns the outcome value (or plain result), or
        None when the step did not succeed.
        """
        for attempt in range(1, STEP_ATTEMPTS + 1):
            try:
                result = await action()
            except Exception:
                logger.exception(f"Check-in step '{step}' failed (attempt {attempt}/{STEP_ATTEMPTS})")
                continue

            if not isinstance(result, Outcome):
                return result
            if result.ok:
                return result.value
            if result.error.kind != ErrorKind.CONFLICT:
                logger.error(f"Check-in step '{step}' rejected: {result.error.code}")
                return None
            logger.warning(f"Check-in step '{step}' conflicted (attempt {attempt}/{STEP_ATTEMPTS})")

        logger.error(f"Check-in step '{step}' gave up after {STEP_ATTEMPTS} attempts")
        return None

    def next_checkin_time(self) -> str:
        """Tomorrow at 09:00 UTC."""
        tomorrow = self._clock.now().date() + timedelta(days=1)
        return datetime.combine(tomorrow, time(NEXT_CHECKIN_HOUR)).isoformat() + "Z"

    # ─────────────────────────────────────────────────────────────────
    # Read side
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def format_checkin(checkin: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": str(checkin["_id"]),
            "day": checkin["day"],
            "mood": checkin["mood"],
            "moodLabel": MOOD_LABELS.get(checkin["mood"]),
            "note": checkin.get("note"),
            "source": checkin.get("source", "web"),
            "happyCoinsEarned": checkin.get("happyCoinsEarned", 0),
            "streakAtCheckIn": checkin.get("streakAtCheckIn"),
            "isPositive": checkin["mood"] >= POSITIVE_MOOD,
            "createdAt": checkin["createdAt"].isoformat() if checkin.get("createdAt") else None,
        }

    async def _user_tz(self, user_id: str) -> Optional[str]:
        user = await self._users.find_one({"_id": ObjectId(user_id)}, {"timezone": 1})
        return (user or {}).get("timezone")

    async def get_today(self, user_id: str) -> Dict[str, Any]:
        """Today's check-in status for the user."""
        day = self._clock.day_of(tz=await self._user_tz(user_id))
        checkin = await self._checkins.get_for_day(user_id, day)
        return {
            "checkedInToday": checkin is not None,
            "checkIn": self.format_checkin(checkin) if checkin else None,
            "canCheckIn": checkin is None,
            "nextCheckIn": self.next_checkin_time(),
        }

    async def get_history(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 30,
        start_day: Optional[str] = None,
        end_day: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Paginated history plus mood statistics over the same range."""
        offset = (page - 1) * limit
        checkins = await self._checkins.get_history(user_id, start_day, end_day, limit, offset)
        total = await self._checkins.get_total_count(user_id, start_day, end_day)
        statistics = await self._analytics.mood_statistics(user_id, start_day, end_day)
        return {
            "items": [self.format_checkin(c) for c in checkins],
            "total": total,
            "statistics": statistics,
        }

    async def get_mood_trend(self, user_id: str, days: int = 7) -> Dict[str, Any]:
        return await self._analytics.mood_trend(user_id, days, tz=await self._user_tz(user_id))
