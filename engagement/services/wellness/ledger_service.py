"""
Wellness ledger.

The only writer of ``users.wellness``: Happy Coins balance, streaks and
check-in totals. Balances move with atomic ``$inc`` updates; debits are
guarded so the balance never goes negative.

Credits that carry a ``key`` are journaled in ``coinCredits`` under the key's
SHA-256. A second credit with the same key inside the retention window is
reported as ``replayed`` and leaves the balance untouched.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from common.utils.clock import Clock, previous_day
from common.utils.outcomes import Outcome
from engagement.database import collections
from engagement.services.notifications.notification_sink import NotificationSink
from engagement.services.notifications.templates import HappyCoinsEarned

logger = logging.getLogger(__name__)

DEFAULT_STREAK_BONUSES = {7: 100, 30: 500, 90: 1500}
BONUS_CREDIT_ATTEMPTS = 2

WELLNESS_DEFAULTS = {
    "happyCoins": 0,
    "currentStreak": 0,
    "longestStreak": 0,
    "lastCheckInDay": None,
    "totalCheckIns": 0,
}


@dataclass(frozen=True)
class CreditReason:
    """Why coins move. ``key`` makes the movement replay-safe."""
    source: str
    key: Optional[str] = None
    notify: bool = False
    description: str = ""


@dataclass
class CoinMovement:
    amount: int
    balance: Optional[int] = None
    replayed: bool = False


@dataclass
class StreakUpdate:
    previous_streak: int
    new_streak: int
    broke_streak: bool = False
    bonuses_credited: List[Dict[str, int]] = field(default_factory=list)
    unchanged: bool = False

    @property
    def bonus_coins(self) -> int:
        return sum(b["coins"] for b in self.bonuses_credited)


def reason_hash(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class WellnessLedger:
    """
    Authoritative per-user wellness counters.

    Streak bonuses are owned here and apply only when the new streak equals
    a configured length exactly.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        sink: NotificationSink,
        clock: Optional[Clock] = None,
        streak_bonuses: Optional[Dict[int, int]] = None,
        replay_window_days: int = 7,
    ):
        """
        Initialize WellnessLedger.

        Args:
            db: MongoDB database connection
            sink: Notification sink for coin notifications
            clock: Source of the current instant
            streak_bonuses: Streak length -> bonus coins
            replay_window_days: How long credit keys are remembered
        """
        self._users = db[collections.USERS]
        self._journal = db[collections.COIN_CREDITS]
        self._sink = sink
        self._clock = clock or Clock()
        self._streak_bonuses = dict(
            sorted((streak_bonuses if streak_bonuses is not None else DEFAULT_STREAK_BONUSES).items())
        )
        self._replay_window = timedelta(days=replay_window_days)

    @property
    def streak_bonuses(self) -> Dict[int, int]:
        return dict(self._streak_bonuses)

    async def get_wellness(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Return the user's wellness subrecord with defaults filled in."""
        user = await self._users.find_one({"_id": ObjectId(user_id)}, {"wellness": 1})
        if not user:
            return None
        return {**WELLNESS_DEFAULTS, **(user.get("wellness") or {})}

    # ─────────────────────────────────────────────────────────────────
    # Coins
    # ─────────────────────────────────────────────────────────────────

    async def _claim_key(self, key: str, user_id: str, amount: int, source: str) -> bool:
        """
        Journal a credit key. Returns False when the key was seen inside the window.
        """
        now = self._clock.now()
        hashed = reason_hash(key)
        try:
            await self._journal.insert_one({
                "reasonKey": hashed,
                "userId": ObjectId(user_id),
                "amount": amount,
                "source": source,
                "createdAt": now,
            })
            return True
        except DuplicateKeyError:
            # An entry past the window is stale even if TTL cleanup has not run yet
            stale = await self._journal.find_one_and_update(
                {"reasonKey": hashed, "createdAt": {"$lt": now - self._replay_window}},
                {"$set": {"createdAt": now, "amount": amount, "source": source}},
            )
            return stale is not None

    async def credit_coins(self, user_id: str, amount: int, reason: CreditReason) -> Outcome[CoinMovement]:
        """
        Add ``amount`` Happy Coins to the user's balance.

        Args:
            user_id: User to credit
            amount: Positive number of coins
            reason: Source, optional replay key and notification flag

        Returns:
            Outcome with the movement; ``replayed=True`` when the key was
            already credited
        """
        if amount <= 0:
            return Outcome.validation("Credit amount must be positive", code="INVALID_AMOUNT")

        if reason.key and not await self._claim_key(reason.key, user_id, amount, reason.source):
            logger.info(f"Credit replay ignored for user {user_id}: {reason.source}")
            return Outcome.success(CoinMovement(amount=amount, replayed=True))

        try:
            updated = await self._users.find_one_and_update(
                {"_id": ObjectId(user_id)},
                {"$inc": {"wellness.happyCoins": amount, "wellness.totalCoinsEarned": amount}},
                projection={"wellness.happyCoins": 1},
                return_document=ReturnDocument.AFTER,
            )
        except Exception:
            # Release the key so a retry is not mistaken for a replay
            if reason.key:
                await self._journal.delete_one({"reasonKey": reason_hash(reason.key)})
            raise
        if updated is None:
            if reason.key:
                await self._journal.delete_one({"reasonKey": reason_hash(reason.key)})
            return Outcome.not_found("User not found", code="USER_NOT_FOUND")

        balance = updated["wellness"]["happyCoins"]
        logger.info(f"Credited {amount} coins to user {user_id} ({reason.source}), balance {balance}")

        if reason.notify:
            await self._sink.emit(
                user_id,
                HappyCoinsEarned(
                    coins_earned=amount,
                    source=reason.source,
                    description=reason.description or None,
                ),
            )

        return Outcome.success(CoinMovement(amount=amount, balance=balance))

    async def debit_coins(self, user_id: str, amount: int, reason: CreditReason) -> Outcome[CoinMovement]:
        """
        Remove ``amount`` Happy Coins if the balance covers it.

        Returns:
            Outcome with the movement, or an INSUFFICIENT_FUNDS failure
        """
        if amount <= 0:
            return Outcome.validation("Debit amount must be positive", code="INVALID_AMOUNT")

        updated = await self._users.find_one_and_update(
            {"_id": ObjectId(user_id), "wellness.happyCoins": {"$gte": amount}},
            {"$inc": {"wellness.happyCoins": -amount, "wellness.totalCoinsSpent": amount}},
            projection={"wellness.happyCoins": 1},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            if not await self._users.find_one({"_id": ObjectId(user_id)}, {"_id": 1}):
                return Outcome.not_found("User not found", code="USER_NOT_FOUND")
            return Outcome.insufficient_funds(details={"required": amount})

        balance = updated["wellness"]["happyCoins"]
        logger.info(f"Debited {amount} coins from user {user_id} ({reason.source}), balance {balance}")
        return Outcome.success(CoinMovement(amount=amount, balance=balance))

    # ─────────────────────────────────────────────────────────────────
    # Streaks
    # ─────────────────────────────────────────────────────────────────

    async def apply_checkin_to_streak(self, user_id: str, day: str) -> Outcome[StreakUpdate]:
        """
        Fold a check-in on ``day`` into the user's streak counters.

        Consecutive day extends the streak, any gap restarts it at 1, and a
        repeat of the last day changes nothing. The write is conditional on
        the ``lastCheckInDay`` that was read.

        Args:
            user_id: User who checked in
            day: Local day bucket of the check-in

        Returns:
            Outcome with the streak transition and credited bonuses
        """
        user = await self._users.find_one({"_id": ObjectId(user_id)}, {"wellness": 1})
        if not user:
            return Outcome.not_found("User not found", code="USER_NOT_FOUND")

        wellness = {**WELLNESS_DEFAULTS, **(user.get("wellness") or {})}
        last = wellness["lastCheckInDay"]
        previous = wellness["currentStreak"]

        if last is not None and last >= day:
            if last > day:
                logger.warning(f"Ignoring check-in day {day} before last check-in {last} for user {user_id}")
                return Outcome.success(StreakUpdate(previous, previous, unchanged=True))
            # Streak already folded in for this day; settle a bonus a failed credit left behind
            update = StreakUpdate(previous, previous, unchanged=True)
            recovered = await self._credit_streak_bonus(user_id, previous, day)
            if recovered:
                update.bonuses_credited.append(recovered)
            return Outcome.success(update)

        if last == previous_day(day):
            new_streak, broke = previous + 1, False
        else:
            new_streak, broke = 1, previous > 0

        result = await self._users.update_one(
            {"_id": ObjectId(user_id), "wellness.lastCheckInDay": last},
            {
                "$set": {
                    "wellness.currentStreak": new_streak,
                    "wellness.longestStreak": max(wellness["longestStreak"], new_streak),
                    "wellness.lastCheckInDay": day,
                },
                "$inc": {"wellness.totalCheckIns": 1},
            },
        )
        if result.matched_count == 0:
            return Outcome.conflict("Streak was updated concurrently", code="STREAK_CONFLICT")

        update = StreakUpdate(previous, new_streak, broke_streak=broke)

        credited = await self._credit_streak_bonus(user_id, new_streak, day)
        if credited:
            update.bonuses_credited.append(credited)

        logger.info(f"Streak for user {user_id}: {previous} -> {new_streak} (broke={broke})")
        return Outcome.success(update)

    async def _credit_streak_bonus(self, user_id: str, streak: int, day: str) -> Optional[Dict[str, int]]:
        """
        Credit the bonus for reaching ``streak`` on ``day``, if one is configured.

        The credit is keyed per streak length and day, so a repeated call
        pays at most once. A failing credit is retried up to
        BONUS_CREDIT_ATTEMPTS times without undoing the streak write.

        Returns:
            ``{"days", "coins"}`` when this call paid the bonus, else None
        """
        bonus = self._streak_bonuses.get(streak)
        if not bonus:
            return None

        reason = CreditReason(
            source="streak",
            key=f"streak:{user_id}:{streak}:{day}",
            description=f"{streak}-day streak bonus",
        )
        for attempt in range(1, BONUS_CREDIT_ATTEMPTS + 1):
            try:
                credited = await self.credit_coins(user_id, bonus, reason)
            except Exception:
                logger.exception(
                    f"Streak bonus credit failed for user {user_id} (attempt {attempt}/{BONUS_CREDIT_ATTEMPTS})"
                )
                continue
            if credited.ok and not credited.value.replayed:
                return {"days": streak, "coins": bonus}
            return None

        logger.error(f"{streak}-day streak bonus not credited to user {user_id} on {day}")
        return None
