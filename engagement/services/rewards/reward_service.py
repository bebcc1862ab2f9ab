"""
Reward redemption.

Stock is reserved with a conditional decrement before coins are debited;
if the debit fails the reservation is released. Unlimited rewards carry
``availability.quantity == -1`` and skip the reservation.
"""

import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from common.events import EventBus
from common.utils.clock import Clock
from common.utils.outcomes import Outcome
from engagement.database import collections
from engagement.events import RewardRedeemed
from engagement.services.notifications.notification_sink import NotificationSink
from engagement.services.notifications.templates import RewardRedeemedNotice
from engagement.services.wellness.ledger_service import CreditReason, WellnessLedger

logger = logging.getLogger(__name__)

FULFILLMENT_METHODS = ("email", "pickup", "delivery", "digital")
UNLIMITED = -1
CODE_PREFIX = "WA"
CODE_ATTEMPTS = 3
BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36[remainder])
    return "".join(reversed(digits))


def generate_redemption_code(timestamp_ms: int) -> str:
    """``WA-<timestamp base36>-<4 random base36 chars>``"""
    random_part = "".join(secrets.choice(BASE36) for _ in range(4))
    return f"{CODE_PREFIX}-{_base36(timestamp_ms)}-{random_part}"


def is_available(reward: Dict[str, Any], now) -> bool:
    availability = reward.get("availability") or {}
    quantity = availability.get("quantity", UNLIMITED)
    start, end = availability.get("startDate"), availability.get("endDate")
    return (
        availability.get("isActive", True)
        and (quantity == UNLIMITED or quantity > 0)
        and (start is None or start <= now)
        and (end is None or end >= now)
    )


class RewardService:
    """Redeems rewards for Happy Coins."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        ledger: WellnessLedger,
        sink: NotificationSink,
        bus: EventBus,
        clock: Optional[Clock] = None,
    ):
        self._rewards_collection = db[collections.REWARDS]
        self._redemptions_collection = db[collections.REDEMPTIONS]
        self._ledger = ledger
        self._sink = sink
        self._bus = bus
        self._clock = clock or Clock()

    async def _reserve(self, reward: Dict[str, Any]) -> bool:
        if (reward.get("availability") or {}).get("quantity", UNLIMITED) == UNLIMITED:
            return True
        reserved = await self._rewards_collection.find_one_and_update(
            {"_id": reward["_id"], "availability.quantity": {"$gt": 0}},
            {"$inc": {"availability.quantity": -1}},
        )
        return reserved is not None

    async def _release(self, reward: Dict[str, Any]) -> None:
        if (reward.get("availability") or {}).get("quantity", UNLIMITED) == UNLIMITED:
            return
        await self._rewards_collection.update_one(
            {"_id": reward["_id"]},
            {"$inc": {"availability.quantity": 1}},
        )

    async def redeem_reward(
        self,
        user_id: str,
        reward_id: str,
        fulfillment: Optional[Dict[str, Any]] = None,
    ) -> Outcome[Dict[str, Any]]:
        """
        Exchange Happy Coins for a reward.

        Args:
            user_id: Redeeming user
            reward_id: Reward to redeem
            fulfillment: ``{method, address?, email?, phone?, notes?}``

        Returns:
            Outcome with the redemption and remaining balance, or
            REWARD_NOT_FOUND / REWARD_UNAVAILABLE / INSUFFICIENT_FUNDS failures
        """
        fulfillment = dict(fulfillment or {"method": "digital"})
        if fulfillment.get("method") not in FULFILLMENT_METHODS:
            return Outcome.validation(
                f"Fulfillment method must be one of: {', '.join(FULFILLMENT_METHODS)}",
                code="INVALID_FULFILLMENT",
            )

        try:
            reward = await self._rewards_collection.find_one({"_id": ObjectId(reward_id)})
        except (InvalidId, TypeError):
            reward = None
        if not reward:
            return Outcome.not_found("Reward not found", code="REWARD_NOT_FOUND")

        now = self._clock.now()
        if not is_available(reward, now):
            return Outcome.conflict("Reward is not available for redemption", code="REWARD_UNAVAILABLE")

        if not await self._reserve(reward):
            return Outcome.conflict("Reward is out of stock", code="REWARD_UNAVAILABLE")

        cost = int(reward.get("cost", 0))
        balance = None
        if cost > 0:
            debited = await self._ledger.debit_coins(
                user_id,
                cost,
                CreditReason(source="reward", description=f"Redeemed {reward['name']}"),
            )
            if not debited.ok:
                await self._release(reward)
                return debited
            balance = debited.value.balance

        redemption = {
            "userId": ObjectId(user_id),
            "rewardId": reward["_id"],
            "reward": {
                "name": reward["name"],
                "category": reward.get("category"),
                "cost": cost,
                "value": reward.get("value"),
            },
            "status": "pending",
            "happyCoinsSpent": cost,
            "fulfillment": fulfillment,
            "voucherDetails": {},
            "timeline": {"requestedAt": now},
            "createdAt": now,
            "updatedAt": now,
        }
        expiry_days = (reward.get("redemptionDetails") or {}).get("expiryDays", 30)
        if expiry_days:
            redemption["voucherDetails"]["expiryDate"] = now + timedelta(days=expiry_days)

        timestamp_ms = int(now.timestamp() * 1000)
        for attempt in range(CODE_ATTEMPTS):
            redemption["redemptionCode"] = generate_redemption_code(timestamp_ms)
            redemption.pop("_id", None)
            try:
                result = await self._redemptions_collection.insert_one(redemption)
                redemption["_id"] = result.inserted_id
                break
            except DuplicateKeyError:
                if attempt == CODE_ATTEMPTS - 1:
                    raise

        await self._rewards_collection.update_one(
            {"_id": reward["_id"]},
            {"$inc": {"analytics.totalRedemptions": 1}},
        )
        logger.info(f"User {user_id} redeemed reward {reward_id} ({redemption['redemptionCode']})")

        if cost > 0:
            await self._sink.emit(
                user_id,
                RewardRedeemedNotice(
                    reward_name=reward["name"],
                    coins_spent=cost,
                    redemption_code=redemption["redemptionCode"],
                ),
            )

        await self._bus.publish(RewardRedeemed(
            user_id=user_id,
            reward_id=str(reward["_id"]),
            redemption_id=str(redemption["_id"]),
            cost=cost,
        ))

        if balance is None:
            balance = (await self._ledger.get_wellness(user_id) or {}).get("happyCoins", 0)

        expiry = redemption["voucherDetails"].get("expiryDate")
        return Outcome.success({
            "redemption": {
                "id": str(redemption["_id"]),
                "redemptionCode": redemption["redemptionCode"],
                "status": redemption["status"],
                "happyCoinsSpent": cost,
                "expiryDate": expiry.isoformat() if expiry else None,
            },
            "remainingHappyCoins": balance,
        })
