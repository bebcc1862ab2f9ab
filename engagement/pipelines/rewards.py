"""
Recognition and redemption pipeline functions.
"""

from typing import Any, Dict, Optional

from common.utils.exceptions import raise_for_outcome
from engagement.services.rewards import RecognitionService, RewardService


async def send_recognition_pipeline(
    recognitions: RecognitionService,
    from_user_id: str,
    body: Dict[str, Any],
) -> Dict[str, Any]:
    outcome = await recognitions.send_recognition(
        from_user_id,
        body["toUserId"],
        body["type"],
        body["message"],
        category=body.get("category", "other"),
        visibility=body.get("visibility", "team"),
        is_anonymous=body.get("isAnonymous", False),
    )
    return raise_for_outcome(outcome)


async def redeem_reward_pipeline(
    rewards: RewardService,
    user_id: str,
    reward_id: str,
    fulfillment: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Redeem a reward.

    Raises:
        NotFoundException: REWARD_NOT_FOUND
        ConflictException: REWARD_UNAVAILABLE or INSUFFICIENT_FUNDS
    """
    return raise_for_outcome(await rewards.redeem_reward(user_id, reward_id, fulfillment))
