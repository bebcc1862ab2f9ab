"""
FastAPI router for reward redemption.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from common.utils import success_response
from engagement.dependencies import CurrentUser, get_reward_service
from engagement.pipelines import rewards as pipelines
from engagement.schemas.rewards import RedeemRequest
from engagement.services.rewards import RewardService

router = APIRouter(prefix="/rewards", tags=["rewards"])


@router.post("/{reward_id}/redeem", status_code=201)
async def redeem_reward(
    reward_id: str,
    user: CurrentUser,
    rewards: Annotated[RewardService, Depends(get_reward_service)],
    body: RedeemRequest = RedeemRequest(),
):
    """
    Redeem a reward for Happy Coins.

    Responds 409 with INSUFFICIENT_FUNDS when the balance does not cover the cost.
    """
    result = await pipelines.redeem_reward_pipeline(
        rewards,
        str(user["_id"]),
        reward_id,
        body.fulfillment.model_dump(exclude_none=True),
    )
    return success_response(result, message="Reward redeemed successfully")
