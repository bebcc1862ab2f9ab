"""
Reward services - peer recognition and reward redemption.
"""

from engagement.services.rewards.recognition_service import RecognitionService
from engagement.services.rewards.reward_service import RewardService, generate_redemption_code

__all__ = ["RecognitionService", "RewardService", "generate_redemption_code"]
