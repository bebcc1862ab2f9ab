"""
Domain events published on the engagement event bus.

Producers import only this module, never their consumers.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class CheckInRecorded:
    user_id: str
    check_in_id: str
    mood: int
    day: str
    previous_streak: int
    new_streak: int


@dataclass(frozen=True)
class SurveyCreated:
    survey_id: str
    target_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SurveyClosed:
    survey_id: str


@dataclass(frozen=True)
class SurveyCompleted:
    survey_id: str
    user_id: str
    score: Optional[int] = None


@dataclass(frozen=True)
class RecognitionSent:
    recognition_id: str
    from_user_id: str
    to_user_id: str
    happy_coins: int


@dataclass(frozen=True)
class RewardRedeemed:
    user_id: str
    reward_id: str
    redemption_id: str
    cost: int
