"""
Pydantic models for recognition and redemption requests.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class RecognitionRequest(BaseModel):
    """POST /api/recognitions"""
    toUserId: str
    type: Literal["kudos", "thank_you", "great_job", "team_player", "innovation", "leadership"]
    message: str = Field(..., min_length=1, max_length=500)
    category: Literal["collaboration", "innovation", "leadership", "support", "achievement", "other"] = "other"
    visibility: Literal["public", "team", "private"] = "team"
    isAnonymous: bool = False


class FulfillmentRequest(BaseModel):
    method: Literal["email", "pickup", "delivery", "digital"] = "digital"
    address: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)


class RedeemRequest(BaseModel):
    """POST /api/rewards/{id}/redeem"""
    fulfillment: FulfillmentRequest = Field(default_factory=FulfillmentRequest)
