"""
Pydantic models for check-in requests.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class CheckInRequest(BaseModel):
    """POST /api/checkins"""
    mood: int = Field(..., ge=1, le=5, description="1-5 scale")
    note: Optional[str] = Field(None, max_length=500)
    source: Literal["web", "whatsapp", "slack"] = "web"
