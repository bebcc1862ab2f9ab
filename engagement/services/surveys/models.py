"""
Pydantic models for survey definitions.

Questions, audience, rewards and schedule are validated here when a survey
is created, so the lifecycle code can read survey documents without
re-checking their shape.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class SurveyStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"
    ARCHIVED = "archived"


class SurveyType(str, Enum):
    PULSE = "pulse"
    ONBOARDING = "onboarding"
    FEEDBACK = "feedback"
    CUSTOM = "custom"


class SurveyPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class QuestionType(str, Enum):
    SCALE = "scale"
    MULTIPLE_CHOICE = "multiple_choice"
    CHECKBOX = "checkbox"
    TEXT = "text"
    BOOLEAN = "boolean"


class ScaleRange(BaseModel):
    min: int = 1
    max: int = 5
    labels: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_bounds(self):
        if self.max <= self.min:
            raise ValueError("scale.max must be greater than scale.min")
        return self


class SurveyQuestion(BaseModel):
    """A single survey question."""
    id: str = Field(..., min_length=1, max_length=100)
    question: str = Field(..., min_length=1, max_length=500)
    type: QuestionType
    required: bool = True
    options: List[str] = Field(default_factory=list)
    scale: Optional[ScaleRange] = None
    category: Optional[str] = None

    @model_validator(mode="after")
    def check_type_fields(self):
        if self.type == QuestionType.SCALE and self.scale is None:
            self.scale = ScaleRange()
        if self.type in (QuestionType.MULTIPLE_CHOICE, QuestionType.CHECKBOX) and not self.options:
            raise ValueError(f"Question '{self.id}' needs options")
        return self


class TargetAudience(BaseModel):
    all: bool = True
    departments: List[str] = Field(default_factory=list)
    roles: List[str] = Field(default_factory=list)
    specific_users: List[str] = Field(default_factory=list)


class SurveyRewards(BaseModel):
    happyCoins: Optional[int] = Field(None, ge=0)
    badge: Optional[str] = None


class SurveySchedule(BaseModel):
    """Recurring activation for a custom survey."""
    frequency: str = Field("weekly", pattern="^(weekly|biweekly|monthly|once)$")
    dayOfWeek: int = Field(1, ge=0, le=6, description="0=Sunday ... 6=Saturday")
    time: str = Field("09:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    duration: Optional[int] = Field(None, ge=1, description="Days the schedule stays in effect")


class SurveyDefinition(BaseModel):
    """Fields an admin provides when creating a survey."""
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    type: SurveyType = SurveyType.CUSTOM
    priority: SurveyPriority = SurveyPriority.MEDIUM
    dueDate: Optional[datetime] = None
    questions: List[SurveyQuestion] = Field(..., min_length=1)
    targetAudience: TargetAudience = Field(default_factory=TargetAudience)
    rewards: SurveyRewards = Field(default_factory=SurveyRewards)
    category: str = "pulse"

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, value: Any) -> Any:
        # "normal" is accepted as a synonym of medium
        return SurveyPriority.MEDIUM.value if value == "normal" else value

    @field_validator("questions")
    @classmethod
    def unique_question_ids(cls, questions: List[SurveyQuestion]) -> List[SurveyQuestion]:
        ids = [q.id for q in questions]
        if len(ids) != len(set(ids)):
            raise ValueError("Question ids must be unique")
        return questions
