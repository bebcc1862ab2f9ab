"""
Pydantic models for survey requests.

Survey bodies reuse the domain models so the HTTP layer and the scheduler
accept the same shape.
"""

from typing import Any, Dict

from pydantic import BaseModel, Field

from engagement.services.surveys.models import SurveyDefinition, SurveySchedule


class CreateSurveyRequest(SurveyDefinition):
    """POST /api/surveys"""


class ScheduleSurveyRequest(BaseModel):
    """POST /api/surveys/schedule"""
    survey: SurveyDefinition
    schedule: SurveySchedule


class SubmitResponseRequest(BaseModel):
    """POST /api/surveys/{id}/responses"""
    answers: Dict[str, Any] = Field(default_factory=dict)
