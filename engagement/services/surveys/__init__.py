from engagement.services.surveys.models import (
    SurveyDefinition,
    SurveyPriority,
    SurveySchedule,
    SurveyStatus,
    SurveyType,
)
from engagement.services.surveys.pulse import PULSE_QUESTION_IDS, build_pulse_questions, pulse_title
from engagement.services.surveys.scoring import score_answers, validate_answers
from engagement.services.surveys.survey_service import SurveyService, format_survey

__all__ = [
    "SurveyDefinition",
    "SurveyPriority",
    "SurveySchedule",
    "SurveyStatus",
    "SurveyType",
    "PULSE_QUESTION_IDS",
    "build_pulse_questions",
    "pulse_title",
    "score_answers",
    "validate_answers",
    "SurveyService",
    "format_survey",
]
