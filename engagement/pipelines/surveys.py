"""
Survey pipeline functions.

Stateless orchestration logic for survey administration and responses.
"""

import logging
from typing import Any, Dict, Optional

from common.utils.exceptions import raise_for_outcome
from engagement.services.scheduler import SurveyScheduler
from engagement.services.surveys import SurveyService, format_survey

logger = logging.getLogger(__name__)


async def create_survey_pipeline(
    surveys: SurveyService,
    data: Dict[str, Any],
    created_by: str,
) -> Dict[str, Any]:
    """Store a draft survey and return it formatted."""
    survey = raise_for_outcome(await surveys.create_survey(data, created_by=created_by))
    return format_survey(survey)


async def schedule_survey_pipeline(
    scheduler: SurveyScheduler,
    data: Dict[str, Any],
    schedule: Dict[str, Any],
    created_by: str,
) -> Dict[str, Any]:
    """
    Store a scheduled draft and register its activation job.

    Returns:
        dict with the formatted survey and its schedule
    """
    survey = raise_for_outcome(await scheduler.schedule_custom_survey(data, schedule, created_by=created_by))
    return {
        "survey": format_survey(survey),
        "schedule": {k: v for k, v in survey.get("schedule", {}).items() if k in ("frequency", "dayOfWeek", "time")},
    }


async def transition_survey_pipeline(
    surveys: SurveyService,
    survey_id: str,
    action: str,
) -> Dict[str, Any]:
    """
    Apply an admin lifecycle transition.

    Args:
        surveys: Survey lifecycle manager
        survey_id: Survey to transition
        action: activate, close or archive

    Raises:
        NotFoundException: SURVEY_NOT_FOUND
        ConflictException: INVALID_SURVEY_TRANSITION
    """
    if action == "activate":
        outcome = await surveys.activate_survey(survey_id)
    elif action == "close":
        outcome = await surveys.close_survey(survey_id)
    elif action == "archive":
        outcome = await surveys.archive_survey(survey_id)
    else:
        raise ValueError(f"Unknown survey transition '{action}'")
    return format_survey(raise_for_outcome(outcome))


async def submit_response_pipeline(
    surveys: SurveyService,
    survey_id: str,
    user_id: str,
    answers: Dict[str, Any],
) -> Dict[str, Any]:
    """Record a response; returns score and coins awarded."""
    return raise_for_outcome(await surveys.submit_response(survey_id, user_id, answers))


async def trigger_pulse_pipeline(scheduler: SurveyScheduler) -> Optional[Dict[str, Any]]:
    """Create this week's pulse survey now; None when it already exists."""
    survey = await scheduler.trigger_weekly_pulse()
    return format_survey(survey) if survey else None
