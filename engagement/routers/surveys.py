"""
FastAPI router for surveys.

Employees list and answer active surveys; HR and admins create, schedule
and transition them.
"""

import logging
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends

from common.utils import success_response
from engagement.dependencies import (
    CurrentUser,
    get_survey_scheduler,
    get_survey_service,
    require_roles,
)
from engagement.pipelines import surveys as pipelines
from engagement.schemas.surveys import (
    CreateSurveyRequest,
    ScheduleSurveyRequest,
    SubmitResponseRequest,
)
from engagement.services.scheduler import SurveyScheduler
from engagement.services.surveys import SurveyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/surveys", tags=["surveys"])

Surveys = Annotated[SurveyService, Depends(get_survey_service)]
Scheduler = Annotated[SurveyScheduler, Depends(get_survey_scheduler)]
Manager = Annotated[Dict[str, Any], Depends(require_roles("hr", "admin"))]
Admin = Annotated[Dict[str, Any], Depends(require_roles("admin"))]


# =============================================================================
# Employee Endpoints
# =============================================================================

@router.get("/active")
async def get_active_surveys(user: CurrentUser, surveys: Surveys):
    active = await surveys.list_active_for_user(str(user["_id"]))
    return success_response({"surveys": active, "count": len(active)})


@router.post("/{survey_id}/responses", status_code=201)
async def submit_response(
    survey_id: str,
    body: SubmitResponseRequest,
    user: CurrentUser,
    surveys: Surveys,
):
    """Submit answers; responds with the score and coins awarded."""
    result = await pipelines.submit_response_pipeline(surveys, survey_id, str(user["_id"]), body.answers)
    return success_response(result, message="Survey response submitted successfully")


# =============================================================================
# Admin Endpoints
# =============================================================================

@router.post("", status_code=201)
async def create_survey(body: CreateSurveyRequest, user: Manager, surveys: Surveys):
    survey = await pipelines.create_survey_pipeline(surveys, body.model_dump(mode="json"), str(user["_id"]))
    return success_response(survey, message="Survey created successfully")


@router.post("/schedule", status_code=201)
async def schedule_survey(body: ScheduleSurveyRequest, user: Manager, scheduler: Scheduler):
    result = await pipelines.schedule_survey_pipeline(
        scheduler,
        body.survey.model_dump(mode="json"),
        body.schedule.model_dump(),
        str(user["_id"]),
    )
    return success_response(result, message="Survey scheduled successfully")


@router.post("/pulse/trigger")
async def trigger_pulse(user: Admin, scheduler: Scheduler):
    survey = await pipelines.trigger_pulse_pipeline(scheduler)
    if survey is None:
        return success_response(None, message="Weekly pulse survey already exists or there are no employees")
    return success_response(survey, message="Weekly pulse survey created")


@router.post("/{survey_id}/activate")
async def activate_survey(survey_id: str, user: Manager, surveys: Surveys):
    survey = await pipelines.transition_survey_pipeline(surveys, survey_id, "activate")
    return success_response(survey, message="Survey activated")


@router.post("/{survey_id}/close")
async def close_survey(survey_id: str, user: Manager, surveys: Surveys):
    survey = await pipelines.transition_survey_pipeline(surveys, survey_id, "close")
    return success_response(survey, message="Survey closed")


@router.post("/{survey_id}/archive")
async def archive_survey(survey_id: str, user: Manager, surveys: Surveys):
    survey = await pipelines.transition_survey_pipeline(surveys, survey_id, "archive")
    return success_response(survey, message="Survey archived")
