"""
FastAPI router for peer recognition.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from common.utils import success_response
from engagement.dependencies import CurrentUser, get_recognition_service
from engagement.pipelines import rewards as pipelines
from engagement.schemas.rewards import RecognitionRequest
from engagement.services.rewards import RecognitionService

router = APIRouter(prefix="/recognitions", tags=["recognitions"])


@router.post("", status_code=201)
async def send_recognition(
    body: RecognitionRequest,
    user: CurrentUser,
    recognitions: Annotated[RecognitionService, Depends(get_recognition_service)],
):
    result = await pipelines.send_recognition_pipeline(recognitions, str(user["_id"]), body.model_dump())
    return success_response(result, message="Recognition sent successfully")
