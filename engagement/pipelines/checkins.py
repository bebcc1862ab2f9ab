"""
Check-in pipeline functions.

Stateless orchestration logic for check-in operations.
"""

import logging
from typing import Any, Dict, Optional

from common.utils.exceptions import raise_for_outcome
from engagement.services.checkin import CheckInProcessor

logger = logging.getLogger(__name__)


async def submit_checkin_pipeline(
    processor: CheckInProcessor,
    user_id: str,
    mood: int,
    note: Optional[str] = None,
    source: str = "web",
) -> Dict[str, Any]:
    """
    Orchestrates the check-in submission flow.

    Args:
        processor: Check-in processor
        user_id: Current user's ID
        mood: Mood 1-5
        note: Optional note
        source: Submission channel

    Returns:
        The check-in receipt

    Raises:
        ConflictException: ALREADY_CHECKED_IN_TODAY
        BadRequestException: Invalid input
    """
    outcome = await processor.submit(user_id, mood, note=note, source=source)
    return raise_for_outcome(outcome)


async def get_history_pipeline(
    processor: CheckInProcessor,
    user_id: str,
    page: int,
    limit: int,
    start_day: Optional[str] = None,
    end_day: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Get check-in history for a page plus statistics for the whole range.

    Returns:
        dict with items, total, page, limit and statistics
    """
    result = await processor.get_history(user_id, page=page, limit=limit, start_day=start_day, end_day=end_day)
    return {**result, "page": page, "limit": limit}
