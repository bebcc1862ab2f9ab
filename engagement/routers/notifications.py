"""
Notification API endpoints.

Handles in-app notification retrieval and read state.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from common.utils import paginated_response, success_response
from engagement.dependencies import CurrentUser, get_notification_sink
from engagement.schemas.notifications import MarkReadRequest
from engagement.services.notifications import NotificationSink

router = APIRouter(prefix="/notifications", tags=["Notifications"])

Sink = Annotated[NotificationSink, Depends(get_notification_sink)]


# =============================================================================
# Notification Endpoints
# =============================================================================

@router.get("")
async def get_notifications(
    user: CurrentUser,
    sink: Sink,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unreadOnly: bool = Query(False),
    notification_type: Optional[str] = Query(None, alias="type"),
    priority: Optional[str] = Query(None),
):
    """
    Get notifications for the current user, most urgent first.

    Args:
        page: Page number (1-indexed)
        limit: Page size (1-100, default 20)
        unreadOnly: Only unread notifications
        type: Filter by notification type
        priority: Filter by priority
    """
    user_id = str(user["_id"])
    result = await sink.list_for_user(
        user_id,
        page=page,
        limit=limit,
        unread_only=unreadOnly,
        notification_type=notification_type,
        priority=priority,
    )
    unread = await sink.unread_count(user_id)
    return paginated_response(result["items"], total=result["total"], page=page, limit=limit, extra={"unreadCount": unread})


@router.get("/unread-count")
async def get_unread_count(user: CurrentUser, sink: Sink):
    return success_response({"unreadCount": await sink.unread_count(str(user["_id"]))})


@router.post("/mark-read")
async def mark_read(body: MarkReadRequest, user: CurrentUser, sink: Sink):
    """Mark the given notifications (or all unread ones) as read."""
    modified = await sink.mark_read(str(user["_id"]), body.ids)
    return success_response({"modified": modified}, message=f"{modified} notifications marked as read")
