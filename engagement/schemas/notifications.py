"""
Pydantic models for notification requests.
"""

from typing import List, Optional

from pydantic import BaseModel


class MarkReadRequest(BaseModel):
    """POST /api/notifications/mark-read

    Omit ``ids`` to mark every unread notification.
    """
    ids: Optional[List[str]] = None
