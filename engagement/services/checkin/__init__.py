"""
Check-in services - storage, analytics and the check-in processor.
"""

from engagement.services.checkin.checkin_service import CheckInService
from engagement.services.checkin.checkin_analytics import CheckInAnalytics
from engagement.services.checkin.checkin_processor import CheckInProcessor

__all__ = ["CheckInService", "CheckInAnalytics", "CheckInProcessor"]
