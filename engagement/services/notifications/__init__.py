"""
Notification services - persistence, templates and outbound channels.
"""

from engagement.services.notifications.notification_sink import NotificationSink, format_notification
from engagement.services.notifications import templates

__all__ = ["NotificationSink", "format_notification", "templates"]
