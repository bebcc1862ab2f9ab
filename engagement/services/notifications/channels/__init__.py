"""
Outbound notification channels.
"""

from engagement.services.notifications.channels.base import (
    ChannelError,
    ChannelUnavailable,
    NotificationChannel,
)
from engagement.services.notifications.channels.email_channel import EmailChannel
from engagement.services.notifications.channels.whatsapp_channel import WhatsAppChannel
from engagement.services.notifications.channels.slack_channel import SlackChannel

__all__ = [
    "ChannelError",
    "ChannelUnavailable",
    "NotificationChannel",
    "EmailChannel",
    "WhatsAppChannel",
    "SlackChannel",
]
