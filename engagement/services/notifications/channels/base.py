"""
Notification channel interface.

A channel delivers an already-persisted notification to one external
system. Channels raise ``ChannelError`` on failure; the sink records the
outcome and never lets it reach the caller.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

from engagement.services.notifications.templates import RenderedNotification


class ChannelError(Exception):
    """External delivery failed (integration error, non-fatal)."""


class ChannelUnavailable(ChannelError):
    """The recipient has no address on this channel."""


class NotificationChannel(ABC):
    """One outbound delivery channel (email, WhatsApp, Slack)."""

    name: str

    @abstractmethod
    async def send(self, user: Dict[str, Any], notification: RenderedNotification) -> None:
        """
        Deliver ``notification`` to ``user``.

        Raises:
            ChannelUnavailable: The user has no address for this channel
            ChannelError: Delivery failed
        """
        pass

    async def aclose(self) -> None:
        """Release network resources held by the channel."""
        return None
