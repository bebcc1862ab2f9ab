"""
WhatsApp Cloud API channel.

Sends plain text messages through the Graph API messages endpoint.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from engagement.services.notifications.channels.base import (
    ChannelError,
    ChannelUnavailable,
    NotificationChannel,
)
from engagement.services.notifications.templates import RenderedNotification

logger = logging.getLogger(__name__)

GRAPH_API_URL = "https://graph.facebook.com"


class WhatsAppChannel(NotificationChannel):
    """WhatsApp text-message delivery."""

    name = "whatsapp"

    def __init__(
        self,
        access_token: str,
        phone_number_id: str,
        api_version: str = "v18.0",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._phone_number_id = phone_number_id
        self._client = client or httpx.AsyncClient(
            base_url=f"{GRAPH_API_URL}/{api_version}",
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

    @staticmethod
    def format_phone_number(phone: str) -> str:
        """Strip everything but digits (the API expects E.164 without '+')."""
        return "".join(ch for ch in phone if ch.isdigit())

    async def send(self, user: Dict[str, Any], notification: RenderedNotification) -> None:
        phone = ((user.get("integrations") or {}).get("whatsapp") or {}).get("phone")
        if not phone:
            raise ChannelUnavailable("User has no WhatsApp number")

        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": self.format_phone_number(phone),
            "type": "text",
            "text": {"body": f"*{notification.title}*\n{notification.message}"},
        }

        try:
            response = await self._client.post(f"/{self._phone_number_id}/messages", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ChannelError(
                f"WhatsApp API returned {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise ChannelError(f"WhatsApp request failed: {e}") from e

        logger.info(f"WhatsApp message sent to user {user.get('_id')}")

    async def aclose(self) -> None:
        await self._client.aclose()
