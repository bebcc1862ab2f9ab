"""
Email delivery channel.

Supports SMTP and console logging modes.
"""

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Optional

import aiosmtplib

from engagement.services.notifications.channels.base import (
    ChannelError,
    ChannelUnavailable,
    NotificationChannel,
)
from engagement.services.notifications.templates import RenderedNotification

logger = logging.getLogger(__name__)


class EmailChannel(NotificationChannel):
    """
    Email channel with multi-mode support.

    Modes:
        - console: Log emails (development)
        - smtp: Send via SMTP
    """

    name = "email"

    def __init__(
        self,
        mode: str = "console",
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: str = "noreply@wellnessai.app",
        from_name: str = "WellnessAI",
        app_url: str = "http://localhost:3000",
    ):
        self._mode = mode
        self._smtp_host = smtp_host
        self._smtp_port = smtp_port
        self._smtp_user = smtp_user
        self._smtp_password = smtp_password
        self._from_email = from_email
        self._from_name = from_name
        self._app_url = app_url.rstrip("/")

        if self._mode == "smtp" and not self._smtp_host:
            logger.warning("SMTP host not configured, falling back to console mode")
            self._mode = "console"

        logger.info(f"Email channel initialized in {self._mode} mode")

    @property
    def mode(self) -> str:
        return self._mode

    async def send(self, user: Dict[str, Any], notification: RenderedNotification) -> None:
        to = user.get("email")
        if not to:
            raise ChannelUnavailable("User has no email address")

        subject = notification.title
        text = self._render_text(user, notification)
        html = self._render_html(user, notification)

        if self._mode == "console":
            self._send_console(to, subject, text)
            return

        await self._send_smtp(to, subject, html, text)

    def _link(self, notification: RenderedNotification) -> Optional[str]:
        route = (notification.actionData or {}).get("route")
        return f"{self._app_url}{route}" if route else None

    def _render_text(self, user: Dict[str, Any], notification: RenderedNotification) -> str:
        name = user.get("name") or "there"
        link = self._link(notification)
        lines = [f"Hi {name},", "", notification.message]
        if link:
            lines += ["", f"Open WellnessAI: {link}"]
        lines += ["", f"- The {self._from_name} Team"]
        return "\n".join(lines)

    def _render_html(self, user: Dict[str, Any], notification: RenderedNotification) -> str:
        name = user.get("name") or "there"
        link = self._link(notification)
        button = (
            f'<p><a href="{link}" style="background-color: #4F46E5; color: #ffffff; '
            f'padding: 10px 20px; text-decoration: none; border-radius: 6px;">Open WellnessAI</a></p>'
            if link
            else ""
        )
        return f"""
<!DOCTYPE html>
<html>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; color: #333333;">
    <h2 style="margin: 0 0 16px;">{notification.title}</h2>
    <p>Hi {name},</p>
    <p>{notification.message}</p>
    {button}
    <p style="color: #888888; font-size: 12px;">The {self._from_name} Team</p>
</body>
</html>
"""

    def _send_console(self, to: str, subject: str, text: str) -> None:
        """Log email instead of sending it (development mode)."""
        logger.info("EMAIL (console mode)")
        logger.info(f"To: {to}")
        logger.info(f"Subject: {subject}")
        logger.debug(text)

    async def _send_smtp(self, to: str, subject: str, html: str, text: str) -> None:
        """Send email via SMTP."""
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{self._from_name} <{self._from_email}>"
        message["To"] = to

        message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(html, "html"))

        # SSL on 465, STARTTLS otherwise
        use_tls = self._smtp_port == 465

        try:
            await aiosmtplib.send(
                message,
                hostname=self._smtp_host,
                port=self._smtp_port,
                username=self._smtp_user,
                password=self._smtp_password,
                use_tls=use_tls,
                start_tls=not use_tls,
            )
        except aiosmtplib.SMTPException as e:
            raise ChannelError(f"SMTP delivery failed: {e}") from e

        logger.info(f"Email sent via SMTP to {to}")
