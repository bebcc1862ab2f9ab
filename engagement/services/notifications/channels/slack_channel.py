"""
Slack channel.

Direct messages through ``chat.postMessage``, plus interactive survey
delivery rendered as Block Kit blocks.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from engagement.services.notifications.channels.base import (
    ChannelError,
    ChannelUnavailable,
    NotificationChannel,
)
from engagement.services.notifications.templates import RenderedNotification

logger = logging.getLogger(__name__)

SLACK_API_URL = "https://slack.com/api"


def _plain(text: str) -> Dict[str, Any]:
    return {"type": "plain_text", "text": text, "emoji": True}


class SlackChannel(NotificationChannel):
    """Slack bot delivery."""

    name = "slack"

    def __init__(
        self,
        bot_token: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client or httpx.AsyncClient(
            base_url=SLACK_API_URL,
            headers={"Authorization": f"Bearer {bot_token}"},
            timeout=timeout,
        )

    @staticmethod
    def _slack_user_id(user: Dict[str, Any]) -> str:
        slack = (user.get("integrations") or {}).get("slack") or {}
        if not slack.get("isConnected") or not slack.get("userId"):
            raise ChannelUnavailable("User has no connected Slack account")
        return slack["userId"]

    async def _post_message(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._client.post("/chat.postMessage", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ChannelError(f"Slack request failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise ChannelError(f"Slack returned a non-JSON response ({response.status_code})") from e
        if not isinstance(body, dict):
            raise ChannelError("Slack API error: unexpected response body")
        if not body.get("ok"):
            raise ChannelError(f"Slack API error: {body.get('error', 'unknown_error')}")
        return body

    async def send(self, user: Dict[str, Any], notification: RenderedNotification) -> None:
        channel = self._slack_user_id(user)
        await self._post_message({
            "channel": channel,
            "text": f"{notification.title}\n{notification.message}",
            "blocks": [
                {"type": "header", "text": _plain(notification.title)},
                {"type": "section", "text": {"type": "mrkdwn", "text": notification.message}},
            ],
        })
        logger.info(f"Slack message sent to user {user.get('_id')}")

    async def send_survey(self, user: Dict[str, Any], survey: Dict[str, Any]) -> None:
        """Deliver ``survey`` as an interactive Slack message."""
        channel = self._slack_user_id(user)
        await self._post_message({
            "channel": channel,
            "text": f"New survey: {survey['title']}",
            "blocks": self.format_survey_blocks(survey, str(user["_id"])),
        })
        logger.info(f"Slack survey {survey['_id']} sent to user {user.get('_id')}")

    @classmethod
    def format_survey_blocks(cls, survey: Dict[str, Any], user_id: str) -> List[Dict[str, Any]]:
        response_id = f"{user_id}_{survey['_id']}"
        coins = (survey.get("rewards") or {}).get("happyCoins", 0)

        blocks: List[Dict[str, Any]] = [
            {"type": "header", "text": _plain(survey["title"][:150])},
        ]
        if survey.get("description"):
            blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": survey["description"]}})
        blocks.append({
            "type": "context",
            "elements": [{
                "type": "mrkdwn",
                "text": f"🎯 *Priority:* {survey.get('priority', 'medium')} | 💰 *Reward:* {coins} Happy Coins",
            }],
        })
        blocks.append({"type": "divider"})

        questions = survey.get("questions", [])
        for index, question in enumerate(questions):
            blocks.append(cls._question_block(question, index, response_id))
            if index < len(questions) - 1:
                blocks.append({"type": "divider"})

        blocks.append({
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": _plain("Submit Survey"),
                    "style": "primary",
                    "value": response_id,
                    "action_id": "submit_survey",
                },
                {
                    "type": "button",
                    "text": _plain("Cancel"),
                    "value": response_id,
                    "action_id": "cancel_survey",
                },
            ],
        })
        return blocks

    @staticmethod
    def _question_block(question: Dict[str, Any], index: int, response_id: str) -> Dict[str, Any]:
        action_id = f"q_{response_id}_{question['id']}"
        required = question.get("required", False)
        label = f"*{index + 1}. {question['question']}*" + (" *(Required)*" if required else "")
        kind = question.get("type")

        if kind == "scale":
            scale = question.get("scale") or {}
            labels = scale.get("labels") or {}
            options = []
            for value in range(scale.get("min", 1), scale.get("max", 5) + 1):
                text = f"{value} - {labels[str(value)]}" if str(value) in labels else str(value)
                options.append({"text": _plain(text), "value": str(value)})
            return {
                "type": "section",
                "text": {"type": "mrkdwn", "text": label},
                "accessory": {
                    "type": "static_select",
                    "placeholder": _plain("Select rating"),
                    "options": options,
                    "action_id": action_id,
                },
            }

        if kind in ("multiple_choice", "checkbox"):
            return {
                "type": "section",
                "text": {"type": "mrkdwn", "text": label},
                "accessory": {
                    "type": "static_select",
                    "placeholder": _plain("Choose option"),
                    "options": [
                        {"text": _plain(option), "value": option}
                        for option in question.get("options", [])
                    ],
                    "action_id": action_id,
                },
            }

        if kind == "boolean":
            return {
                "type": "section",
                "text": {"type": "mrkdwn", "text": label},
                "accessory": {
                    "type": "radio_buttons",
                    "options": [
                        {"text": _plain("✅ Yes"), "value": "true"},
                        {"text": _plain("❌ No"), "value": "false"},
                    ],
                    "action_id": action_id,
                },
            }

        if kind == "text":
            return {
                "type": "input",
                "block_id": action_id,
                "element": {
                    "type": "plain_text_input",
                    "multiline": True,
                    "action_id": f"{action_id}_input",
                    "placeholder": {"type": "plain_text", "text": "Type your answer here..."},
                },
                "label": _plain(f"{index + 1}. {question['question']}" + (" (Required)" if required else "")),
                "optional": not required,
            }

        return {"type": "section", "text": {"type": "mrkdwn", "text": label}}

    async def aclose(self) -> None:
        await self._client.aclose()
