"""
Notification sink.

Persists notifications and fans them out to the user's preferred external
channels. Channel failures are recorded per channel in ``data.delivery`` and
never reach the caller; persistence failures do.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from common.utils.clock import Clock
from engagement.database import collections
from engagement.services.notifications.channels.base import (
    ChannelError,
    ChannelUnavailable,
    NotificationChannel,
)
from engagement.services.notifications.templates import (
    PREFERENCE_KEYS,
    PRIORITY_RANK,
    NotificationTemplate,
    Priority,
    RenderedNotification,
)

logger = logging.getLogger(__name__)

# preferredChannel -> channels to deliver on (in-app is always persisted)
CHANNEL_ROUTES: Dict[str, List[str]] = {
    "email": ["email"],
    "whatsapp": ["whatsapp"],
    "slack": ["slack"],
    "both": ["email", "whatsapp"],
    "inApp": [],
}
DEFAULT_PREFERRED_CHANNEL = "both"

USER_PROJECTION = {
    "name": 1,
    "email": 1,
    "notifications": 1,
    "integrations": 1,
    "role": 1,
    "isActive": 1,
}


class DeliveryStatus:
    ATTEMPTED = "attempted"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"


def _to_object_id(value) -> ObjectId:
    return value if isinstance(value, ObjectId) else ObjectId(value)


def format_notification(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Format a notification document for API responses."""
    return {
        "id": str(doc["_id"]),
        "type": doc["type"],
        "title": doc["title"],
        "message": doc["message"],
        "data": doc.get("data", {}),
        "priority": doc.get("priority", Priority.MEDIUM.value),
        "isRead": doc.get("isRead", False),
        "readAt": doc["readAt"].isoformat() if doc.get("readAt") else None,
        "icon": doc.get("icon", "bell"),
        "actionType": doc.get("actionType", "none"),
        "actionData": doc.get("actionData"),
        "source": doc.get("source", "system"),
        "expiresAt": doc["expiresAt"].isoformat() if doc.get("expiresAt") else None,
        "createdAt": doc["createdAt"].isoformat() if doc.get("createdAt") else None,
    }


class NotificationSink:
    """
    Persists notifications and dispatches them to external channels.

    Channels are registered at startup; a channel that is not registered is
    recorded as ``unavailable`` for every notification routed to it.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Optional[Clock] = None,
        channels: Optional[Iterable[NotificationChannel]] = None,
        channel_timeout: float = 10.0,
    ):
        """
        Initialize NotificationSink.

        Args:
            db: MongoDB database connection
            clock: Source of the current instant
            channels: Configured outbound channels
            channel_timeout: Per-channel delivery timeout in seconds
        """
        self._db = db
        self._collection = db[collections.NOTIFICATIONS]
        self._users = db[collections.USERS]
        self._clock = clock or Clock()
        self._channels: Dict[str, NotificationChannel] = {c.name: c for c in (channels or [])}
        self._channel_timeout = channel_timeout

    def channel(self, name: str) -> Optional[NotificationChannel]:
        return self._channels.get(name)

    @property
    def enabled_channels(self) -> List[str]:
        return sorted(self._channels)

    # ─────────────────────────────────────────────────────────────────
    # Emit
    # ─────────────────────────────────────────────────────────────────

    async def emit(self, user_id: str, template: NotificationTemplate) -> Optional[Dict[str, Any]]:
        """
        Persist a notification for one user and deliver it on their channels.

        Args:
            user_id: Recipient user ID
            template: Typed notification template

        Returns:
            The stored notification document, or None when the user is
            unknown or has opted out of this notification type
        """
        user = await self._users.find_one({"_id": _to_object_id(user_id)}, USER_PROJECTION)
        if not user:
            logger.warning(f"Notification {template.type.value} skipped: user {user_id} not found")
            return None

        rendered = template.render()
        if not self.should_notify(user, rendered):
            logger.info(f"Notification skipped due to user preferences: {rendered.title}")
            return None

        doc = self._build_document(user["_id"], rendered)
        result = await self._collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info(f"Notification created for user {user_id}: {rendered.type.value}")

        await self._dispatch(user, doc, rendered)
        return doc

    async def emit_bulk(
        self,
        user_ids: Iterable[str],
        template: NotificationTemplate,
    ) -> List[Dict[str, Any]]:
        """
        Persist one notification per user in a single batch, then deliver each.

        Per-user channel failures are recorded and do not fail the batch.
        """
        ids = list(dict.fromkeys(_to_object_id(uid) for uid in user_ids))
        if not ids:
            return []

        rendered = template.render()
        cursor = self._users.find({"_id": {"$in": ids}}, USER_PROJECTION)
        users = [u for u in await cursor.to_list(length=None) if self.should_notify(u, rendered)]
        if not users:
            return []

        docs = [self._build_document(user["_id"], rendered) for user in users]
        result = await self._collection.insert_many(docs)
        for doc, inserted_id in zip(docs, result.inserted_ids):
            doc["_id"] = inserted_id

        logger.info(f"{len(docs)} bulk notifications created: {rendered.type.value}")

        for user, doc in zip(users, docs):
            await self._dispatch(user, doc, rendered)
        return docs

    @staticmethod
    def should_notify(user: Dict[str, Any], rendered: RenderedNotification) -> bool:
        """Apply the per-type opt-out flags from ``user.notifications``."""
        preference_key = PREFERENCE_KEYS.get(rendered.type)
        if not preference_key:
            return True
        return (user.get("notifications") or {}).get(preference_key, True) is not False

    def _build_document(self, user_id: ObjectId, rendered: RenderedNotification) -> Dict[str, Any]:
        now = self._clock.now()
        return {
            "userId": user_id,
            "type": rendered.type.value,
            "title": rendered.title,
            "message": rendered.message,
            "data": {**rendered.data, "delivery": {}},
            "priority": rendered.priority.value,
            "priorityRank": PRIORITY_RANK[rendered.priority],
            "isRead": False,
            "readAt": None,
            "icon": rendered.icon,
            "actionType": rendered.actionType,
            "actionData": rendered.actionData,
            "source": rendered.source,
            "expiresAt": rendered.expires_at(now),
            "createdAt": now,
            "updatedAt": now,
        }

    # ─────────────────────────────────────────────────────────────────
    # Channel dispatch
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def route_for(user: Dict[str, Any]) -> List[str]:
        preferred = (user.get("notifications") or {}).get("preferredChannel", DEFAULT_PREFERRED_CHANNEL)
        return CHANNEL_ROUTES.get(preferred, CHANNEL_ROUTES[DEFAULT_PREFERRED_CHANNEL])

    async def _dispatch(
        self,
        user: Dict[str, Any],
        doc: Dict[str, Any],
        rendered: RenderedNotification,
    ) -> None:
        delivery: Dict[str, Dict[str, Any]] = {}
        pending: List[str] = []
        for name in self.route_for(user):
            if name in self._channels:
                delivery[name] = {"status": DeliveryStatus.ATTEMPTED, "at": self._clock.now()}
                pending.append(name)
            else:
                delivery[name] = {
                    "status": DeliveryStatus.UNAVAILABLE,
                    "error": "channel not configured",
                    "at": self._clock.now(),
                }

        if not delivery:
            return
        await self._record_delivery(doc, delivery)
        if not pending:
            return

        for name in pending:
            delivery[name] = await self._deliver(name, user, rendered)
        await self._record_delivery(doc, {name: delivery[name] for name in pending})

    async def _record_delivery(self, doc: Dict[str, Any], delivery: Dict[str, Dict[str, Any]]) -> None:
        doc["data"]["delivery"].update(delivery)
        await self._collection.update_one(
            {"_id": doc["_id"]},
            {"$set": {f"data.delivery.{name}": record for name, record in delivery.items()}},
        )

    async def _deliver(
        self,
        name: str,
        user: Dict[str, Any],
        rendered: RenderedNotification,
    ) -> Dict[str, Any]:
        channel = self._channels[name]
        try:
            await asyncio.wait_for(channel.send(user, rendered), timeout=self._channel_timeout)
            return {"status": DeliveryStatus.SUCCEEDED, "at": self._clock.now()}
        except asyncio.TimeoutError:
            logger.warning(f"{name} delivery to user {user['_id']} timed out after {self._channel_timeout}s")
            return {"status": DeliveryStatus.TIMEOUT, "error": "timeout", "at": self._clock.now()}
        except ChannelUnavailable as e:
            return {"status": DeliveryStatus.UNAVAILABLE, "error": str(e), "at": self._clock.now()}
        except ChannelError as e:
            logger.warning(f"{name} delivery to user {user['_id']} failed: {e}")
            return {"status": DeliveryStatus.FAILED, "error": str(e), "at": self._clock.now()}
        except Exception as e:
            logger.exception(f"{name} delivery to user {user['_id']} raised unexpectedly")
            return {"status": DeliveryStatus.FAILED, "error": f"{type(e).__name__}: {e}", "at": self._clock.now()}

    async def deliver_interactive_survey(self, user: Dict[str, Any], survey: Dict[str, Any]) -> bool:
        """
        Send an interactive Slack survey to ``user``.

        Returns:
            True when Slack accepted the message
        """
        slack = self._channels.get("slack")
        if slack is None:
            return False

        try:
            await asyncio.wait_for(slack.send_survey(user, survey), timeout=self._channel_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Slack survey delivery to user {user['_id']} timed out")
        except ChannelError as e:
            logger.warning(f"Slack survey delivery to user {user['_id']} failed: {e}")
        except Exception:
            logger.exception(f"Slack survey delivery to user {user['_id']} raised unexpectedly")
        return False

        try:
            await asyncio.wait_for(slack.send_survey(user, survey), timeout=self._channel_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Slack survey delivery to user {user['_id']} timed out")
        except ChannelError as e:
            logger.warning(f"Slack survey delivery to user {user['_id']} failed: {e}")
        return False

    # ─────────────────────────────────────────────────────────────────
    # Read side
    # ─────────────────────────────────────────────────────────────────

    async def list_for_user(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        unread_only: bool = False,
        notification_type: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Get notifications for a user, most urgent first, then newest.

        Returns:
            Dict with formatted ``items`` and ``total`` matching the filters
        """
        query: Dict[str, Any] = {"userId": _to_object_id(user_id)}
        if unread_only:
            query["isRead"] = False
        if notification_type:
            query["type"] = notification_type
        if priority:
            query["priority"] = priority

        total = await self._collection.count_documents(query)
        cursor = (
            self._collection.find(query)
            .sort([("priorityRank", -1), ("createdAt", -1)])
            .skip((page - 1) * limit)
            .limit(limit)
        )
        docs = await cursor.to_list(length=limit)

        return {"items": [format_notification(d) for d in docs], "total": total}

    async def unread_count(self, user_id: str) -> int:
        return await self._collection.count_documents({
            "userId": _to_object_id(user_id),
            "isRead": False,
        })

    async def mark_read(self, user_id: str, ids: Optional[List[str]] = None) -> int:
        """
        Mark notifications read. Already-read notifications keep their readAt.

        Args:
            user_id: Owner of the notifications
            ids: Notification IDs; all unread notifications when omitted

        Returns:
            Number of notifications changed
        """
        query: Dict[str, Any] = {"userId": _to_object_id(user_id), "isRead": False}
        if ids is not None:
            query["_id"] = {"$in": [_to_object_id(i) for i in ids]}

        now = self._clock.now()
        result = await self._collection.update_many(
            query,
            {"$set": {"isRead": True, "readAt": now, "updatedAt": now}},
        )

        logger.info(f"Marked {result.modified_count} notifications as read for user {user_id}")
        return result.modified_count

    async def gc(self, older_than_days: int = 30) -> int:
        """
        Delete read notifications older than the threshold and expired ones.

        Returns:
            Number of deleted notifications
        """
        now = self._clock.now()
        cutoff = now - timedelta(days=older_than_days)
        result = await self._collection.delete_many({
            "$or": [
                {"isRead": True, "createdAt": {"$lt": cutoff}},
                {"expiresAt": {"$ne": None, "$lt": now}},
            ]
        })

        logger.info(f"Cleaned up {result.deleted_count} old notifications")
        return result.deleted_count

    async def aclose(self) -> None:
        for channel in self._channels.values():
            await channel.aclose()
