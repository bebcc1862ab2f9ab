"""
In-process event bus.

Topics are event classes. ``publish`` delivers to each subscriber in
registration order on the caller's task. A subscriber that raises is logged
and skipped; the publisher and the remaining subscribers are unaffected.

Example:
    bus = EventBus()
    bus.subscribe(CheckInRecorded, evaluator.on_check_in)
    await bus.publish(CheckInRecorded(user_id="...", ...))
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Type

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], Awaitable[None]]


class EventBus:
    """Topic-keyed async dispatcher with no queue and no back-pressure."""

    def __init__(self):
        self._subscribers: Dict[Type, List[EventHandler]] = {}

    def subscribe(self, topic: Type, handler: EventHandler) -> None:
        """
        Register ``handler`` for events of type ``topic``.

        Registering the same (topic, handler) pair twice is a no-op, so each
        subscriber sees an event at most once.
        """
        handlers = self._subscribers.setdefault(topic, [])
        if handler in handlers:
            return
        handlers.append(handler)
        logger.debug(f"Subscribed {getattr(handler, '__qualname__', handler)} to {topic.__name__}")

    def unsubscribe(self, topic: Type, handler: EventHandler) -> None:
        handlers = self._subscribers.get(topic, [])
        if handler in handlers:
            handlers.remove(handler)

    def subscribers(self, topic: Type) -> List[EventHandler]:
        return list(self._subscribers.get(topic, []))

    async def publish(self, event: Any) -> int:
        """
        Deliver ``event`` to every subscriber of its type.

        Returns:
            Number of subscribers that handled the event without raising
        """
        delivered = 0
        for handler in self.subscribers(type(event)):
            try:
                await handler(event)
                delivered += 1
            except Exception:
                logger.exception(
                    f"Subscriber {getattr(handler, '__qualname__', handler)} "
                    f"failed on {type(event).__name__}"
                )
        return delivered

    def clear(self) -> None:
        self._subscribers.clear()
