"""
Events module - In-process publish/subscribe.
"""

from common.events.bus import EventBus, EventHandler

__all__ = ["EventBus", "EventHandler"]
