"""
modules/store/event_bus.py
---------------------------
Synchronous in-process publish/subscribe used by the ItineraryStore to notify
UI / analytics collaborators after a mutation has been saved.

Handlers subscribe to one EventTopic or to "*" (every topic). A handler that
raises is logged and skipped; the mutation it reports has already been
committed and is not rolled back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

WILDCARD = "*"


class EventTopic(str, Enum):
    ITINERARY_CREATED = "itinerary_created"
    ITINERARY_DELETED = "itinerary_deleted"
    CURRENT_ITINERARY_CHANGED = "current_itinerary_changed"
    EXPERIENCE_ADDED = "experience_added"
    EXPERIENCE_REMOVED = "experience_removed"
    ITINERARY_OPTIMIZED = "itinerary_optimized"
    ITINERARY_EXPORTED = "itinerary_exported"


@dataclass
class Event:
    topic: str
    payload: Dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def itinerary_id(self) -> str | None:
        itinerary = self.payload.get("itinerary")
        if itinerary is not None:
            return itinerary.id
        return self.payload.get("itinerary_id")


Handler = Callable[[Event], None]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, topic: EventTopic | str, handler: Handler) -> None:
        key = topic.value if isinstance(topic, EventTopic) else topic
        self._subscribers.setdefault(key, []).append(handler)

    def unsubscribe(self, topic: EventTopic | str, handler: Handler) -> None:
        key = topic.value if isinstance(topic, EventTopic) else topic
        handlers = self._subscribers.get(key, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, topic: EventTopic | str, payload: Dict[str, Any]) -> Event:
        key = topic.value if isinstance(topic, EventTopic) else topic
        event = Event(topic=key, payload=payload)
        for handler in self._subscribers.get(key, []) + self._subscribers.get(WILDCARD, []):
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler %r failed for %s", handler, key)
        return event
