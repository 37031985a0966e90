"""
modules/store package — itinerary persistence, locking and lifecycle events.
"""
from modules.store.backends import InMemoryBackend, RedisBackend, build_backend
from modules.store.event_bus import Event, EventBus, EventTopic
from modules.store.itinerary_store import ItineraryStore, OptimizeResult

__all__ = [
    "InMemoryBackend",
    "RedisBackend",
    "build_backend",
    "Event",
    "EventBus",
    "EventTopic",
    "ItineraryStore",
    "OptimizeResult",
]
