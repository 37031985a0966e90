"""
modules/store/backends.py
--------------------------
Key-value persistence backends for the ItineraryStore.

A backend stores whole itinerary records (plain dicts in the wire format of
schemas/itinerary.py). save() is all-or-nothing per record.

  InMemoryBackend  — JSON strings in a dict; default, used by tests and dev.
  RedisBackend     — db/redis_client.py key schema, MULTI/EXEC per save.

Select with config.MEMORY_BACKEND ("in_memory" | "redis") via build_backend().
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Protocol

import redis

import config
from db import redis_client

logger = logging.getLogger(__name__)


class ItineraryBackend(Protocol):
    def load_all(self) -> list[dict[str, Any]]: ...
    def save(self, record: dict[str, Any]) -> None: ...
    def delete(self, itinerary_id: str) -> None: ...


class InMemoryBackend:
    """
    Holds serialized records so callers can never share mutable state with
    the store through it.
    """

    def __init__(self) -> None:
        self._records: dict[str, str] = {}
        self._lock = threading.Lock()

    def load_all(self) -> list[dict[str, Any]]:
        with self._lock:
            return [json.loads(v) for _, v in sorted(self._records.items())]

    def save(self, record: dict[str, Any]) -> None:
        # Serialize before taking the lock; a bad record never replaces a good one.
        payload = json.dumps(record, ensure_ascii=False)
        with self._lock:
            self._records[record["id"]] = payload

    def delete(self, itinerary_id: str) -> None:
        with self._lock:
            self._records.pop(itinerary_id, None)

    def __len__(self) -> int:
        return len(self._records)


class RedisBackend:
    def __init__(
        self,
        client: redis.Redis | None = None,
        prefix: str = config.ITINERARY_KEY_PREFIX,
    ) -> None:
        self._client = client
        self.prefix = prefix

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis_client.get_redis()
        return self._client

    def load_all(self) -> list[dict[str, Any]]:
        return redis_client.load_itinerary_records(self.client, self.prefix)

    def save(self, record: dict[str, Any]) -> None:
        redis_client.save_itinerary_record(record, self.client, self.prefix)

    def delete(self, itinerary_id: str) -> None:
        redis_client.delete_itinerary_record(itinerary_id, self.client, self.prefix)


def build_backend(kind: str | None = None) -> ItineraryBackend:
    kind = (kind or config.MEMORY_BACKEND).lower()
    if kind == "redis":
        logger.info("Using Redis itinerary backend at %s:%s", config.REDIS_HOST, config.REDIS_PORT)
        return RedisBackend()
    if kind != "in_memory":
        raise ValueError(f"Unknown MEMORY_BACKEND {kind!r} (expected 'in_memory' or 'redis')")
    return InMemoryBackend()
