"""
db/redis_client.py
-------------------
redis-py client — singleton plus helpers for the itinerary key schema.

Key schema:

  {prefix}:{itinerary_id}
       Type : String (JSON itinerary record, see schemas/itinerary.py)
       TTL  : none — itineraries persist until deleted

  {prefix}:index
       Type : Set of itinerary ids

A record and its index membership are always written or removed together in
one MULTI/EXEC transaction, so a reader never sees a half-saved itinerary.

Environment variables (set in config.py):
    REDIS_HOST            default: localhost
    REDIS_PORT            default: 6379
    REDIS_DB              default: 0
    REDIS_PASSWORD        default: ""  (empty = no auth)
    ITINERARY_KEY_PREFIX  default: itinerary
"""

from __future__ import annotations

import json
from typing import Any

import redis

import config

# Module-level singleton; initialised lazily on first call to get_redis()
_client: redis.Redis | None = None


def get_redis() -> redis.Redis:
    """Return the singleton Redis client, creating it on first call."""
    global _client
    if _client is None:
        kwargs: dict[str, Any] = {
            "host":             config.REDIS_HOST,
            "port":             config.REDIS_PORT,
            "db":               config.REDIS_DB,
            "decode_responses": True,   # return str, not bytes
        }
        if config.REDIS_PASSWORD:
            kwargs["password"] = config.REDIS_PASSWORD
        _client = redis.Redis(**kwargs)
    return _client


# ── Itinerary records ──────────────────────────────────────────────────────────

def _record_key(prefix: str, itinerary_id: str) -> str:
    return f"{prefix}:{itinerary_id}"


def _index_key(prefix: str) -> str:
    return f"{prefix}:index"


def save_itinerary_record(
    record: dict[str, Any],
    client: redis.Redis | None = None,
    prefix: str = config.ITINERARY_KEY_PREFIX,
) -> None:
    """Write one itinerary record and its index entry atomically."""
    r = client or get_redis()
    payload = json.dumps(record, ensure_ascii=False)
    pipe = r.pipeline(transaction=True)
    pipe.set(_record_key(prefix, record["id"]), payload)
    pipe.sadd(_index_key(prefix), record["id"])
    pipe.execute()


def delete_itinerary_record(
    itinerary_id: str,
    client: redis.Redis | None = None,
    prefix: str = config.ITINERARY_KEY_PREFIX,
) -> None:
    r = client or get_redis()
    pipe = r.pipeline(transaction=True)
    pipe.delete(_record_key(prefix, itinerary_id))
    pipe.srem(_index_key(prefix), itinerary_id)
    pipe.execute()


def load_itinerary_records(
    client: redis.Redis | None = None,
    prefix: str = config.ITINERARY_KEY_PREFIX,
) -> list[dict[str, Any]]:
    """
    Return every indexed itinerary record, sorted by id.

    Index entries whose record key has vanished are skipped.
    """
    r = client or get_redis()
    ids = sorted(r.smembers(_index_key(prefix)))
    if not ids:
        return []
    raw = r.mget([_record_key(prefix, i) for i in ids])
    return [json.loads(v) for v in raw if v is not None]
