"""
db/
----
Persistence access layer for the itinerary planner.

Storage architecture:
  Redis (redis-py) — key-value store for itinerary records
    {prefix}:{itinerary_id}   JSON record (schemas/itinerary.py wire format)
    {prefix}:index            set of ids
    schema: db/redis_client.py

Public exports (import from here for convenience):
    from db import get_redis
    from db.redis_client import save_itinerary_record, load_itinerary_records
"""

from db.redis_client import get_redis

__all__ = ["get_redis"]
