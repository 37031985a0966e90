"""
api/dependencies.py
--------------------
FastAPI dependency providers.

The ItineraryStore is built once per process from config (backend selection,
optional JSONL event log) and handed to routes via Depends(get_store).
Tests replace it with app.dependency_overrides[get_store].
"""

from __future__ import annotations

import logging
import threading

import config
from modules.observability.logger import StructuredLogger
from modules.store import ItineraryStore, build_backend

logger = logging.getLogger(__name__)

_store: ItineraryStore | None = None
_store_lock = threading.Lock()


def build_store() -> ItineraryStore:
    store = ItineraryStore(backend=build_backend())
    if config.EVENT_LOG_ENABLED:
        StructuredLogger(config.EVENT_LOG_DIR or None).attach(store.bus)
        logger.info("Event log enabled")
    return store


def get_store() -> ItineraryStore:
    global _store
    with _store_lock:
        if _store is None:
            _store = build_store()
    return _store
