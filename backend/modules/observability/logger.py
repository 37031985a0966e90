"""
Structured JSON event log — append-only, one object per line (.jsonl).

Usage:
    from modules.observability.logger import StructuredLogger

    logger = StructuredLogger()
    logger.attach(store.bus)            # every store event → logs/<itinerary_id>.jsonl
    logger.log("itinerary_abc", "note", {"source": "admin"})

Logs are written to  logs/<itinerary_id>.jsonl  relative to the backend/ root.
Events that carry no itinerary id go to logs/store.jsonl.
"""

from __future__ import annotations

import json
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from modules.store.event_bus import WILDCARD, Event, EventBus

# logs/ directory lives alongside backend/config.py
_LOGS_DIR: Path = Path(__file__).resolve().parents[2] / "logs"
_DEFAULT_STREAM = "store"


class StructuredLogger:
    """Thread-safe, append-only JSONL logger."""

    def __init__(self, logs_dir: Path | str | None = None) -> None:
        self._logs_dir = Path(logs_dir) if logs_dir else _LOGS_DIR
        self._lock = threading.Lock()
        self._handles: dict[str, Any] = {}  # stream -> file handle

    # ── public API ────────────────────────────────────────────────────────

    def log(self, stream: str, event_type: str, payload: dict) -> None:
        """Append one structured JSON record to ``<stream>.jsonl``."""
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "stream": stream,
            "event_type": event_type,
            "payload": payload,
        }
        line = json.dumps(record, default=str, ensure_ascii=False) + "\n"

        with self._lock:
            fh = self._handles.get(stream)
            if fh is None:
                fh = self._open(stream)
            fh.write(line)
            fh.flush()

    def attach(self, bus: EventBus) -> None:
        """Subscribe to every topic on *bus*."""
        bus.subscribe(WILDCARD, self.handle_event)

    def handle_event(self, event: Event) -> None:
        self.log(event.itinerary_id or _DEFAULT_STREAM, event.topic, _summarize(event))

    def close(self, stream: str | None = None) -> None:
        """Close one or all open file handles."""
        with self._lock:
            if stream:
                fh = self._handles.pop(stream, None)
                if fh:
                    fh.close()
            else:
                for fh in self._handles.values():
                    fh.close()
                self._handles.clear()

    # ── internals ─────────────────────────────────────────────────────────

    def _open(self, stream: str):  # noqa: ANN202
        os.makedirs(self._logs_dir, exist_ok=True)
        path = self._logs_dir / f"{stream}.jsonl"
        fh = open(path, "a", encoding="utf-8")  # noqa: SIM115
        self._handles[stream] = fh
        return fh


def _summarize(event: Event) -> dict:
    """Flatten an event payload to ids and counts; full itineraries stay out of the log."""
    out: dict[str, Any] = {}
    for key, value in event.payload.items():
        if key in ("itinerary", "original_itinerary") and value is not None:
            out[f"{key}_id"] = value.id
            out[f"{key}_experiences"] = value.total_experiences()
        elif key == "experience" and value is not None:
            out["experience_id"] = value.id
        else:
            out[key] = value
    return out
