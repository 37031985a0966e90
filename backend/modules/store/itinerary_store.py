"""
modules/store/itinerary_store.py
---------------------------------
ItineraryStore — the only process-wide mutable state of the planner.

Responsibilities:
  - keeps Itinerary aggregates in memory, keyed by id
  - loads from / saves to a key-value backend (the only I/O boundary)
  - serializes writers per itinerary id (one RLock per id)
  - publishes lifecycle events on its EventBus after every successful save

Write path (add / remove / optimize):
    lock(id) → copy current → mutate copy → backend.save(copy) → swap in → publish
If any step before the swap fails, the stored itinerary is untouched.

Read path (get / detect_conflicts / export):
    lock(id) → deep copy → release → work on the snapshot
so a reader never observes a half-rewritten day.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterator, Optional

from modules.errors import ItineraryNotFound, ValidationError
from modules.export.itinerary_exporter import ExportArtifact, ItineraryExporter
from modules.planning.conflict_detector import ConflictDetector, ConflictRecord
from modules.planning.itinerary_optimizer import ItineraryOptimizer, UserPreferences
from modules.planning.slot_allocator import AddResult
from modules.store.backends import InMemoryBackend, ItineraryBackend
from modules.store.event_bus import EventBus, EventTopic
from schemas.experience import Experience
from schemas.itinerary import Itinerary
from schemas.settings import PlannerSettings, resolve_settings

logger = logging.getLogger(__name__)


@dataclass
class OptimizeResult:
    success: bool
    itinerary: Optional[Itinerary] = None
    original_itinerary: Optional[Itinerary] = None
    conflicts: list[ConflictRecord] = field(default_factory=list)
    committed: bool = False
    error: Optional[ValidationError] = None


class ItineraryStore:

    def __init__(
        self,
        backend: ItineraryBackend | None = None,
        bus: EventBus | None = None,
        settings: PlannerSettings | None = None,
        autoload: bool = True,
    ) -> None:
        self.backend = backend if backend is not None else InMemoryBackend()
        self.bus = bus or EventBus()
        self.settings = resolve_settings(settings)
        self.optimizer = ItineraryOptimizer(self.settings)
        self.detector = ConflictDetector(settings=self.settings)
        self.exporter = ItineraryExporter(self.detector)

        self._itineraries: dict[str, Itinerary] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()
        self._current_id: Optional[str] = None

        if autoload:
            self.load()

    # ── Persistence ───────────────────────────────────────────────────────────

    def load(self) -> int:
        """
        Replace the in-memory map with the backend's records.

        A record whose days disagree with its date range, or whose entries
        overlap or exceed the per-day cap, raises ScheduleInvariantError;
        nothing is loaded in that case.
        """
        loaded = {}
        for record in self.backend.load_all():
            itinerary = Itinerary.from_dict(record, settings=self.settings)
            loaded[itinerary.id] = itinerary
        with self._registry_lock:
            self._itineraries = loaded
            self._locks = {i: lock for i, lock in self._locks.items() if i in loaded}
            if self._current_id not in loaded:
                self._current_id = None
        logger.info("Loaded %d itinerar%s", len(loaded), "y" if len(loaded) == 1 else "ies")
        return len(loaded)

    def _commit(self, itinerary: Itinerary) -> None:
        """Save then swap in. Caller holds the id's lock."""
        itinerary.check_invariants()
        self.backend.save(itinerary.to_dict())
        with self._registry_lock:
            self._itineraries[itinerary.id] = itinerary

    @contextmanager
    def _locked(self, itinerary_id: str) -> Iterator[Itinerary]:
        with self._registry_lock:
            if itinerary_id not in self._itineraries:
                raise ItineraryNotFound(
                    f"Itinerary {itinerary_id!r} not found", itinerary_id=itinerary_id,
                )
            lock = self._locks.setdefault(itinerary_id, threading.RLock())
        with lock:
            # Re-check: a delete may have won the race for the lock
            itinerary = self._itineraries.get(itinerary_id)
            if itinerary is None:
                raise ItineraryNotFound(
                    f"Itinerary {itinerary_id!r} not found", itinerary_id=itinerary_id,
                )
            yield itinerary

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def create_itinerary(
        self,
        name: str = "",
        description: str = "",
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Itinerary:
        """Raises InvalidDateRange for an empty or over-long range."""
        itinerary = Itinerary.create(
            name=name or f"Trip {len(self._itineraries) + 1}",
            description=description,
            start_date=start_date,
            end_date=end_date,
            settings=self.settings,
        )
        with self._registry_lock:
            lock = self._locks.setdefault(itinerary.id, threading.RLock())
        with lock:
            self._commit(itinerary)
        logger.info("Created itinerary %s (%s)", itinerary.id, itinerary.name)
        snapshot = itinerary.copy()
        self.bus.publish(EventTopic.ITINERARY_CREATED, {"itinerary": snapshot})
        return snapshot

    def get(self, itinerary_id: str) -> Optional[Itinerary]:
        try:
            with self._locked(itinerary_id) as itinerary:
                return itinerary.copy()
        except ItineraryNotFound:
            return None

    def list_itineraries(self) -> list[Itinerary]:
        with self._registry_lock:
            ids = sorted(self._itineraries)
        return [it for it in (self.get(i) for i in ids) if it is not None]

    def delete_itinerary(self, itinerary_id: str) -> bool:
        try:
            with self._locked(itinerary_id) as itinerary:
                self.backend.delete(itinerary_id)
                with self._registry_lock:
                    del self._itineraries[itinerary_id]
                    self._locks.pop(itinerary_id, None)
                    if self._current_id == itinerary_id:
                        self._current_id = None
                name = itinerary.name
        except ItineraryNotFound:
            return False
        logger.info("Deleted itinerary %s (%s)", itinerary_id, name)
        self.bus.publish(EventTopic.ITINERARY_DELETED, {"itinerary_id": itinerary_id})
        return True

    def set_current(self, itinerary_id: str) -> bool:
        snapshot = self.get(itinerary_id)
        if snapshot is None:
            return False
        with self._registry_lock:
            self._current_id = itinerary_id
        self.bus.publish(EventTopic.CURRENT_ITINERARY_CHANGED, {"itinerary": snapshot})
        return True

    @property
    def current(self) -> Optional[Itinerary]:
        current_id = self._current_id
        return self.get(current_id) if current_id else None

    # ── Mutations ─────────────────────────────────────────────────────────────

    def add_experience(
        self,
        itinerary_id: str,
        experience: Experience,
        day_index: int = 0,
        time_slot: datetime | None = None,
        duration: int | None = None,
    ) -> AddResult:
        try:
            with self._locked(itinerary_id) as stored:
                working = stored.copy()
                result = working.add_experience(experience, day_index, time_slot, duration)
                if not result.success:
                    return result
                self._commit(working)
                snapshot = working.copy()
        except ItineraryNotFound as exc:
            return AddResult(success=False, error=exc)

        self.bus.publish(EventTopic.EXPERIENCE_ADDED, {
            "itinerary": snapshot,
            "experience": experience,
            "day_index": day_index,
            "time_slot": result.time_slot,
        })
        return result

    def remove_experience(self, itinerary_id: str, experience_id: str, day_index: int) -> bool:
        try:
            with self._locked(itinerary_id) as stored:
                working = stored.copy()
                if not working.remove_experience(experience_id, day_index):
                    return False
                self._commit(working)
                snapshot = working.copy()
        except ItineraryNotFound:
            return False

        self.bus.publish(EventTopic.EXPERIENCE_REMOVED, {
            "itinerary": snapshot,
            "experience_id": experience_id,
            "day_index": day_index,
        })
        return True

    def preview_optimization(
        self,
        itinerary_id: str,
        user_preferences: UserPreferences | None = None,
    ) -> OptimizeResult:
        """Optimized copy plus its conflict report; nothing is saved."""
        return self._optimize(itinerary_id, user_preferences, commit=False)

    def optimize_itinerary(
        self,
        itinerary_id: str,
        user_preferences: UserPreferences | None = None,
    ) -> OptimizeResult:
        return self._optimize(itinerary_id, user_preferences, commit=True)

    def _optimize(
        self,
        itinerary_id: str,
        user_preferences: UserPreferences | None,
        commit: bool,
    ) -> OptimizeResult:
        try:
            with self._locked(itinerary_id) as stored:
                original = stored.copy()
                optimized = self.optimizer.optimize(stored, user_preferences)
                # Report first: nothing is saved unless detection succeeds
                conflicts = self.detector.detect_conflicts(optimized)
                if commit:
                    self._commit(optimized.copy())
        except ValidationError as exc:
            logger.warning("Optimization of %s failed: %s", itinerary_id, exc.message)
            return OptimizeResult(success=False, error=exc)

        if commit:
            self.bus.publish(EventTopic.ITINERARY_OPTIMIZED, {
                "itinerary": optimized,
                "original_itinerary": original,
            })
        return OptimizeResult(
            success=True,
            itinerary=optimized,
            original_itinerary=original,
            conflicts=conflicts,
            committed=commit,
        )

    # ── Read-only reports ─────────────────────────────────────────────────────

    def detect_conflicts(self, itinerary_id: str) -> list[ConflictRecord]:
        """Raises ItineraryNotFound for an unknown id."""
        with self._locked(itinerary_id) as stored:
            snapshot = stored.copy()
        return self.detector.detect_conflicts(snapshot)

    def export_itinerary(self, itinerary_id: str, fmt: str = "json") -> ExportArtifact:
        """Raises ItineraryNotFound or UnsupportedExportFormat."""
        with self._locked(itinerary_id) as stored:
            snapshot = stored.copy()
        artifact = self.exporter.export(snapshot, fmt)
        self.bus.publish(EventTopic.ITINERARY_EXPORTED, {
            "itinerary": snapshot,
            "format": artifact.format,
        })
        return artifact
