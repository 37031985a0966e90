"""
modules/planning/slot_allocator.py
-----------------------------------
Slot Allocator — places one Experience on one ItineraryDay.

Rules (checked in this order, first failure wins, day is never touched on failure):
  1. Duplicate   — the Experience id is already on this day.
  2. Capacity    — the day already holds max_experiences_per_day entries.
  3. Day bounds  — the slot must start on the day's own date.
  4. Overlap     — [start, start + duration) must not intersect any existing
                   entry, including when the slot was computed here.

Next free slot:
  empty day  → day_start (09:00) on the day's date
  otherwise  → latest end time on the day + min_time_between_experiences (30 min)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from modules.errors import (
    DayCapacityExceeded,
    DuplicateExperience,
    ScheduleInvariantError,
    SlotConflict,
    SlotOutsideDay,
    ValidationError,
)
from schemas.experience import Experience
from schemas.itinerary import ItineraryDay, ItineraryExperience
from schemas.settings import PlannerSettings, resolve_settings

logger = logging.getLogger(__name__)


@dataclass
class AddResult:
    """Structured outcome of an add. error is set iff success is False."""
    success: bool
    time_slot: Optional[datetime] = None
    error: Optional[ValidationError] = None

    def to_dict(self) -> dict:
        if self.success:
            return {"success": True, "time_slot": self.time_slot.isoformat()}
        return {"success": False, **self.error.to_dict()}


# ── Interval arithmetic ───────────────────────────────────────────────────────

def intervals_overlap(
    start_a: datetime, minutes_a: int,
    start_b: datetime, minutes_b: int,
) -> bool:
    """Half-open interval test: touching end-to-start is not an overlap."""
    end_a = start_a + timedelta(minutes=minutes_a)
    end_b = start_b + timedelta(minutes=minutes_b)
    return start_a < end_b and end_a > start_b


def find_overlap(
    day: ItineraryDay, start: datetime, duration: int,
) -> Optional[ItineraryExperience]:
    """First existing entry whose interval intersects [start, start + duration)."""
    for entry in day.experiences:
        if intervals_overlap(start, duration, entry.time_slot, entry.duration):
            return entry
    return None


def next_available_slot(day: ItineraryDay, settings: PlannerSettings | None = None) -> datetime:
    s = resolve_settings(settings)
    if not day.experiences:
        return datetime.combine(day.date, s.day_start)
    latest_end = max(e.end_time for e in day.experiences)
    return latest_end + timedelta(minutes=s.min_time_between_experiences)


# ── Public API ────────────────────────────────────────────────────────────────

def add_experience(
    day: ItineraryDay,
    experience: Experience,
    requested_slot: datetime | None = None,
    duration: int | None = None,
    settings: PlannerSettings | None = None,
) -> AddResult:
    """
    Try to schedule *experience* on *day*.

    Returns AddResult(success=True, time_slot=...) after appending and re-sorting,
    or AddResult(success=False, error=<ValidationError>) with the day unchanged.
    """
    s = resolve_settings(settings)
    minutes = int(duration) if duration is not None else s.default_experience_duration

    if day.find(experience.id) is not None:
        return _reject(DuplicateExperience(
            f"Experience {experience.id} is already scheduled on {day.date}",
            experience_id=experience.id,
        ))

    if len(day.experiences) >= s.max_experiences_per_day:
        return _reject(DayCapacityExceeded(
            f"{day.date} already holds the maximum of {s.max_experiences_per_day} experiences",
            max_experiences_per_day=s.max_experiences_per_day,
        ))

    if minutes <= 0:
        return _reject(ValidationError(
            f"Duration must be positive (got {minutes})", duration=minutes,
        ))

    slot = requested_slot if requested_slot is not None else next_available_slot(day, s)

    if slot.date() != day.date:
        return _reject(SlotOutsideDay(
            f"Slot {slot.isoformat()} does not fall on {day.date}",
            time_slot=slot.isoformat(),
        ))

    clash = find_overlap(day, slot, minutes)
    if clash is not None:
        return _reject(SlotConflict(
            f"Slot {slot:%H:%M}-{slot + timedelta(minutes=minutes):%H:%M} overlaps "
            f"{clash.experience.name or clash.experience.id} "
            f"({clash.time_slot:%H:%M}-{clash.end_time:%H:%M})",
            time_slot=slot.isoformat(),
            conflicting_experience_id=clash.experience.id,
        ))

    day.experiences.append(ItineraryExperience(
        experience=experience,
        time_slot=slot,
        duration=minutes,
        added_at=datetime.now(),
    ))
    day.sort_by_time()
    logger.debug("Scheduled %s on %s at %s", experience.id, day.date, slot.isoformat())
    return AddResult(success=True, time_slot=slot)


def remove_experience(day: ItineraryDay, experience_id: str) -> bool:
    """Remove the entry for *experience_id*. Other entries keep their times."""
    for i, entry in enumerate(day.experiences):
        if entry.experience.id == experience_id:
            del day.experiences[i]
            return True
    return False


def assert_day_consistent(day: ItineraryDay) -> None:
    """Raise ScheduleInvariantError if the day is unsorted or has overlapping entries."""
    entries = day.experiences
    for prev, nxt in zip(entries, entries[1:]):
        if prev.time_slot > nxt.time_slot:
            raise ScheduleInvariantError(f"{day.date}: entries are not sorted by time_slot")
        if prev.end_time > nxt.time_slot:
            raise ScheduleInvariantError(
                f"{day.date}: {prev.experience.id} overlaps {nxt.experience.id}"
            )


def _reject(error: ValidationError) -> AddResult:
    logger.info("Add rejected: %s", error.message)
    return AddResult(success=False, error=error)
