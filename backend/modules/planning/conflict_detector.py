"""
modules/planning/conflict_detector.py
--------------------------------------
Read-only feasibility report for an Itinerary.

Per day, on a time-sorted copy of the entries:

  Consecutive pairs (i, i+1), in time order:
    time_overlap              high    end(i) > start(i+1)
    insufficient_travel_time  medium  gap < travel estimate (default_travel_mode) + travel_time_buffer

  Each entry, in time order:
    no_operating_hours        high    hours table has no row for the weekday
    closed_day                high    row for the weekday is marked closed
    outside_operating_hours   high    start time-of-day < open or > close

An Experience with an empty hours table is "hours unknown" and is not checked.
A pair where either side lacks coordinates is skipped for the travel check.

Nothing here mutates the Itinerary; the same input always yields the same list.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from modules.errors import IncompleteExperienceData
from modules.planning.slot_allocator import intervals_overlap
from modules.tool_usage.distance_tool import TravelTimeTool
from schemas.experience import OperatingHours, WEEKDAY_NAMES, minutes_of_day
from schemas.itinerary import Itinerary, ItineraryDay, ItineraryExperience
from schemas.settings import PlannerSettings, resolve_settings

logger = logging.getLogger(__name__)


class ConflictType(str, Enum):
    TIME_OVERLAP = "time_overlap"
    INSUFFICIENT_TRAVEL_TIME = "insufficient_travel_time"
    NO_OPERATING_HOURS = "no_operating_hours"
    CLOSED_DAY = "closed_day"
    OUTSIDE_OPERATING_HOURS = "outside_operating_hours"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class ConflictRecord:
    type: ConflictType
    day_index: int
    entries: list[ItineraryExperience]
    severity: Severity
    message: str
    suggestion: str
    required_time: Optional[int] = None          # minutes, travel conflicts only
    available_time: Optional[float] = None       # minutes, travel conflicts only
    operating_hours: Optional[OperatingHours] = field(default=None, repr=False)

    @property
    def experience_ids(self) -> list[str]:
        return [e.experience.id for e in self.entries]

    def to_dict(self) -> dict:
        out = {
            "type": self.type.value,
            "day_index": self.day_index,
            "experience_ids": self.experience_ids,
            "severity": self.severity.value,
            "message": self.message,
            "suggestion": self.suggestion,
        }
        if self.required_time is not None:
            out["required_time"] = self.required_time
            out["available_time"] = self.available_time
        if self.operating_hours is not None:
            out["operating_hours"] = self.operating_hours.to_dict()
        return out


def summarize(conflicts: list[ConflictRecord]) -> dict:
    """Counts by severity and by type, for API responses and export headers."""
    return {
        "total": len(conflicts),
        "by_severity": dict(Counter(c.severity.value for c in conflicts)),
        "by_type": dict(Counter(c.type.value for c in conflicts)),
    }


class ConflictDetector:

    def __init__(
        self,
        travel_tool: TravelTimeTool | None = None,
        settings: PlannerSettings | None = None,
        travel_mode: str | None = None,
    ) -> None:
        self.settings = resolve_settings(settings)
        self.travel_tool = travel_tool or TravelTimeTool(self.settings)
        self.travel_mode = travel_mode or self.settings.default_travel_mode

    # ── Public ────────────────────────────────────────────────────────────────

    def detect_conflicts(self, itinerary: Itinerary) -> list[ConflictRecord]:
        conflicts: list[ConflictRecord] = []
        for day_index, day in enumerate(itinerary.days):
            conflicts.extend(self.detect_day_conflicts(day, day_index))
        if conflicts:
            logger.info(
                "Itinerary %s: %d conflict(s) detected", itinerary.id, len(conflicts),
            )
        return conflicts

    def detect_day_conflicts(self, day: ItineraryDay, day_index: int) -> list[ConflictRecord]:
        entries = sorted(day.experiences, key=lambda e: e.time_slot)
        conflicts: list[ConflictRecord] = []

        for current, nxt in zip(entries, entries[1:]):
            overlap = self._check_overlap(current, nxt, day_index)
            if overlap:
                conflicts.append(overlap)
            travel = self._check_travel(current, nxt, day_index)
            if travel:
                conflicts.append(travel)

        for entry in entries:
            hours = self._check_operating_hours(entry, day_index)
            if hours:
                conflicts.append(hours)

        return conflicts

    # ── Pair checks ───────────────────────────────────────────────────────────

    def _check_overlap(
        self, current: ItineraryExperience, nxt: ItineraryExperience, day_index: int,
    ) -> Optional[ConflictRecord]:
        if not intervals_overlap(current.time_slot, current.duration, nxt.time_slot, nxt.duration):
            return None
        return ConflictRecord(
            type=ConflictType.TIME_OVERLAP,
            day_index=day_index,
            entries=[current, nxt],
            severity=Severity.HIGH,
            message=f"{_label(current)} overlaps with {_label(nxt)}",
            suggestion="Adjust start times or reduce duration",
        )

    def _check_travel(
        self, current: ItineraryExperience, nxt: ItineraryExperience, day_index: int,
    ) -> Optional[ConflictRecord]:
        try:
            travel = self.travel_tool.travel_minutes(
                current.experience, nxt.experience, self.travel_mode,
            )
        except IncompleteExperienceData as exc:
            logger.debug("Skipping travel check on day %d: %s", day_index, exc.message)
            return None

        required = travel + self.settings.travel_time_buffer
        gap = (nxt.time_slot - current.end_time).total_seconds() / 60.0
        if gap >= required:
            return None
        return ConflictRecord(
            type=ConflictType.INSUFFICIENT_TRAVEL_TIME,
            day_index=day_index,
            entries=[current, nxt],
            severity=Severity.MEDIUM,
            message=f"Not enough time to travel from {_label(current)} to {_label(nxt)}",
            suggestion=f"Add {math.ceil(required - gap)} minutes between experiences",
            required_time=required,
            available_time=max(0.0, gap),
        )

    # ── Single-entry checks ───────────────────────────────────────────────────

    def _check_operating_hours(
        self, entry: ItineraryExperience, day_index: int,
    ) -> Optional[ConflictRecord]:
        experience = entry.experience
        if not experience.operating_hours:
            return None

        weekday = entry.time_slot.weekday()
        hours = experience.hours_for(weekday)
        day_name = WEEKDAY_NAMES[weekday].capitalize()

        if hours is None:
            return ConflictRecord(
                type=ConflictType.NO_OPERATING_HOURS,
                day_index=day_index,
                entries=[entry],
                severity=Severity.HIGH,
                message=f"No operating hours found for {_label(entry)} on {day_name}",
                suggestion="Move to a different day or verify operating hours",
            )

        if hours.is_closed:
            return ConflictRecord(
                type=ConflictType.CLOSED_DAY,
                day_index=day_index,
                entries=[entry],
                severity=Severity.HIGH,
                message=f"{_label(entry)} is closed on {day_name}",
                suggestion="Move to a different day when the experience is open",
                operating_hours=hours,
            )

        scheduled = minutes_of_day(entry.time_slot)
        if scheduled < hours.open_minutes or scheduled > hours.close_minutes:
            return ConflictRecord(
                type=ConflictType.OUTSIDE_OPERATING_HOURS,
                day_index=day_index,
                entries=[entry],
                severity=Severity.HIGH,
                message=(
                    f"{_label(entry)} is scheduled at {entry.time_slot:%H:%M}, "
                    f"outside operating hours"
                ),
                suggestion=f"Schedule between {hours.open_time} and {hours.close_time}",
                operating_hours=hours,
            )
        return None


def _label(entry: ItineraryExperience) -> str:
    return entry.experience.name or entry.experience.id
