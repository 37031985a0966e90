"""
schemas/itinerary.py
--------------------
Dataclass definitions for the Itinerary aggregate.

Ownership:
  Itinerary ──owns──▶ ItineraryDay (one per calendar date, created eagerly)
  ItineraryDay ──owns──▶ ItineraryExperience (time-sorted wrappers)
  ItineraryExperience ──references──▶ Experience (read-only, shared)

Wire format (to_dict / from_dict): snake_case keys, ISO-8601 strings for every
date/time field, integer minutes for duration.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional

from modules.errors import InvalidDateRange, InvalidDayIndex, ScheduleInvariantError
from schemas.experience import Experience
from schemas.settings import PlannerSettings, resolve_settings

ExperienceResolver = Callable[[str], Optional[Experience]]


def duration_in_days(start_date: date, end_date: date) -> int:
    """Inclusive day count of [start_date, end_date]."""
    return (end_date - start_date).days + 1


@dataclass
class ItineraryExperience:
    """One scheduled visit. duration is in minutes."""
    experience: Experience
    time_slot: datetime
    duration: int = 120
    added_at: datetime = field(default_factory=datetime.now)
    notes: str = ""
    completed: bool = False

    @property
    def experience_id(self) -> str:
        return self.experience.id

    @property
    def end_time(self) -> datetime:
        return self.time_slot + timedelta(minutes=self.duration)

    def to_dict(self) -> dict[str, Any]:
        return {
            "experience_ref": self.experience.id,
            "experience": self.experience.to_dict(),
            "time_slot": self.time_slot.isoformat(),
            "duration": int(self.duration),
            "added_at": self.added_at.isoformat(),
            "notes": self.notes,
            "completed": self.completed,
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        resolve_experience: ExperienceResolver | None = None,
    ) -> "ItineraryExperience":
        snapshot = data.get("experience")
        if snapshot:
            experience = Experience.from_dict(snapshot)
        else:
            ref = data.get("experience_ref")
            experience = resolve_experience(ref) if resolve_experience and ref else None
            if experience is None:
                raise ValueError(f"Cannot resolve experience_ref {ref!r}")
        return cls(
            experience=experience,
            time_slot=datetime.fromisoformat(data["time_slot"]),
            duration=int(data.get("duration", 120)),
            added_at=datetime.fromisoformat(data["added_at"]) if data.get("added_at") else datetime.now(),
            notes=data.get("notes", ""),
            completed=bool(data.get("completed", False)),
        )


@dataclass
class DaySummary:
    date: date
    experience_count: int
    estimated_cost: float
    start_time: Optional[datetime]
    end_time: Optional[datetime]


@dataclass
class ItineraryDay:
    """One calendar day. experiences is kept sorted by time_slot."""
    date: date
    experiences: list[ItineraryExperience] = field(default_factory=list)
    notes: str = ""

    def find(self, experience_id: str) -> Optional[ItineraryExperience]:
        return next((e for e in self.experiences if e.experience.id == experience_id), None)

    def sort_by_time(self) -> None:
        # list.sort is stable: equal slots keep insertion order
        self.experiences.sort(key=lambda e: e.time_slot)

    def summary(self) -> DaySummary:
        cost = sum(e.experience.admission_fee or 0.0 for e in self.experiences)
        if not self.experiences:
            return DaySummary(self.date, 0, cost, None, None)
        return DaySummary(
            date=self.date,
            experience_count=len(self.experiences),
            estimated_cost=cost,
            start_time=self.experiences[0].time_slot,
            end_time=max(e.end_time for e in self.experiences),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "notes": self.notes,
            "experiences": [e.to_dict() for e in self.experiences],
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        resolve_experience: ExperienceResolver | None = None,
    ) -> "ItineraryDay":
        day = cls(
            date=date.fromisoformat(data["date"][:10]),
            experiences=[
                ItineraryExperience.from_dict(e, resolve_experience)
                for e in data.get("experiences", [])
            ],
            notes=data.get("notes", ""),
        )
        day.sort_by_time()
        return day


@dataclass
class Itinerary:
    """
    A planned multi-day sequence of visits within a fixed, inclusive date range.

    days is built from the range in __post_init__ and never resized afterwards.
    """
    id: str
    name: str
    start_date: date
    end_date: date
    description: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    days: list[ItineraryDay] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    settings: PlannerSettings | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        limits = resolve_settings(self.settings)
        if self.end_date < self.start_date:
            raise InvalidDateRange(
                f"end_date ({self.end_date}) must be >= start_date ({self.start_date})",
                start_date=self.start_date.isoformat(),
                end_date=self.end_date.isoformat(),
            )
        if self.duration_in_days > limits.max_days_per_itinerary:
            raise InvalidDateRange(
                f"Itinerary spans {self.duration_in_days} days; "
                f"maximum is {limits.max_days_per_itinerary}",
                max_days=limits.max_days_per_itinerary,
            )
        if not self.days:
            self.days = [
                ItineraryDay(date=self.start_date + timedelta(days=i))
                for i in range(self.duration_in_days)
            ]
        self.check_invariants()

    # ── Construction ─────────────────────────────────────────────────────────

    @classmethod
    def create(
        cls,
        name: str,
        description: str = "",
        start_date: date | None = None,
        end_date: date | None = None,
        settings: PlannerSettings | None = None,
    ) -> "Itinerary":
        """New itinerary with a generated id; defaults to a week starting today."""
        limits = resolve_settings(settings)
        start = start_date or date.today()
        end = end_date or start + timedelta(days=limits.default_itinerary_length_days - 1)
        now = datetime.now()
        return cls(
            id=f"itinerary_{uuid.uuid4().hex[:12]}",
            name=name,
            description=description,
            start_date=start,
            end_date=end,
            created_at=now,
            updated_at=now,
            settings=settings,
        )

    # ── Queries ──────────────────────────────────────────────────────────────

    @property
    def duration_in_days(self) -> int:
        return duration_in_days(self.start_date, self.end_date)

    def total_experiences(self) -> int:
        return sum(len(d.experiences) for d in self.days)

    def estimated_cost(self) -> float:
        return sum(d.summary().estimated_cost for d in self.days)

    def day(self, day_index: int) -> ItineraryDay:
        if not 0 <= day_index < len(self.days):
            raise InvalidDayIndex(
                f"Invalid day index {day_index} (itinerary has {len(self.days)} days)",
                day_index=day_index,
            )
        return self.days[day_index]

    def check_invariants(self) -> None:
        """
        Raise ScheduleInvariantError if the day list disagrees with the date
        range, or any day is over capacity, unsorted or overlapping.
        """
        from modules.planning.slot_allocator import assert_day_consistent

        limits = resolve_settings(self.settings)
        if len(self.days) != self.duration_in_days:
            raise ScheduleInvariantError(
                f"Itinerary {self.id}: {len(self.days)} days for a "
                f"{self.duration_in_days}-day range"
            )
        for i, d in enumerate(self.days):
            expected = self.start_date + timedelta(days=i)
            if d.date != expected:
                raise ScheduleInvariantError(
                    f"Itinerary {self.id}: day {i} has date {d.date}, expected {expected}"
                )
            if len(d.experiences) > limits.max_experiences_per_day:
                raise ScheduleInvariantError(
                    f"Itinerary {self.id}: day {i} holds {len(d.experiences)} experiences, "
                    f"maximum is {limits.max_experiences_per_day}"
                )
            assert_day_consistent(d)

    # ── Mutations (delegate to the Slot Allocator) ───────────────────────────

    def add_experience(
        self,
        experience: Experience,
        day_index: int = 0,
        time_slot: datetime | None = None,
        duration: int | None = None,
    ):
        """Schedule *experience* on a day. Returns an AddResult; never raises ValidationError."""
        from modules.planning.slot_allocator import AddResult, add_experience

        try:
            day = self.day(day_index)
        except InvalidDayIndex as exc:
            return AddResult(success=False, error=exc)
        result = add_experience(day, experience, time_slot, duration, settings=self.settings)
        if result.success:
            self.updated_at = datetime.now()
        return result

    def remove_experience(self, experience_id: str, day_index: int) -> bool:
        from modules.planning.slot_allocator import remove_experience

        if not 0 <= day_index < len(self.days):
            return False
        removed = remove_experience(self.days[day_index], experience_id)
        if removed:
            self.updated_at = datetime.now()
        return removed

    def copy(self) -> "Itinerary":
        return copy.deepcopy(self)

    # ── Wire format ──────────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "metadata": copy.deepcopy(self.metadata),
            "days": [d.to_dict() for d in self.days],
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        resolve_experience: ExperienceResolver | None = None,
        settings: PlannerSettings | None = None,
    ) -> "Itinerary":
        if not data.get("days"):
            # A stored record always carries its days; an empty list is corrupt.
            raise ScheduleInvariantError(f"Itinerary record {data.get('id')} has no days")
        days = [ItineraryDay.from_dict(d, resolve_experience) for d in data["days"]]
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            description=data.get("description", ""),
            start_date=date.fromisoformat(data["start_date"][:10]),
            end_date=date.fromisoformat(data["end_date"][:10]),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            days=days,
            metadata=dict(data.get("metadata") or {}),
            settings=settings,
        )
