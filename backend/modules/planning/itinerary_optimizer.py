"""
modules/planning/itinerary_optimizer.py
-----------------------------------------
Per-day schedule optimizer: priority scoring + nearest-neighbour routing +
back-to-back re-timing.

Each day d with more than one entry:
  1. Score every entry's Experience:
        rating × w_rating × 20
      + w_preferences × 100   if type/tags ∈ UserPreferences.experience_types
      + featured_bonus (10)   if featured
      + verified_bonus (5)    if verified
  2. Stable-sort by score (desc). The top-scored entry is the tour origin; from
     it, repeatedly append the remaining entry nearest (great-circle miles) to
     the last placed one. Ties go to the entry earlier in score order.
  3. Re-time from day_start (09:00): slot_k = clock; clock += duration + buffer.

The input Itinerary is never mutated; optimize() works on a deep copy so the
caller can preview the result before committing it.

The tour is a greedy approximation; it is not a shortest-tour guarantee.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from modules.errors import IncompleteExperienceData, SlotOutsideDay
from modules.planning.slot_allocator import assert_day_consistent
from modules.tool_usage.distance_tool import TravelTimeTool
from schemas.experience import Experience
from schemas.itinerary import Itinerary, ItineraryDay, ItineraryExperience
from schemas.settings import PlannerSettings, resolve_settings

logger = logging.getLogger(__name__)


@dataclass
class UserPreferences:
    """Optional personalization input. experience_types match type or tags."""
    experience_types: list[str] = field(default_factory=list)


@dataclass
class DayOptimization:
    """What happened to one day; kept in Itinerary.metadata for the UI."""
    day_index: int
    order_before: list[str]
    order_after: list[str]
    distance_before: float     # miles along the visiting order
    distance_after: float

    def to_dict(self) -> dict:
        return {
            "day_index": self.day_index,
            "order_before": self.order_before,
            "order_after": self.order_after,
            "distance_before": round(self.distance_before, 1),
            "distance_after": round(self.distance_after, 1),
        }


class ItineraryOptimizer:

    def __init__(
        self,
        settings: PlannerSettings | None = None,
        travel_tool: TravelTimeTool | None = None,
    ) -> None:
        self.settings = resolve_settings(settings)
        self.travel_tool = travel_tool or TravelTimeTool(self.settings)

    # ── Public entry point ────────────────────────────────────────────────────

    def optimize(
        self,
        itinerary: Itinerary,
        user_preferences: UserPreferences | None = None,
    ) -> Itinerary:
        """
        Return a rescheduled copy of *itinerary*.

        Raises:
            IncompleteExperienceData: an Experience on a day with > 1 entry has
                no usable coordinates. Raised before any work is done.
            SlotOutsideDay: re-timing would push a start past the day's date.
        """
        self._require_geodata(itinerary)

        optimized = itinerary.copy()
        report: list[dict] = []
        for day_index, day in enumerate(optimized.days):
            if len(day.experiences) > 1:
                result = self._optimize_day(day_index, day, user_preferences)
                report.append(result.to_dict())

        optimized.updated_at = datetime.now()
        optimized.metadata["last_optimization"] = {
            "optimized_at": optimized.updated_at.isoformat(),
            "days": report,
        }
        logger.info("Optimized itinerary %s (%d day(s) reordered)", itinerary.id, len(report))
        return optimized

    # ── Scoring ───────────────────────────────────────────────────────────────

    def score_experience(
        self,
        experience: Experience,
        user_preferences: UserPreferences | None = None,
    ) -> float:
        w = self.settings.weights
        score = 0.0
        score += (experience.rating or 0.0) * w.prioritize_rating * 20
        if user_preferences and user_preferences.experience_types:
            if experience.matches_types(user_preferences.experience_types):
                score += w.prioritize_preferences * 100
        if experience.featured:
            score += self.settings.featured_bonus
        if experience.verified:
            score += self.settings.verified_bonus
        return score

    # ── Routing ───────────────────────────────────────────────────────────────

    def route_nearest_neighbor(
        self, entries: list[ItineraryExperience],
    ) -> list[ItineraryExperience]:
        """Greedy tour starting at entries[0]; input order breaks distance ties."""
        if len(entries) <= 2:
            return list(entries)

        tour = [entries[0]]
        remaining = list(entries[1:])
        while remaining:
            last = tour[-1].experience
            nearest_idx = 0
            nearest = self.travel_tool.distance_between(last, remaining[0].experience)
            for idx in range(1, len(remaining)):
                d = self.travel_tool.distance_between(last, remaining[idx].experience)
                if d < nearest:
                    nearest, nearest_idx = d, idx
            tour.append(remaining.pop(nearest_idx))
        return tour

    def tour_distance(self, entries: list[ItineraryExperience]) -> float:
        return sum(
            self.travel_tool.distance_between(a.experience, b.experience)
            for a, b in zip(entries, entries[1:])
        )

    # ── Single-day optimizer ──────────────────────────────────────────────────

    def _optimize_day(
        self,
        day_index: int,
        day: ItineraryDay,
        user_preferences: UserPreferences | None,
    ) -> DayOptimization:
        before = sorted(day.experiences, key=lambda e: e.time_slot)
        by_score = sorted(
            before,
            key=lambda e: self.score_experience(e.experience, user_preferences),
            reverse=True,
        )
        ordered = self.route_nearest_neighbor(by_score)
        self._reschedule(day, ordered)
        return DayOptimization(
            day_index=day_index,
            order_before=[e.experience.id for e in before],
            order_after=[e.experience.id for e in ordered],
            distance_before=self.tour_distance(before),
            distance_after=self.tour_distance(ordered),
        )

    def _reschedule(self, day: ItineraryDay, ordered: list[ItineraryExperience]) -> None:
        """Assign back-to-back slots from day_start with the inter-visit buffer."""
        clock = datetime.combine(day.date, self.settings.day_start)
        buffer = timedelta(minutes=self.settings.min_time_between_experiences)
        for entry in ordered:
            if clock.date() != day.date:
                raise SlotOutsideDay(
                    f"Re-timing {day.date} would start {entry.experience.id} at "
                    f"{clock.isoformat()}, past the end of the day",
                    experience_id=entry.experience.id,
                )
            entry.time_slot = clock
            clock = clock + timedelta(minutes=entry.duration) + buffer
        day.experiences = list(ordered)
        assert_day_consistent(day)

    # ── Validation ────────────────────────────────────────────────────────────

    @staticmethod
    def _require_geodata(itinerary: Itinerary) -> None:
        for day in itinerary.days:
            if len(day.experiences) <= 1:
                continue
            for entry in day.experiences:
                loc = entry.experience.location
                if loc is None or not loc.is_valid():
                    raise IncompleteExperienceData(
                        f"Experience {entry.experience.id} on {day.date} has no usable "
                        f"coordinates; cannot route the day",
                        experience_id=entry.experience.id,
                        date=day.date.isoformat(),
                    )
