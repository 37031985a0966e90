"""
schemas/settings.py
-------------------
PlannerSettings — the recognized configuration surface of the scheduling core.

Defaults come from config.py (environment). Components take an optional
PlannerSettings so a single call can override any constant without touching
process-wide state:

    settings = PlannerSettings.from_config().with_overrides(travel_time_buffer=20)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, time

import config


@dataclass(frozen=True)
class OptimizerWeights:
    """Weights applied by the Itinerary Optimizer's priority score."""
    prioritize_distance: float = 0.4
    prioritize_time: float = 0.3
    prioritize_rating: float = 0.2
    prioritize_preferences: float = 0.1

    @classmethod
    def from_config(cls) -> "OptimizerWeights":
        return cls(
            prioritize_distance=config.OPT_PRIORITIZE_DISTANCE,
            prioritize_time=config.OPT_PRIORITIZE_TIME,
            prioritize_rating=config.OPT_PRIORITIZE_RATING,
            prioritize_preferences=config.OPT_PRIORITIZE_PREFERENCES,
        )


@dataclass(frozen=True)
class PlannerSettings:
    max_days_per_itinerary: int = 14
    max_experiences_per_day: int = 8
    min_time_between_experiences: int = 30     # minutes
    default_experience_duration: int = 120     # minutes
    travel_time_buffer: int = 15               # minutes
    day_start: time = time(9, 0)
    default_itinerary_length_days: int = 7
    weights: OptimizerWeights = field(default_factory=OptimizerWeights)
    featured_bonus: float = 10.0
    verified_bonus: float = 5.0
    travel_mode_speeds: dict[str, float] = field(default_factory=lambda: {
        "driving": 35.0,
        "walking": 3.0,
        "transit": 20.0,
        "cycling": 12.0,
    })
    default_travel_mode: str = "driving"
    distance_unit: str = "miles"               # "miles" | "km"

    @classmethod
    def from_config(cls) -> "PlannerSettings":
        """Snapshot the current values of config.py."""
        return cls(
            max_days_per_itinerary=config.MAX_DAYS_PER_ITINERARY,
            max_experiences_per_day=config.MAX_EXPERIENCES_PER_DAY,
            min_time_between_experiences=config.MIN_TIME_BETWEEN_EXPERIENCES,
            default_experience_duration=config.DEFAULT_EXPERIENCE_DURATION,
            travel_time_buffer=config.TRAVEL_TIME_BUFFER,
            day_start=datetime.strptime(config.DAY_START_TIME, "%H:%M").time(),
            default_itinerary_length_days=config.DEFAULT_ITINERARY_LENGTH_DAYS,
            weights=OptimizerWeights.from_config(),
            featured_bonus=config.FEATURED_BONUS,
            verified_bonus=config.VERIFIED_BONUS,
            travel_mode_speeds=dict(config.TRAVEL_MODE_SPEEDS_MPH),
            default_travel_mode=config.DEFAULT_TRAVEL_MODE,
            distance_unit=config.DISTANCE_UNIT,
        )

    def with_overrides(self, **changes) -> "PlannerSettings":
        return replace(self, **changes)


def resolve_settings(settings: PlannerSettings | None) -> PlannerSettings:
    """Return *settings* or a fresh snapshot of the global defaults."""
    return settings if settings is not None else PlannerSettings.from_config()
