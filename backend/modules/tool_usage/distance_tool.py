"""
modules/tool_usage/distance_tool.py
-------------------------------------
Travel-time estimator: great-circle (Haversine) distance between two
Experiences, converted to minutes with a per-mode average speed.
No external HTTP calls are made; this is straight-line distance, not routing.

Units: distances are reported in config.DISTANCE_UNIT ("miles" or "km");
speeds are mph, so minutes are the same in either unit.

Config knobs (config.py):
  TRAVEL_MODE_SPEEDS_MPH -- {"driving": 35, "walking": 3, "transit": 20, "cycling": 12}
  DEFAULT_TRAVEL_MODE    -- mode used when a caller passes none
"""

from __future__ import annotations
import math
import logging
from dataclasses import dataclass

from modules.errors import IncompleteExperienceData, InvalidTravelMode
from schemas.experience import Experience, GeoLocation
from schemas.settings import PlannerSettings, resolve_settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Pure maths
# ---------------------------------------------------------------------------

_EARTH_RADIUS_KM = 6371.0
_EARTH_RADIUS_MILES = 3959.0


def _haversine(lat1: float, lon1: float, lat2: float, lon2: float, radius: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lam = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lam / 2) ** 2
    )
    return 2 * radius * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points (Haversine formula) in km."""
    return _haversine(lat1, lon1, lat2, lon2, _EARTH_RADIUS_KM)


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points (Haversine formula) in miles."""
    return _haversine(lat1, lon1, lat2, lon2, _EARTH_RADIUS_MILES)


def _miles_to_minutes(miles: float, speed_mph: float) -> int:
    """Straight-line miles to whole minutes at a given speed (rounded up)."""
    return math.ceil(miles / speed_mph * 60.0)


# ---------------------------------------------------------------------------
# TravelTimeTool
# ---------------------------------------------------------------------------

_RADIUS_BY_UNIT = {"miles": _EARTH_RADIUS_MILES, "km": _EARTH_RADIUS_KM}


@dataclass(frozen=True)
class TravelEstimate:
    distance: float          # in `unit`, rounded to 0.1
    minutes: int
    mode: str
    unit: str = "miles"

    def to_dict(self) -> dict:
        return {
            "distance": self.distance,
            "minutes": self.minutes,
            "mode": self.mode,
            "unit": self.unit,
        }


class TravelTimeTool:
    """
    Estimates travel between two Experiences.
    Pure: the same pair and mode always produce the same estimate, in either order.

    Distances are reported in settings.distance_unit. Minutes always come from
    great-circle miles and the mph speed table, so they do not depend on the unit.
    """

    def __init__(self, settings: PlannerSettings | None = None) -> None:
        s = resolve_settings(settings)
        if s.distance_unit not in _RADIUS_BY_UNIT:
            raise ValueError(
                f"Unknown distance unit {s.distance_unit!r} (expected 'miles' or 'km')"
            )
        self.speeds: dict[str, float] = dict(s.travel_mode_speeds)
        self.default_mode = s.default_travel_mode
        self.unit = s.distance_unit

    @property
    def modes(self) -> list[str]:
        return sorted(self.speeds)

    def speed_for(self, mode: str) -> float:
        try:
            return self.speeds[mode]
        except KeyError:
            raise InvalidTravelMode(
                f"Invalid travel mode: {mode!r} (expected one of {', '.join(self.modes)})",
                mode=mode,
            ) from None

    def distance_between(self, a: Experience, b: Experience) -> float:
        """Unrounded great-circle distance in the configured unit."""
        return self._distance(a, b, _RADIUS_BY_UNIT[self.unit])

    def travel_time(
        self,
        from_experience: Experience,
        to_experience: Experience,
        mode: str | None = None,
    ) -> TravelEstimate:
        """Distance (0.1 precision) and ceil(miles / mph * 60) minutes."""
        mode = mode or self.default_mode
        speed = self.speed_for(mode)
        miles = self._distance(from_experience, to_experience, _EARTH_RADIUS_MILES)
        return TravelEstimate(
            distance=round(self.distance_between(from_experience, to_experience), 1),
            minutes=_miles_to_minutes(miles, speed),
            mode=mode,
            unit=self.unit,
        )

    def travel_minutes(
        self,
        from_experience: Experience,
        to_experience: Experience,
        mode: str | None = None,
    ) -> int:
        return self.travel_time(from_experience, to_experience, mode).minutes

    @staticmethod
    def _distance(a: Experience, b: Experience, radius: float) -> float:
        loc_a, loc_b = _location(a), _location(b)
        if loc_a == loc_b:
            return 0.0
        return _haversine(loc_a.latitude, loc_a.longitude, loc_b.latitude, loc_b.longitude, radius)


def _location(experience: Experience) -> GeoLocation:
    loc = experience.location
    if loc is None or not loc.is_valid():
        raise IncompleteExperienceData(
            f"Experience {experience.id} has no usable coordinates",
            experience_id=experience.id,
        )
    return loc
