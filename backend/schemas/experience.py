"""
schemas/experience.py
---------------------
Read-only Experience records supplied by the catalog.

The scheduling core references Experiences but never mutates them, so every
dataclass here is frozen. operating_hours is keyed by Python weekday
(0 = Monday … 6 = Sunday).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Any, Optional

_CLOCK_RE = re.compile(r"^\s*(\d{1,2})(?::(\d{2}))?\s*([AaPp][Mm])?\s*$")

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def parse_clock(value: str) -> int:
    """
    Parse a time-of-day string into minutes after midnight.

    Accepts 24h "HH:MM" and 12h "h:mm AM/PM" forms ("9:30 pm" → 1290).
    """
    m = _CLOCK_RE.match(value or "")
    if not m:
        raise ValueError(f"Unrecognised time-of-day: {value!r}")
    hours = int(m.group(1))
    minutes = int(m.group(2) or 0)
    period = (m.group(3) or "").lower()
    if minutes > 59 or hours > (12 if period else 23) or (period and hours == 0):
        raise ValueError(f"Time-of-day out of range: {value!r}")
    if period == "pm" and hours != 12:
        hours += 12
    elif period == "am" and hours == 12:
        hours = 0
    return hours * 60 + minutes


def minutes_of_day(value: datetime | time) -> int:
    return value.hour * 60 + value.minute


@dataclass(frozen=True)
class GeoLocation:
    latitude: float
    longitude: float

    def is_valid(self) -> bool:
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0


@dataclass(frozen=True)
class OperatingHours:
    """Opening window for one weekday. Bounds are inclusive."""
    open_time: str = "09:00"
    close_time: str = "17:00"
    is_closed: bool = False
    notes: str = ""

    def __post_init__(self) -> None:
        # Reject unparseable times here, not later inside conflict detection
        parse_clock(self.open_time)
        parse_clock(self.close_time)

    @property
    def open_minutes(self) -> int:
        return parse_clock(self.open_time)

    @property
    def close_minutes(self) -> int:
        return parse_clock(self.close_time)

    def is_open_at(self, at: datetime | time) -> bool:
        if self.is_closed:
            return False
        return self.open_minutes <= minutes_of_day(at) <= self.close_minutes

    def to_dict(self) -> dict[str, Any]:
        return {
            "open_time": self.open_time,
            "close_time": self.close_time,
            "is_closed": self.is_closed,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OperatingHours":
        return cls(
            open_time=data.get("open_time", "09:00"),
            close_time=data.get("close_time", "17:00"),
            is_closed=bool(data.get("is_closed", False)),
            notes=data.get("notes", ""),
        )


def _weekday_key(key: Any) -> int:
    if isinstance(key, int):
        day = key
    elif isinstance(key, str) and key.strip().isdigit():
        day = int(key)
    elif isinstance(key, str) and key.strip().lower() in WEEKDAY_NAMES:
        day = WEEKDAY_NAMES.index(key.strip().lower())
    else:
        raise ValueError(f"Unrecognised weekday key: {key!r}")
    if not 0 <= day <= 6:
        raise ValueError(f"Weekday out of range: {day}")
    return day


@dataclass(frozen=True)
class Experience:
    """
    A point of interest that can be scheduled.

    location is None when the catalog has no coordinates for the record; the
    optimizer refuses to route such an Experience rather than treating it as
    zero distance from everything.
    """
    id: str
    name: str = ""
    location: Optional[GeoLocation] = None
    rating: float = 0.0
    experience_type: str = ""
    tags: tuple[str, ...] = ()
    operating_hours: dict[int, OperatingHours] = field(default_factory=dict)
    admission_fee: Optional[float] = None
    featured: bool = False
    verified: bool = False
    description: str = ""
    address: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= self.rating <= 5.0:
            raise ValueError(f"rating must be in [0, 5] (got {self.rating})")
        # Accept list input for tags while keeping the record hash-free of lists
        object.__setattr__(self, "tags", tuple(self.tags))

    def hours_for(self, weekday: int) -> Optional[OperatingHours]:
        return self.operating_hours.get(weekday)

    def is_open_at(self, at: datetime) -> bool:
        hours = self.hours_for(at.weekday())
        return hours.is_open_at(at) if hours else False

    def matches_types(self, preferred: set[str] | list[str] | tuple[str, ...]) -> bool:
        """True if the experience type or any feature tag is in *preferred*."""
        wanted = {p.lower() for p in preferred}
        if self.experience_type and self.experience_type.lower() in wanted:
            return True
        return any(t.lower() in wanted for t in self.tags)

    # ── Wire format ──────────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "location": (
                {"latitude": self.location.latitude, "longitude": self.location.longitude}
                if self.location else None
            ),
            "rating": self.rating,
            "experience_type": self.experience_type,
            "tags": list(self.tags),
            "operating_hours": {
                str(day): hours.to_dict() for day, hours in sorted(self.operating_hours.items())
            },
            "admission_fee": self.admission_fee,
            "featured": self.featured,
            "verified": self.verified,
            "description": self.description,
            "address": self.address,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Experience":
        loc = data.get("location")
        location = None
        if loc and loc.get("latitude") is not None and loc.get("longitude") is not None:
            location = GeoLocation(float(loc["latitude"]), float(loc["longitude"]))
        fee = data.get("admission_fee")
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            location=location,
            rating=float(data.get("rating") or 0.0),
            experience_type=data.get("experience_type", ""),
            tags=tuple(data.get("tags") or ()),
            operating_hours={
                _weekday_key(k): OperatingHours.from_dict(v)
                for k, v in (data.get("operating_hours") or {}).items()
            },
            admission_fee=float(fee) if fee is not None else None,
            featured=bool(data.get("featured", False)),
            verified=bool(data.get("verified", False)),
            description=data.get("description", ""),
            address=data.get("address", ""),
        )
