from __future__ import annotations

import math
from datetime import date, datetime

import pytest

from modules.store import EventBus, InMemoryBackend, ItineraryStore
from schemas.experience import Experience, GeoLocation, OperatingHours
from schemas.itinerary import Itinerary
from schemas.settings import PlannerSettings

# 2025-01-07 is a Tuesday
TUESDAY = date(2025, 1, 7)

# One statute mile of latitude, in degrees (Earth radius 3959 mi)
MILE_LAT = math.degrees(1 / 3959.0)


def at(hour: int, minute: int = 0, day: date = TUESDAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


def make_experience(exp_id: str, lat: float | None = 40.0, lon: float = -74.0, **kwargs) -> Experience:
    location = GeoLocation(lat, lon) if lat is not None else None
    kwargs.setdefault("name", f"Experience {exp_id}")
    return Experience(id=exp_id, location=location, **kwargs)


def open_all_week(open_time: str = "08:00", close_time: str = "20:00") -> dict[int, OperatingHours]:
    return {d: OperatingHours(open_time, close_time) for d in range(7)}


@pytest.fixture
def settings():
    return PlannerSettings()


@pytest.fixture
def itinerary(settings):
    # Tue 7 Jan to Thu 9 Jan
    return Itinerary.create(
        name="Test trip",
        start_date=TUESDAY,
        end_date=date(2025, 1, 9),
        settings=settings,
    )


@pytest.fixture
def day(itinerary):
    return itinerary.days[0]


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def store(backend, bus, settings):
    return ItineraryStore(backend=backend, bus=bus, settings=settings)


@pytest.fixture
def recorded(bus):
    """Every event the bus publishes, in order."""
    events = []
    bus.subscribe("*", events.append)
    return events
