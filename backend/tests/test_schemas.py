from datetime import date

import pytest

from conftest import TUESDAY, at, make_experience
from modules.errors import InvalidDateRange, InvalidDayIndex, ScheduleInvariantError
from schemas.experience import Experience, OperatingHours, parse_clock
from schemas.itinerary import Itinerary, ItineraryExperience


@pytest.mark.parametrize("text,minutes", [
    ("09:00", 540),
    ("9:30 AM", 570),
    ("12:00 AM", 0),
    ("12:15 pm", 735),
    ("9:30 pm", 1290),
    ("17", 1020),
])
def test_parse_clock(text, minutes):
    assert parse_clock(text) == minutes


def test_parse_clock_rejects_garbage():
    with pytest.raises(ValueError):
        parse_clock("noon")


def test_operating_hours_bounds_are_inclusive():
    hours = OperatingHours("10:00", "17:00")
    assert hours.is_open_at(at(10, 0))
    assert hours.is_open_at(at(17, 0))
    assert not hours.is_open_at(at(17, 1))
    assert not OperatingHours(is_closed=True).is_open_at(at(12, 0))


@pytest.mark.parametrize("open_time,close_time", [
    ("09:00:00", "18:00"),
    ("25:00", "18:00"),
    ("09:00", "9:75 pm"),
    ("0:30 am", "18:00"),
])
def test_operating_hours_reject_bad_times(open_time, close_time):
    with pytest.raises(ValueError):
        OperatingHours(open_time, close_time)


def test_experience_from_dict_accepts_weekday_names():
    exp = Experience.from_dict({
        "id": "x",
        "location": {"latitude": 1.5, "longitude": 2.5},
        "operating_hours": {"tuesday": {"is_closed": True}, "0": {"open_time": "08:00"}},
        "tags": ["food"],
    })

    assert exp.hours_for(1).is_closed
    assert exp.hours_for(0).open_time == "08:00"
    assert exp.tags == ("food",)
    assert Experience.from_dict(exp.to_dict()) == exp


def test_experience_without_coordinates():
    exp = Experience.from_dict({"id": "x", "location": {"latitude": None, "longitude": 3.0}})
    assert exp.location is None


def test_rating_out_of_range():
    with pytest.raises(ValueError):
        make_experience("x", rating=5.5)


def test_matches_types_uses_type_and_tags():
    exp = make_experience("x", experience_type="Museum", tags=["Art", "indoor"])
    assert exp.matches_types(["museum"])
    assert exp.matches_types(["ART"])
    assert not exp.matches_types(["beach"])


def test_itinerary_days_are_built_eagerly():
    it = Itinerary.create("One day", start_date=TUESDAY, end_date=TUESDAY)
    assert it.duration_in_days == 1
    assert [d.date for d in it.days] == [TUESDAY]


def test_reversed_range():
    with pytest.raises(InvalidDateRange):
        Itinerary.create("x", start_date=date(2025, 1, 8), end_date=TUESDAY)


def test_max_days_override(settings):
    short = settings.with_overrides(max_days_per_itinerary=2)
    with pytest.raises(InvalidDateRange):
        Itinerary.create("x", start_date=TUESDAY, end_date=date(2025, 1, 9), settings=short)


def test_day_index_out_of_range(itinerary):
    with pytest.raises(InvalidDayIndex):
        itinerary.day(3)
    result = itinerary.add_experience(make_experience("x"), -1)
    assert isinstance(result.error, InvalidDayIndex)


def test_wire_format(itinerary):
    itinerary.add_experience(make_experience("x", admission_fee=12.5), 0)
    record = itinerary.to_dict()
    entry = record["days"][0]["experiences"][0]

    assert entry["experience_ref"] == "x"
    assert entry["time_slot"] == "2025-01-07T09:00:00"
    assert entry["duration"] == 120
    assert record["start_date"] == "2025-01-07"
    assert Itinerary.from_dict(record).to_dict() == record
    assert itinerary.estimated_cost() == 12.5


def test_from_dict_resolves_bare_references(itinerary):
    catalog = {"x": make_experience("x")}
    itinerary.add_experience(catalog["x"], 0)
    record = itinerary.to_dict()
    del record["days"][0]["experiences"][0]["experience"]

    restored = Itinerary.from_dict(record, resolve_experience=catalog.get)

    assert restored.days[0].experiences[0].experience is catalog["x"]


def test_from_dict_without_days_is_corrupt(itinerary):
    record = itinerary.to_dict()
    record["days"] = []
    with pytest.raises(ScheduleInvariantError):
        Itinerary.from_dict(record)


def test_day_summary(itinerary):
    itinerary.add_experience(make_experience("a", admission_fee=10.0), 0, duration=60)
    itinerary.add_experience(make_experience("b", admission_fee=5.0), 0, duration=60)

    summary = itinerary.days[0].summary()

    assert summary.experience_count == 2
    assert summary.estimated_cost == 15.0
    assert summary.start_time == at(9, 0)
    assert summary.end_time == at(11, 30)


def test_entry_end_time():
    entry = ItineraryExperience(make_experience("x"), at(9, 0), 45)
    assert entry.end_time == at(9, 45)


def test_from_dict_rejects_overlapping_entries(itinerary):
    itinerary.add_experience(make_experience("a"), 0, at(9, 0), 120)
    itinerary.add_experience(make_experience("b"), 0, at(12, 0), 60)
    record = itinerary.to_dict()
    record["days"][0]["experiences"][1]["time_slot"] = at(10, 0).isoformat()

    with pytest.raises(ScheduleInvariantError):
        Itinerary.from_dict(record)


def test_from_dict_rejects_overfull_day(settings):
    roomy = settings.with_overrides(max_experiences_per_day=9)
    trip = Itinerary.create("Roomy", start_date=TUESDAY, end_date=TUESDAY, settings=roomy)
    for i in range(9):
        assert trip.add_experience(make_experience(f"e{i}"), 0, duration=30).success

    with pytest.raises(ScheduleInvariantError):
        Itinerary.from_dict(trip.to_dict(), settings=settings)
