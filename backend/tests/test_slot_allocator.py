from datetime import time, timedelta

import pytest

from conftest import TUESDAY, at, make_experience
from modules.errors import (
    DayCapacityExceeded,
    DuplicateExperience,
    ScheduleInvariantError,
    SlotConflict,
    SlotOutsideDay,
    ValidationError,
)
from modules.planning.slot_allocator import (
    add_experience,
    assert_day_consistent,
    intervals_overlap,
    next_available_slot,
    remove_experience,
)
from schemas.itinerary import ItineraryDay, ItineraryExperience


def assert_no_overlap(day: ItineraryDay):
    for a, b in zip(day.experiences, day.experiences[1:]):
        assert a.time_slot <= b.time_slot
        assert a.end_time <= b.time_slot, f"{a.experience_id} overlaps {b.experience_id}"


# ── Scenarios ──────────────────────────────────────────────────────────────────

def test_empty_day_starts_at_nine(day):
    result = add_experience(day, make_experience("E1"), duration=120)

    assert result.success
    assert result.time_slot == at(9, 0)
    assert result.error is None
    assert [e.experience_id for e in day.experiences] == ["E1"]


def test_next_slot_follows_latest_end_plus_buffer(day):
    add_experience(day, make_experience("E1"), duration=120)

    result = add_experience(day, make_experience("E2"))

    assert result.success
    assert result.time_slot == at(11, 30)   # 09:00 + 120 min + 30 min


def test_requested_overlapping_slot_is_rejected(day):
    add_experience(day, make_experience("E1"), duration=120)
    before = day.to_dict()

    result = add_experience(day, make_experience("E2"), requested_slot=at(10, 0), duration=60)

    assert not result.success
    assert isinstance(result.error, SlotConflict)
    assert result.error.context["conflicting_experience_id"] == "E1"
    assert day.to_dict() == before


# ── Capacity / duplicates / bounds ─────────────────────────────────────────────

def test_capacity_ninth_add_fails_and_day_unchanged(day):
    for i in range(8):
        assert add_experience(day, make_experience(f"E{i}"), duration=60).success
    before = day.to_dict()

    result = add_experience(day, make_experience("E8"), duration=60)

    assert not result.success
    assert isinstance(result.error, DayCapacityExceeded)
    assert day.to_dict() == before
    assert len(day.experiences) == 8
    assert_no_overlap(day)


def test_capacity_respects_settings_override(day, settings):
    tight = settings.with_overrides(max_experiences_per_day=2)
    add_experience(day, make_experience("A"), settings=tight)
    add_experience(day, make_experience("B"), settings=tight)

    result = add_experience(day, make_experience("C"), settings=tight)

    assert isinstance(result.error, DayCapacityExceeded)


def test_duplicate_is_checked_before_capacity(day):
    add_experience(day, make_experience("E1"))

    result = add_experience(day, make_experience("E1"), requested_slot=at(15, 0))

    assert isinstance(result.error, DuplicateExperience)
    assert len(day.experiences) == 1


def test_slot_on_another_date_is_rejected(day):
    result = add_experience(day, make_experience("E1"), requested_slot=at(10, 0) + timedelta(days=1))

    assert isinstance(result.error, SlotOutsideDay)
    assert day.experiences == []


def test_computed_slot_past_midnight_is_rejected(day):
    # A 09:00-19:00, B 19:30-23:30; the next free slot is 00:00 on the following day
    add_experience(day, make_experience("A"), duration=600)
    add_experience(day, make_experience("B"), duration=240)

    result = add_experience(day, make_experience("C"))

    assert isinstance(result.error, SlotOutsideDay)
    assert len(day.experiences) == 2


def test_non_positive_duration_is_rejected(day):
    result = add_experience(day, make_experience("E1"), duration=0)

    assert not result.success
    assert type(result.error) is ValidationError


def test_touching_intervals_do_not_overlap(day):
    add_experience(day, make_experience("E1"), duration=120)

    result = add_experience(day, make_experience("E2"), requested_slot=at(11, 0), duration=60)

    assert result.success
    assert_no_overlap(day)


def test_requested_earlier_slot_keeps_day_sorted(day):
    add_experience(day, make_experience("E1"), requested_slot=at(14, 0))
    add_experience(day, make_experience("E2"), requested_slot=at(9, 0))

    assert [e.experience_id for e in day.experiences] == ["E2", "E1"]
    assert_no_overlap(day)


# ── Removal ────────────────────────────────────────────────────────────────────

def test_remove_leaves_other_times_alone(day):
    add_experience(day, make_experience("E1"))
    add_experience(day, make_experience("E2"))
    add_experience(day, make_experience("E3"))

    assert remove_experience(day, "E2") is True
    assert [(e.experience_id, e.time_slot) for e in day.experiences] == [
        ("E1", at(9, 0)),
        ("E3", at(14, 0)),
    ]
    assert remove_experience(day, "E2") is False


# ── Helpers ────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("a_start,a_len,b_start,b_len,expected", [
    (at(9), 60, at(10), 60, False),
    (at(9), 61, at(10), 60, True),
    (at(10), 60, at(9, 30), 15, False),
    (at(10), 60, at(9, 30), 45, True),
])
def test_intervals_overlap_is_half_open(a_start, a_len, b_start, b_len, expected):
    assert intervals_overlap(a_start, a_len, b_start, b_len) is expected


def test_assert_day_consistent_flags_overlap():
    day = ItineraryDay(date=TUESDAY, experiences=[
        ItineraryExperience(make_experience("A"), at(9), 120),
        ItineraryExperience(make_experience("B"), at(10), 60),
    ])
    with pytest.raises(ScheduleInvariantError):
        assert_day_consistent(day)


def test_next_available_slot_honours_day_start_override(day, settings):
    early = settings.with_overrides(day_start=time(7, 30))
    assert next_available_slot(day, early) == at(7, 30)
