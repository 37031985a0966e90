import random
from datetime import date

import pytest

from conftest import MILE_LAT, TUESDAY, at, make_experience
from modules.errors import (
    IncompleteExperienceData,
    InvalidDateRange,
    InvalidDayIndex,
    ItineraryNotFound,
    ScheduleInvariantError,
    SlotConflict,
    SlotOutsideDay,
    UnsupportedExportFormat,
)
from modules.planning.slot_allocator import assert_day_consistent
from modules.store import EventTopic, InMemoryBackend, ItineraryStore


@pytest.fixture
def trip(store):
    return store.create_itinerary("Trip", start_date=TUESDAY, end_date=date(2025, 1, 9))


def topics(events):
    return [e.topic for e in events]


# ── Lifecycle ──────────────────────────────────────────────────────────────────

def test_create_builds_one_day_per_date(store, trip):
    assert trip.duration_in_days == 3
    assert [d.date for d in trip.days] == [date(2025, 1, 7), date(2025, 1, 8), date(2025, 1, 9)]
    assert store.get(trip.id).to_dict() == trip.to_dict()


def test_create_defaults_to_a_week(store):
    it = store.create_itinerary()
    assert it.duration_in_days == 7
    assert it.start_date == date.today()


def test_create_rejects_reversed_range(store):
    with pytest.raises(InvalidDateRange):
        store.create_itinerary("Bad", start_date=date(2025, 1, 9), end_date=date(2025, 1, 7))


def test_create_rejects_range_over_limit(store):
    with pytest.raises(InvalidDateRange):
        store.create_itinerary("Long", start_date=date(2025, 1, 1), end_date=date(2025, 1, 15))
    assert store.list_itineraries() == []


def test_get_returns_a_snapshot(store, trip):
    snapshot = store.get(trip.id)
    snapshot.days[0].notes = "scribbled"

    assert store.get(trip.id).days[0].notes == ""


def test_delete_and_current(store, trip, recorded):
    assert store.set_current(trip.id)
    assert store.current.id == trip.id

    assert store.delete_itinerary(trip.id)

    assert store.get(trip.id) is None
    assert store.current is None
    assert store.delete_itinerary(trip.id) is False
    assert topics(recorded) == ["current_itinerary_changed", "itinerary_deleted"]


def test_delete_releases_the_id_lock(store, trip):
    store.add_experience(trip.id, make_experience("a"))
    assert trip.id in store._locks

    store.delete_itinerary(trip.id)
    store.get(trip.id)
    store.add_experience(trip.id, make_experience("b"))

    assert trip.id not in store._locks

def test_set_current_unknown_id(store):
    assert store.set_current("nope") is False


# ── Mutations ──────────────────────────────────────────────────────────────────

def test_add_publishes_after_save(store, backend, trip, recorded):
    seen = []
    store.bus.subscribe(EventTopic.EXPERIENCE_ADDED,
                        lambda e: seen.append(len(backend.load_all()[0]["days"][0]["experiences"])))

    result = store.add_experience(trip.id, make_experience("E1"))

    assert result.success
    assert result.time_slot == at(9, 0)
    assert topics(recorded) == ["experience_added"]
    assert seen == [1]
    assert recorded[0].payload["itinerary"].total_experiences() == 1
    assert recorded[0].payload["day_index"] == 0


def test_failed_add_changes_nothing(store, backend, trip, recorded):
    store.add_experience(trip.id, make_experience("E1"), time_slot=at(9, 0))
    saved = backend.load_all()
    recorded.clear()

    result = store.add_experience(trip.id, make_experience("E2"), time_slot=at(10, 0))

    assert isinstance(result.error, SlotConflict)
    assert backend.load_all() == saved
    assert recorded == []


def test_add_to_unknown_itinerary(store):
    result = store.add_experience("missing", make_experience("E1"))
    assert not result.success
    assert isinstance(result.error, ItineraryNotFound)


def test_add_to_invalid_day(store, trip):
    result = store.add_experience(trip.id, make_experience("E1"), day_index=3)
    assert isinstance(result.error, InvalidDayIndex)


def test_remove(store, trip, recorded):
    store.add_experience(trip.id, make_experience("E1"))

    assert store.remove_experience(trip.id, "E1", 0)
    assert store.remove_experience(trip.id, "E1", 0) is False
    assert store.remove_experience(trip.id, "E1", 9) is False
    assert store.get(trip.id).total_experiences() == 0
    assert topics(recorded) == ["experience_added", "experience_removed"]


def test_failing_handler_does_not_undo_mutation(store, trip):
    def boom(event):
        raise RuntimeError("subscriber down")

    store.bus.subscribe(EventTopic.EXPERIENCE_ADDED, boom)

    assert store.add_experience(trip.id, make_experience("E1")).success
    assert store.get(trip.id).total_experiences() == 1


# ── Optimization ───────────────────────────────────────────────────────────────

@pytest.fixture
def scattered(store, trip):
    store.add_experience(trip.id, make_experience("low", lat=40.0 + MILE_LAT, rating=1.0))
    store.add_experience(trip.id, make_experience("high", lat=40.0, rating=5.0))
    store.add_experience(trip.id, make_experience("mid", lat=40.0 + 30 * MILE_LAT, rating=3.0))
    return trip


def test_optimize_commits_and_publishes_both_versions(store, scattered, recorded):
    before = store.get(scattered.id).to_dict()

    result = store.optimize_itinerary(scattered.id)

    assert result.success and result.committed
    assert result.original_itinerary.to_dict() == before
    assert store.get(scattered.id).to_dict() == result.itinerary.to_dict()
    assert [e.experience_id for e in result.itinerary.days[0].experiences][0] == "high"

    event = recorded[-1]
    assert event.topic == "itinerary_optimized"
    assert event.payload["original_itinerary"].to_dict() == before
    assert event.payload["itinerary"].to_dict() == result.itinerary.to_dict()


def test_preview_does_not_save(store, backend, scattered, recorded):
    saved = backend.load_all()
    recorded.clear()

    result = store.preview_optimization(scattered.id)

    assert result.success
    assert not result.committed
    assert backend.load_all() == saved
    assert recorded == []
    assert "last_optimization" not in store.get(scattered.id).metadata


def test_optimize_failure_is_structured(store, trip):
    store.add_experience(trip.id, make_experience("a"))
    store.add_experience(trip.id, make_experience("b", lat=None))

    result = store.optimize_itinerary(trip.id)

    assert not result.success
    assert isinstance(result.error, IncompleteExperienceData)


def test_optimize_unknown_id(store):
    result = store.optimize_itinerary("missing")
    assert isinstance(result.error, ItineraryNotFound)


def test_optimize_that_cannot_fit_the_day_changes_nothing(store, backend, trip, recorded):
    for i in range(8):
        assert store.add_experience(trip.id, make_experience(f"e{i}"), 0, at(3 * i), 180).success
    saved = backend.load_all()
    before = store.get(trip.id).to_dict()
    recorded.clear()

    result = store.optimize_itinerary(trip.id)

    assert not result.success
    assert isinstance(result.error, SlotOutsideDay)
    assert store.get(trip.id).to_dict() == before
    assert backend.load_all() == saved
    assert recorded == []


def test_detector_crash_leaves_store_untouched(store, backend, scattered, recorded, monkeypatch):
    saved = backend.load_all()
    recorded.clear()

    def explode(itinerary):
        raise RuntimeError("detector down")

    monkeypatch.setattr(store.detector, "detect_conflicts", explode)

    with pytest.raises(RuntimeError):
        store.optimize_itinerary(scattered.id)

    assert backend.load_all() == saved
    assert "last_optimization" not in store.get(scattered.id).metadata
    assert recorded == []


# ── Reports ────────────────────────────────────────────────────────────────────

def test_detect_conflicts_unknown_id(store):
    with pytest.raises(ItineraryNotFound):
        store.detect_conflicts("missing")


def test_export_publishes_event(store, trip, recorded):
    artifact = store.export_itinerary(trip.id, "text")

    assert artifact.format == "text"
    assert topics(recorded) == ["itinerary_exported"]
    assert recorded[0].payload["format"] == "text"


def test_export_unknown_format(store, trip):
    with pytest.raises(UnsupportedExportFormat):
        store.export_itinerary(trip.id, "pdf")


# ── Persistence ────────────────────────────────────────────────────────────────

def test_reload_from_backend_round_trip(store, backend, settings, trip):
    store.add_experience(trip.id, make_experience("E1", rating=4.5, tags=["art"]))
    store.add_experience(trip.id, make_experience("E2"), day_index=2)

    reopened = ItineraryStore(backend=backend, settings=settings)

    assert reopened.get(trip.id).to_dict() == store.get(trip.id).to_dict()
    assert reopened.get(trip.id).days[0].experiences[0].experience.tags == ("art",)


def test_load_rejects_day_date_mismatch(backend, settings, trip):
    record = backend.load_all()[0]
    record["days"][1]["date"] = "2025-01-20"
    corrupt = InMemoryBackend()
    corrupt.save(record)

    with pytest.raises(ScheduleInvariantError):
        ItineraryStore(backend=corrupt, settings=settings)


def test_load_rejects_overlapping_entries(store, backend, settings, trip):
    store.add_experience(trip.id, make_experience("a"), 0, at(9, 0), 120)
    store.add_experience(trip.id, make_experience("b"), 0, at(12, 0), 60)
    record = backend.load_all()[0]
    record["days"][0]["experiences"][1]["time_slot"] = at(10, 0).isoformat()
    corrupt = InMemoryBackend()
    corrupt.save(record)

    with pytest.raises(ScheduleInvariantError):
        ItineraryStore(backend=corrupt, settings=settings)


# ── Mixed workloads ────────────────────────────────────────────────────────────

@pytest.mark.parametrize("seed", range(8))
def test_days_stay_consistent_under_mixed_operations(store, settings, trip, seed):
    rng = random.Random(seed)
    added = 0
    for _ in range(60):
        current = store.get(trip.id)
        scheduled = [
            (i, e.experience_id)
            for i, d in enumerate(current.days) for e in d.experiences
        ]
        action = rng.choice(["add", "add", "add", "remove", "optimize"])

        if action == "add":
            day_index = rng.randrange(len(current.days))
            slot = None
            if rng.random() < 0.5:
                slot = at(rng.randrange(24), rng.choice([0, 15, 30, 45]),
                          day=current.days[day_index].date)
            exp = make_experience(
                f"x{added}",
                lat=40.0 + rng.uniform(0, 20) * MILE_LAT,
                rating=round(rng.uniform(0, 5), 1),
            )
            added += 1
            store.add_experience(trip.id, exp, day_index, slot, rng.randrange(30, 241, 15))
        elif action == "remove" and scheduled:
            day_index, exp_id = rng.choice(scheduled)
            assert store.remove_experience(trip.id, exp_id, day_index)
        elif action == "optimize":
            store.optimize_itinerary(trip.id)

        for d in store.get(trip.id).days:
            assert_day_consistent(d)
            assert len(d.experiences) <= settings.max_experiences_per_day
