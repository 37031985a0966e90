import json

from conftest import make_experience
from modules.observability.logger import StructuredLogger


def read_jsonl(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_store_events_land_in_per_itinerary_files(tmp_path, store):
    log = StructuredLogger(tmp_path)
    log.attach(store.bus)

    it = store.create_itinerary("Trip")
    store.add_experience(it.id, make_experience("E1"))
    store.delete_itinerary(it.id)
    log.close()

    records = read_jsonl(tmp_path / f"{it.id}.jsonl")
    assert [r["event_type"] for r in records] == [
        "itinerary_created", "experience_added", "itinerary_deleted",
    ]
    added = records[1]["payload"]
    assert added["experience_id"] == "E1"
    assert added["itinerary_experiences"] == 1
    assert "itinerary" not in added


def test_events_without_itinerary_go_to_store_stream(tmp_path, bus):
    log = StructuredLogger(tmp_path)
    log.attach(bus)

    bus.publish("maintenance", {"note": "reindex"})
    log.close()

    assert read_jsonl(tmp_path / "store.jsonl")[0]["payload"] == {"note": "reindex"}
