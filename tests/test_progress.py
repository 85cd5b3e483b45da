from __future__ import annotations

import json
from pathlib import Path

import pytest

import interview_core as core


def test_load_empty_store_gives_empty_map(tracker: core.ProgressTracker):
    assert tracker.progress == {}
    assert not tracker.is_read("javascript", 1)


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", "null", '"text"', '{"css": 5}'])
def test_corrupt_progress_loads_as_empty(raw: str):
    store = core.MemoryStore({core.STORAGE_KEY: raw})
    tracker = core.ProgressTracker(store)
    assert tracker.load() == {}


def test_load_drops_falsey_flags():
    store = core.MemoryStore({core.STORAGE_KEY: json.dumps({"css": {"1": True, "2": False}, "js": {}})})
    tracker = core.ProgressTracker(store)
    assert tracker.load() == {"css": {"1": True}}


def test_toggle_read_inserts_and_persists(tracker: core.ProgressTracker, store: core.MemoryStore):
    assert tracker.toggle_read("javascript", 1) is True
    assert tracker.is_read("javascript", 1)
    assert tracker.is_read("javascript", "1")
    assert json.loads(store.get(core.STORAGE_KEY)) == {"javascript": {"1": True}}


def test_toggle_read_is_its_own_inverse(tracker: core.ProgressTracker, store: core.MemoryStore):
    tracker.toggle_read("css", 2)
    before = store.get(core.STORAGE_KEY)

    assert tracker.toggle_read("javascript", 3) is True
    assert tracker.toggle_read("javascript", 3) is False
    assert not tracker.is_read("javascript", 3)
    assert store.get(core.STORAGE_KEY) == before


def test_untoggle_removes_entry_keeping_map_sparse(tracker: core.ProgressTracker):
    tracker.toggle_read("css", 1)
    tracker.toggle_read("css", 1)
    assert "css" not in tracker.progress


def test_mark_all_read_single_write(catalog: core.QuestionStore):
    class CountingStore(core.MemoryStore):
        writes = 0

        def set(self, key: str, value: str) -> None:
            CountingStore.writes += 1
            super().set(key, value)

    store = CountingStore()
    tracker = core.ProgressTracker(store)
    tracker.load()
    tracker.toggle_read("javascript", 2)
    CountingStore.writes = 0

    result = tracker.mark_all_read("javascript", [1, 2, 3])
    assert result.ok
    assert CountingStore.writes == 1
    assert tracker.read_ids("javascript") == {"1", "2", "3"}

    # idempotent
    tracker.mark_all_read("javascript", [1, 2, 3])
    assert tracker.read_count("javascript") == 3


def test_round_trip_through_store(tracker: core.ProgressTracker, store: core.MemoryStore):
    tracker.toggle_read("javascript", 1)
    tracker.mark_all_read("css", [1, 2])
    tracker.persist()

    restored = core.ProgressTracker(store)
    restored.load()
    for topic_id, qid in [("javascript", 1), ("javascript", 2), ("css", 1), ("css", 2), ("html", 1)]:
        assert restored.is_read(topic_id, qid) == tracker.is_read(topic_id, qid)


def test_round_trip_through_disk(tmp_path: Path):
    path = tmp_path / "store" / "progress_store.json"
    tracker = core.ProgressTracker(core.DiskStore(path))
    tracker.load()
    tracker.toggle_read("css", 2)

    restored = core.ProgressTracker(core.DiskStore(path))
    assert restored.load() == {"css": {"2": True}}
    assert not path.with_suffix(".json.tmp").exists()


def test_disk_store_keeps_other_slots(tmp_path: Path):
    path = tmp_path / "progress_store.json"
    path.write_text(json.dumps({"theme": "dark"}), encoding="utf-8")
    store = core.DiskStore(path)
    store.set(core.STORAGE_KEY, "{}")
    assert store.get("theme") == "dark"
    assert store.get(core.STORAGE_KEY) == "{}"
    assert store.get("missing") is None


def test_corrupt_disk_file_loads_empty_and_is_replaced(tmp_path: Path):
    path = tmp_path / "progress_store.json"
    path.write_text("{broken", encoding="utf-8")
    tracker = core.ProgressTracker(core.DiskStore(path))
    assert tracker.load() == {}

    tracker.toggle_read("javascript", 1)
    assert json.loads(path.read_text(encoding="utf-8")) == {core.STORAGE_KEY: '{"javascript": {"1": true}}'}


def test_write_failure_is_reported_not_raised(failing_store, caplog):
    tracker = core.ProgressTracker(failing_store)
    tracker.load()

    with caplog.at_level("WARNING", logger="interview_core"):
        assert tracker.toggle_read("css", 1) is True
    assert tracker.last_result.ok is False
    assert "quota exceeded" in tracker.last_result.error
    assert "Progress not saved" in caplog.text

    result = tracker.mark_all_read("css", [1, 2])
    assert result == core.PersistResult(ok=False, error="quota exceeded")
    # in-memory state stays authoritative
    assert tracker.read_count("css") == 2
    assert failing_store.attempts == 2


def test_read_failure_loads_empty(monkeypatch, store: core.MemoryStore):
    def boom(key):
        raise OSError("disk gone")

    monkeypatch.setattr(store, "get", boom)
    tracker = core.ProgressTracker(store)
    assert tracker.load() == {}


def test_reset(tracker: core.ProgressTracker):
    tracker.mark_all_read("javascript", [1, 2])
    tracker.mark_all_read("css", [1])
    tracker.reset("css")
    assert tracker.progress == {"javascript": {"1": True, "2": True}}
    assert tracker.reset().ok
    assert tracker.progress == {}


def test_make_store_follows_backend(monkeypatch):
    monkeypatch.setattr(core, "PERSISTENCE_BACKEND", "disk")
    core.set_persistence_backend("session")
    assert isinstance(core.make_store(), core.MemoryStore)
    core.set_persistence_backend("bogus")
    assert core.PERSISTENCE_BACKEND == "disk"
    assert isinstance(core.make_store(), core.DiskStore)
