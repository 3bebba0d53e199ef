"""Tests for the snapshot history model."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from groovepush.errors import SnapshotNotFound
from groovepush.sync.history import History, Snapshot, generate_snapshot_id

T0 = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


def _snapshot(history: History, moment: datetime, files=None, message=None) -> Snapshot:
    files = files if files is not None else {"a.wav": "h-a"}
    return Snapshot.create(
        files=files,
        parent_id=history.head,
        total_size_bytes=10 * len(files),
        changed_count=len(files),
        message=message,
        now=moment,
        snapshot_id=history.next_snapshot_id(moment),
    )


def test_snapshot_id_uses_second_resolution_utc():
    moment = datetime(2026, 2, 3, 14, 30, 52, 123456, tzinfo=timezone.utc)

    assert generate_snapshot_id(moment) == "20260203T143052Z"
    assert Snapshot.create({}, None, 0, 0, now=moment).id == "20260203T143052Z"


def test_empty_history_has_no_head():
    history = History.new("song")

    assert history.head is None
    assert history.latest_snapshot() is None
    assert history.snapshots == ()


def test_sequential_appends_form_a_single_chain():
    history = History.new("song")
    for index in range(5):
        history.add_snapshot(_snapshot(history, T0 + timedelta(seconds=index)))

    snapshots = history.snapshots
    assert history.head == snapshots[-1].id
    assert history.latest_snapshot() is snapshots[-1]

    chain = history.ancestry(history.head)
    assert [s.id for s in chain] == [s.id for s in reversed(snapshots)]
    assert chain[-1].parent_id is None
    for child, parent in zip(snapshots[1:], snapshots[:-1]):
        assert child.parent_id == parent.id


def test_prefix_lookup_prefers_most_recent_match():
    history = History.new("song")
    history.add_snapshot(_snapshot(history, T0))
    history.add_snapshot(_snapshot(history, T0 + timedelta(seconds=1)))

    assert [s.id for s in history] == ["20240101T000000Z", "20240101T000001Z"]
    assert history.find_snapshot_by_prefix("20240101").id == "20240101T000001Z"
    assert history.find_snapshot_by_prefix("2023") is None


def test_resolve_prefers_exact_id_then_prefix():
    history = History.new("song")
    history.add_snapshot(_snapshot(history, T0))
    history.add_snapshot(_snapshot(history, T0 + timedelta(seconds=1)))

    assert history.resolve("20240101T000000Z").id == "20240101T000000Z"
    assert history.resolve("2024").id == "20240101T000001Z"
    with pytest.raises(SnapshotNotFound):
        history.resolve("1999")


def test_same_second_snapshots_get_distinct_ids():
    history = History.new("song")
    history.add_snapshot(_snapshot(history, T0))
    history.add_snapshot(_snapshot(history, T0))
    history.add_snapshot(_snapshot(history, T0))

    ids = [s.id for s in history]
    assert ids == ["20240101T000000Z", "20240101T000000Z-2", "20240101T000000Z-3"]
    assert history.find_snapshot_by_prefix("20240101T000000Z").id == ids[-1]


def test_json_round_trip_preserves_chain():
    history = History.new("song")
    history.add_snapshot(_snapshot(history, T0, message="first"))
    history.add_snapshot(_snapshot(history, T0 + timedelta(minutes=5), {"a.wav": "h2", "b.wav": "h3"}))

    restored = History.from_json(history.to_json())

    assert restored.project_name == "song"
    assert restored.version == 1
    assert restored.head == history.head
    assert restored.snapshots == history.snapshots
    assert restored.snapshots[0].message == "first"
    assert restored.snapshots[1].meta.file_count == 2


def test_reader_ignores_unknown_fields_and_missing_version():
    payload = {
        "project_name": "song",
        "head": "20260203T143052Z",
        "future_field": {"anything": True},
        "snapshots": [
            {
                "id": "20260203T143052Z",
                "created_at": "2026-02-03T14:30:52.5Z",
                "message": None,
                "files": {"test.txt": "abc123"},
                "parent_id": None,
                "meta": {"file_count": 1, "total_size": 100, "changed_count": 1, "extra": 5},
                "tags": ["ignored"],
            }
        ],
    }

    history = History.from_json(json.dumps(payload))

    assert history.version == 1
    assert history.head == "20260203T143052Z"
    snapshot = history.latest_snapshot()
    assert snapshot.meta.total_size_bytes == 100
    assert snapshot.created_at.tzinfo is not None
    assert history.find_snapshot_by_prefix("202602") is snapshot
