"""Tests for the append-only event log."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from guildhall.persistence.event_log import EventKind, EventLog, EventRecord


def _event(n: int, kind: EventKind = EventKind.PROJECT_CREATED, actor: str = "alice") -> EventRecord:
    return EventRecord.create(
        event_id=f"EVT-{n:08d}",
        event_kind=kind,
        actor_id=actor,
        payload={"n": n},
        timestamp_utc=datetime(2026, 3, 2, 9, 30, n, tzinfo=timezone.utc),
    )


class TestEventRecord:
    def test_hash_is_deterministic(self) -> None:
        assert _event(1).event_hash == _event(1).event_hash
        assert _event(1).event_hash.startswith("sha256:")

    def test_hash_covers_payload(self) -> None:
        a = _event(1)
        b = EventRecord.create(
            a.event_id, a.event_kind, a.actor_id, {"n": 2},
            datetime(2026, 3, 2, 9, 30, 1, tzinfo=timezone.utc),
        )
        assert a.event_hash != b.event_hash

    def test_timestamp_format(self) -> None:
        assert _event(5).timestamp_utc == "2026-03-02T09:30:05Z"


class TestEventLog:
    def test_append_and_filter(self) -> None:
        log = EventLog()
        log.append(_event(1))
        log.append(_event(2, EventKind.CONTRIBUTOR_REGISTERED, actor="carol"))
        assert log.count == 2
        assert [e.event_id for e in log.events(EventKind.CONTRIBUTOR_REGISTERED)] == [
            "EVT-00000002",
        ]
        assert [e.event_id for e in log.events_for_actor("alice")] == ["EVT-00000001"]
        assert log.last_event.event_id == "EVT-00000002"

    def test_duplicate_id_rejected(self) -> None:
        log = EventLog()
        log.append(_event(1))
        with pytest.raises(ValueError):
            log.append(_event(1))
        assert log.count == 1

    def test_empty_log(self) -> None:
        log = EventLog()
        assert log.count == 0
        assert log.last_event is None


class TestEventLogFile:
    def test_reload(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        log = EventLog(storage_path=path)
        log.append(_event(1))
        log.append(_event(2))

        reloaded = EventLog(storage_path=path)
        assert reloaded.count == 2
        assert reloaded.events()[0] == _event(1)

    def test_tampered_line_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).append(_event(1))

        data = json.loads(path.read_text(encoding="utf-8"))
        data["payload"]["n"] = 99
        path.write_text(json.dumps(data) + "\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Integrity check failed"):
            EventLog(storage_path=path)

    def test_duplicate_line_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).append(_event(1))
        line = path.read_text(encoding="utf-8")
        path.write_text(line + line, encoding="utf-8")

        with pytest.raises(ValueError, match="Duplicate event ID"):
            EventLog(storage_path=path)

    def test_failed_write_leaves_memory_unchanged(self, tmp_path: Path) -> None:
        path = tmp_path / "missing-dir" / "events.jsonl"
        log = EventLog(storage_path=path)
        with pytest.raises(OSError):
            log.append(_event(1))
        assert log.count == 0
