"""Persistence tests — state survives restart, failed writes roll back."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from guildhall.collaborators.in_memory import InMemoryToken
from guildhall.directory.contributors import ContributorProfile
from guildhall.errors import ErrorKind
from guildhall.persistence.event_log import EventKind, EventLog
from guildhall.persistence.state_store import StateStore
from guildhall.policy.resolver import PolicyResolver
from guildhall.service import GuildService


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


def _fail_persist() -> None:
    raise OSError("Simulated disk full")


@pytest.fixture
def token() -> InMemoryToken:
    return InMemoryToken("guildhall", {"carol": 5, "mallory": 5})


def _make(tmp_path: Path, token: InMemoryToken, owner: str = "alice") -> GuildService:
    return GuildService(
        owner,
        token,
        resolver=PolicyResolver.from_config_dir(CONFIG_DIR),
        event_log=EventLog(storage_path=tmp_path / "events.jsonl"),
        state_store=StateStore(storage_path=tmp_path / "state.json"),
    )


class TestRestart:
    def test_state_survives_restart(self, tmp_path: Path, token: InMemoryToken) -> None:
        svc = _make(tmp_path, token)
        svc.grant_admin("alice", "bob")
        svc.create_project("bob", "A", 10, 1, 5, project_identity="proj-a")
        svc.create_project("bob", "B", 10, 2, 5, project_identity="proj-b")
        svc.create_project("bob", "C", 10, 1, 5, project_identity="proj-c")
        svc.get_project(2).handle.finish()
        svc.register_self("carol")
        svc.increase_reputation("alice", "carol", 2)
        svc.set_paused("alice", True)

        # a different owner argument is ignored once state exists
        restored = _make(tmp_path, token, owner="someone-else")

        assert restored.owner == "alice"
        assert restored.admins() == ["alice", "bob"]
        assert restored.paused
        assert [r.name for r in restored.list_all()] == ["C", "A"]
        assert [r.name for r in restored.list_deleted()] == ["B"]
        assert restored.project_id_of("proj-c") == 3
        assert restored.project_id_of("proj-b") == 0
        assert restored.get_profile("carol") == ContributorProfile(3, 0, False)
        assert restored.list_contributors() == ["carol"]

    def test_ids_continue_after_restart(self, tmp_path: Path, token: InMemoryToken) -> None:
        svc = _make(tmp_path, token)
        svc.create_project("alice", "A", 10, 1, 5)
        svc.create_project("alice", "B", 10, 1, 5)

        restored = _make(tmp_path, token)
        result = restored.create_project("alice", "C", 10, 1, 5)
        assert result.data["project_id"] == 3

    def test_rebound_project_can_deregister(
        self, tmp_path: Path, token: InMemoryToken,
    ) -> None:
        svc = _make(tmp_path, token)
        svc.create_project("alice", "A", 10, 1, 5, project_identity="proj-a")

        restored = _make(tmp_path, token)
        handle = restored.get_project(1).handle
        assert handle.is_active()
        assert handle.finish().success
        assert restored.count() == 0

    def test_event_ids_continue_after_restart(
        self, tmp_path: Path, token: InMemoryToken,
    ) -> None:
        svc = _make(tmp_path, token)
        svc.create_project("alice", "A", 10, 1, 5)
        svc.register_self("carol")

        restored = _make(tmp_path, token)
        restored.register_self("mallory")
        log = EventLog(storage_path=tmp_path / "events.jsonl")
        assert [e.event_id for e in log.events()] == [
            "EVT-00000001", "EVT-00000002", "EVT-00000003",
        ]

    def test_snapshot_is_json(self, tmp_path: Path, token: InMemoryToken) -> None:
        svc = _make(tmp_path, token)
        svc.create_project("alice", "A", 10, 1, 5, project_identity="proj-a")
        with (tmp_path / "state.json").open(encoding="utf-8") as f:
            data = json.load(f)
        assert data["roles"]["owner"] == "alice"
        assert data["registry"]["index"] == [1]
        assert data["registry"]["records"][0]["project_identity"] == "proj-a"
        assert not (tmp_path / "state.json.tmp").exists()


class TestRollbackOnPersistFailure:
    def test_create_project_rolls_back(self, tmp_path: Path, token: InMemoryToken) -> None:
        svc = _make(tmp_path, token)
        svc._persist_state = _fail_persist
        result = svc.create_project("alice", "A", 10, 1, 5)
        assert result.error_kind == ErrorKind.PERSISTENCE_FAILURE
        assert svc.count() == 0
        assert svc._event_log.count == 0

    def test_register_rolls_back(self, tmp_path: Path, token: InMemoryToken) -> None:
        svc = _make(tmp_path, token)
        svc._persist_state = _fail_persist
        result = svc.register_self("carol")
        assert result.error_kind == ErrorKind.PERSISTENCE_FAILURE
        assert not svc.is_registered("carol")
        # a later retry succeeds once the disk recovers
        del svc._persist_state
        assert svc.register_self("carol").success

    def test_deregister_rolls_back(self, tmp_path: Path, token: InMemoryToken) -> None:
        svc = _make(tmp_path, token)
        svc.create_project("alice", "A", 10, 1, 5, project_identity="proj-a")
        svc.create_project("alice", "B", 10, 1, 5, project_identity="proj-b")
        svc._persist_state = _fail_persist
        result = svc.deregister_self("proj-a")
        assert result.error_kind == ErrorKind.PERSISTENCE_FAILURE
        assert [r.name for r in svc.list_all()] == ["B", "A"]
        assert svc.list_deleted() == []
        assert svc.project_id_of("proj-a") == 1

    def test_ban_rolls_back_profile(self, tmp_path: Path, token: InMemoryToken) -> None:
        svc = _make(tmp_path, token)
        svc.register_self("mallory")
        svc._persist_state = _fail_persist
        result = svc.set_banned("alice", "mallory", True)
        assert result.error_kind == ErrorKind.PERSISTENCE_FAILURE
        assert not svc.get_profile("mallory").is_banned

    def test_ban_persist_failure_evicts_nobody(
        self, tmp_path: Path, token: InMemoryToken,
    ) -> None:
        svc = _make(tmp_path, token)
        svc.create_project("alice", "B", 1, 1, 5)
        b = svc.get_project(1).handle
        svc.register_self("mallory")
        b.join("mallory")
        svc._persist_state = _fail_persist

        result = svc.set_banned("alice", "mallory", True)

        assert result.error_kind == ErrorKind.PERSISTENCE_FAILURE
        assert not svc.get_profile("mallory").is_banned
        assert b.is_member("mallory")
        assert b.removals == []
        assert svc._event_log.events(EventKind.MEMBER_REMOVED) == []

    def test_pause_rolls_back(self, tmp_path: Path, token: InMemoryToken) -> None:
        svc = _make(tmp_path, token)
        svc._persist_state = _fail_persist
        result = svc.set_paused("alice", True)
        assert result.error_kind == ErrorKind.PERSISTENCE_FAILURE
        assert not svc.paused

    def test_grant_rolls_back(self, tmp_path: Path, token: InMemoryToken) -> None:
        svc = _make(tmp_path, token)
        svc._persist_state = _fail_persist
        result = svc.grant_admin("alice", "bob")
        assert result.error_kind == ErrorKind.PERSISTENCE_FAILURE
        assert not svc.is_admin("bob")

    def test_event_failure_marks_degraded(
        self, tmp_path: Path, token: InMemoryToken,
    ) -> None:
        svc = _make(tmp_path, token)

        def _broken_append(event) -> None:
            raise OSError("Simulated event write failure")

        svc._event_log.append = _broken_append
        result = svc.create_project("alice", "A", 10, 1, 5)
        assert result.success
        assert svc.count() == 1
        assert svc.status()["persistence_degraded"] is True


class TestEventLogFile:
    def test_events_written_in_order(self, tmp_path: Path, token: InMemoryToken) -> None:
        svc = _make(tmp_path, token)
        svc.create_project("alice", "A", 10, 1, 5)
        svc.register_self("carol")
        svc.set_banned("alice", "carol", True)

        log = EventLog(storage_path=tmp_path / "events.jsonl")
        assert [e.event_kind for e in log.events()] == [
            EventKind.PROJECT_CREATED,
            EventKind.CONTRIBUTOR_REGISTERED,
            EventKind.CONTRIBUTOR_BANNED,
        ]
