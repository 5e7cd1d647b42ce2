"""Project Registry Engine — live projects, archive, and self-deregistration.

Architecture:
- ProjectRegistry owns the id counter, the ordered index of live records,
  the append-only archive, and the reverse lookup from a project's own
  identity to its id.
- The service layer decides who may create projects and builds the external
  Project entity. The engine only keeps the books.
- The engine never calls into a Project handle while mutating. Handles are
  stored and returned; querying them is the caller's business.

Invariants:
- Ids start at 1, increase by one per creation, and are never reused.
- Id 0 is the sentinel and is never assigned to a record.
- The index holds exactly the ids of records not yet archived.
- The archive only grows.
- A reverse lookup entry exists iff its record is live.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from guildhall.collaborators.interfaces import ProjectControl
from guildhall.errors import InvalidProjectParameters, NotRegisteredOrAlreadyDeleted
from guildhall.registry.index import SENTINEL_ID, RegistryIndex

MAX_PROJECT_NAME_LENGTH = 128


@dataclass
class ProjectRecord:
    """Registry bookkeeping for one project.

    The handle is the externally owned Project entity. Whether the project
    is active is always asked of the handle, never cached here.
    """
    project_id: int
    name: str
    collateral_cost: int
    reputation_threshold: int
    max_contributors: int
    project_identity: str
    handle: ProjectControl
    created_utc: datetime
    deleted_utc: Optional[datetime] = None

    def is_active(self) -> bool:
        return bool(self.handle.is_active())


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class ProjectRegistry:
    """Ordered registry of live projects plus the deleted archive.

    Usage:
        registry = ProjectRegistry({})
        record = registry.add_project("proj_1", "Docs", 100, 1, 5, handle)
        registry.list_all()           # newest first
        registry.deregister("proj_1")
        registry.list_deleted()       # oldest first
    """

    def __init__(self, config: Optional[dict[str, Any]] = None) -> None:
        config = config or {}
        self._max_name_length = config.get(
            "max_project_name_length", MAX_PROJECT_NAME_LENGTH
        )
        self._records: dict[int, ProjectRecord] = {}
        self._index = RegistryIndex()
        self._archive: list[ProjectRecord] = []
        self._reverse: dict[str, int] = {}
        self._next_id = 1

    @classmethod
    def from_records(
        cls,
        config: dict[str, Any],
        data: dict[str, Any],
        bind: Callable[[dict[str, Any]], ProjectControl],
    ) -> ProjectRegistry:
        """Restore engine state from persistence records.

        Args:
            config: Registry configuration.
            data: Output of to_records().
            bind: Rebuilds the external Project handle for a stored record.
        """
        registry = cls(config)
        registry._next_id = data.get("next_id", 1)

        def _restore(rd: dict[str, Any]) -> ProjectRecord:
            return ProjectRecord(
                project_id=rd["project_id"],
                name=rd["name"],
                collateral_cost=rd["collateral_cost"],
                reputation_threshold=rd["reputation_threshold"],
                max_contributors=rd["max_contributors"],
                project_identity=rd["project_identity"],
                handle=bind(rd),
                created_utc=datetime.fromisoformat(rd["created_utc"]),
                deleted_utc=(
                    datetime.fromisoformat(rd["deleted_utc"])
                    if rd.get("deleted_utc") else None
                ),
            )

        for rd in data.get("records", []):
            record = _restore(rd)
            registry._records[record.project_id] = record
            registry._reverse[record.project_identity] = record.project_id
        registry._index = RegistryIndex.from_ids(data.get("index", []))
        registry._archive = [_restore(rd) for rd in data.get("archive", [])]

        if set(registry._index) != set(registry._records):
            raise ValueError("Stored index does not match stored live records")
        return registry

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def validate_parameters(
        self,
        name: str,
        collateral_cost: int,
        reputation_threshold: int,
        max_contributors: int,
    ) -> None:
        """Check creation parameters without touching state.

        Raises:
            InvalidProjectParameters: On an empty name or a non-positive
                numeric parameter.
        """
        if not isinstance(name, str) or not name.strip():
            raise InvalidProjectParameters("Project name cannot be empty")
        if len(name.strip()) > self._max_name_length:
            raise InvalidProjectParameters(
                f"Project name exceeds {self._max_name_length} characters"
            )
        for label, value in (
            ("collateral_cost", collateral_cost),
            ("reputation_threshold", reputation_threshold),
            ("max_contributors", max_contributors),
        ):
            if not _is_positive_int(value):
                raise InvalidProjectParameters(
                    f"{label} must be a positive integer, got {value!r}"
                )

    def add_project(
        self,
        project_identity: str,
        name: str,
        collateral_cost: int,
        reputation_threshold: int,
        max_contributors: int,
        handle: ProjectControl,
        now: Optional[datetime] = None,
    ) -> ProjectRecord:
        """Register a new project at the front of the index.

        Returns:
            The new ProjectRecord.

        Raises:
            InvalidProjectParameters: If validation fails or the identity
                already has a live entry.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        self.validate_parameters(
            name, collateral_cost, reputation_threshold, max_contributors,
        )
        identity = project_identity.strip()
        if not identity:
            raise InvalidProjectParameters("Project identity cannot be empty")
        if identity in self._reverse:
            raise InvalidProjectParameters(
                f"Project identity already registered: {identity}"
            )

        project_id = self._next_id
        record = ProjectRecord(
            project_id=project_id,
            name=name.strip(),
            collateral_cost=collateral_cost,
            reputation_threshold=reputation_threshold,
            max_contributors=max_contributors,
            project_identity=identity,
            handle=handle,
            created_utc=now,
        )

        self._index.push_front(project_id)
        self._records[project_id] = record
        self._reverse[identity] = project_id
        self._next_id += 1
        return record

    def deregister(
        self,
        project_identity: str,
        now: Optional[datetime] = None,
    ) -> ProjectRecord:
        """Move the caller's own record from the index to the archive.

        Raises:
            NotRegisteredOrAlreadyDeleted: If the identity has no live entry.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        project_id = self.id_of(project_identity)
        if project_id == SENTINEL_ID:
            raise NotRegisteredOrAlreadyDeleted(
                f"No live project registered for {project_identity}"
            )

        record = self._records.pop(project_id)
        del self._reverse[record.project_identity]
        self._index.remove(project_id)
        record.deleted_utc = now
        self._archive.append(record)
        return record

    def restore(self, record: ProjectRecord) -> None:
        """Undo the most recent deregister of ``record``.

        Used by the service layer to roll back when persistence fails.
        """
        if not self._archive or self._archive[-1] is not record:
            raise ValueError("Only the latest archived record can be restored")
        self._archive.pop()
        record.deleted_utc = None
        self._records[record.project_id] = record
        self._reverse[record.project_identity] = record.project_id
        # Ids are pushed in increasing order, so index order is descending id.
        self._index = RegistryIndex.from_ids(
            sorted([*self._index, record.project_id], reverse=True)
        )

    def discard_latest(self, record: ProjectRecord) -> None:
        """Undo the most recent add_project. Rollback only; the id stays spent."""
        if self._index.head != record.project_id:
            raise ValueError("Only the newest record can be discarded")
        self._index.remove(record.project_id)
        self._records.pop(record.project_id, None)
        self._reverse.pop(record.project_identity, None)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def id_of(self, project_identity: str) -> int:
        """Reverse lookup. Returns SENTINEL_ID when not live."""
        return self._reverse.get(project_identity.strip(), SENTINEL_ID)

    def get(self, project_id: int) -> Optional[ProjectRecord]:
        return self._records.get(project_id)

    def list_all(self) -> list[ProjectRecord]:
        """Live records in index order, newest first."""
        return [self._records[pid] for pid in self._index]

    def list_deleted(self) -> list[ProjectRecord]:
        """Archived records in deletion order, oldest first."""
        return list(self._archive)

    def count(self) -> int:
        return len(self._index)

    @property
    def next_id(self) -> int:
        return self._next_id

    @property
    def index(self) -> RegistryIndex:
        return self._index

    def to_records(self) -> dict[str, Any]:
        """Serialise registry bookkeeping. Handles are not serialised."""

        def _dump(r: ProjectRecord) -> dict[str, Any]:
            return {
                "project_id": r.project_id,
                "name": r.name,
                "collateral_cost": r.collateral_cost,
                "reputation_threshold": r.reputation_threshold,
                "max_contributors": r.max_contributors,
                "project_identity": r.project_identity,
                "created_utc": r.created_utc.isoformat(),
                "deleted_utc": (
                    r.deleted_utc.isoformat() if r.deleted_utc else None
                ),
            }

        return {
            "next_id": self._next_id,
            "records": [_dump(r) for r in self.list_all()],
            "index": self._index.ids(),
            "archive": [_dump(r) for r in self._archive],
        }
