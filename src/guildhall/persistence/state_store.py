"""State store — durable snapshot of roles, directory, and registry.

One JSON document holds everything the service needs to resume:

    {
      "service_identity": "...",
      "paused": false,
      "roles": {"owner": "...", "admins": [...]},
      "directory": {"contributors": [...]},
      "registry": {"next_id": ..., "records": [...], "index": [...], "archive": [...]}
    }

Writes go to a temporary sibling file which then replaces the target, so a
crash mid-write leaves the previous snapshot intact. Project handles are not
stored; the loader rebinds them through a caller-supplied function.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable, Optional

from guildhall.collaborators.interfaces import ProjectControl
from guildhall.directory.contributors import ContributorDirectory
from guildhall.governance.roles import RoleAuthority
from guildhall.registry.project_registry import ProjectRegistry


class StateStore:
    """JSON snapshot persistence for GuildService."""

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path
        self._data: dict[str, Any] = {}
        if storage_path.exists():
            with storage_path.open("r", encoding="utf-8") as f:
                self._data = json.load(f)

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    def has_state(self) -> bool:
        return bool(self._data)

    def save(
        self,
        service_identity: str,
        paused: bool,
        roles: RoleAuthority,
        directory: ContributorDirectory,
        registry: ProjectRegistry,
    ) -> None:
        """Write a full snapshot.

        Raises:
            OSError: If the snapshot cannot be written.
        """
        data = {
            "service_identity": service_identity,
            "paused": paused,
            "roles": roles.to_records(),
            "directory": directory.to_records(),
            "registry": registry.to_records(),
        }
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._storage_path.with_suffix(self._storage_path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self._storage_path)
        self._data = data

    def load_service_identity(self) -> Optional[str]:
        return self._data.get("service_identity")

    def load_paused(self) -> bool:
        return bool(self._data.get("paused", False))

    def load_roles(self) -> Optional[RoleAuthority]:
        roles = self._data.get("roles")
        if not roles:
            return None
        return RoleAuthority.from_records(roles)

    def load_directory(self, config: dict[str, Any]) -> ContributorDirectory:
        return ContributorDirectory.from_records(
            config, self._data.get("directory", {}),
        )

    def load_registry(
        self,
        config: dict[str, Any],
        bind: Callable[[dict[str, Any]], ProjectControl],
    ) -> ProjectRegistry:
        return ProjectRegistry.from_records(
            config, self._data.get("registry", {}), bind,
        )
