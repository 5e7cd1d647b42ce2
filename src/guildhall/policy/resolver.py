"""Policy resolver — typed access to the registry's JSON configuration.

Configuration lives in ``config/registry_policy.json``. Missing keys fall
back to the defaults below, so an empty file is a valid policy.

Keys:
    default_reputation_level   level of a fresh or unregistered contributor
    initial_reputation_points  points of a fresh contributor
    holder_min_balance         holder iff token balance > this
    start_paused               pause flag of a fresh service
    max_project_name_length    upper bound on project names
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

POLICY_FILENAME = "registry_policy.json"

_DEFAULTS: dict[str, Any] = {
    "default_reputation_level": 1,
    "initial_reputation_points": 0,
    "holder_min_balance": 0,
    "start_paused": False,
    "max_project_name_length": 128,
}


class PolicyResolver:
    """Resolves registry policy values."""

    def __init__(self, policy: Optional[dict[str, Any]] = None) -> None:
        self._policy: dict[str, Any] = dict(_DEFAULTS)
        if policy:
            self._policy.update(policy)

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> PolicyResolver:
        """Load ``registry_policy.json`` from a config directory.

        Raises:
            ValueError: If the file exists but holds an invalid policy.
        """
        path = config_dir / POLICY_FILENAME
        policy: dict[str, Any] = {}
        if path.exists():
            with path.open("r", encoding="utf-8") as handle:
                policy = json.load(handle)
        resolver = cls(policy)
        errors = resolver.validate()
        if errors:
            raise ValueError(f"Invalid policy in {path}: {'; '.join(errors)}")
        return resolver

    def validate(self) -> list[str]:
        """Check policy invariants. Returns errors (empty = OK)."""
        errors: list[str] = []
        level = self._policy["default_reputation_level"]
        if not isinstance(level, int) or isinstance(level, bool) or level < 1:
            errors.append(f"default_reputation_level must be >= 1, got {level!r}")
        points = self._policy["initial_reputation_points"]
        if not isinstance(points, int) or isinstance(points, bool) or points < 0:
            errors.append(f"initial_reputation_points must be >= 0, got {points!r}")
        min_balance = self._policy["holder_min_balance"]
        if not isinstance(min_balance, int) or isinstance(min_balance, bool) or min_balance < 0:
            errors.append(f"holder_min_balance must be >= 0, got {min_balance!r}")
        if not isinstance(self._policy["start_paused"], bool):
            errors.append("start_paused must be a boolean")
        name_len = self._policy["max_project_name_length"]
        if not isinstance(name_len, int) or isinstance(name_len, bool) or name_len < 1:
            errors.append(f"max_project_name_length must be >= 1, got {name_len!r}")
        return errors

    def directory_config(self) -> dict[str, Any]:
        return {
            "default_reputation_level": self._policy["default_reputation_level"],
            "initial_reputation_points": self._policy["initial_reputation_points"],
        }

    def registry_config(self) -> dict[str, Any]:
        return {
            "max_project_name_length": self._policy["max_project_name_length"],
        }

    @property
    def holder_min_balance(self) -> int:
        return self._policy["holder_min_balance"]

    @property
    def start_paused(self) -> bool:
        return self._policy["start_paused"]

    @property
    def default_reputation_level(self) -> int:
        return self._policy["default_reputation_level"]

    def as_dict(self) -> dict[str, Any]:
        return dict(self._policy)
