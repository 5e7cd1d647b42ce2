"""Visibility filter — the caller-scoped view of the registry.

Admins see every live project. Everyone else sees the live projects whose
reputation threshold is at or below their effective reputation level, in
registry order (newest first). The result holds exactly the matches; no
padding entries.
"""

from __future__ import annotations

from guildhall.registry.project_registry import ProjectRecord, ProjectRegistry


class VisibilityFilter:
    """Reputation-gated listing."""

    @staticmethod
    def visible_to_level(
        registry: ProjectRegistry,
        reputation_level: int,
    ) -> list[ProjectRecord]:
        """Single pass over the index, keeping threshold <= level."""
        return [
            r for r in registry.list_all()
            if r.reputation_threshold <= reputation_level
        ]

    @staticmethod
    def visible_projects(
        registry: ProjectRegistry,
        is_admin: bool,
        reputation_level: int,
    ) -> list[ProjectRecord]:
        if is_admin:
            return registry.list_all()
        return VisibilityFilter.visible_to_level(registry, reputation_level)
