"""Ban propagation — evict a newly banned contributor from every active project.

The sweep runs in two phases:

1. plan(): walk the whole index, head to tail, and collect every record whose
   project reports is_active() and is_member(identity). No early exit: a
   contributor is expected to sit in at most one active project, but the
   sweep does not rely on it.
2. execute(): call remove_member(identity, involuntary=True) on each planned
   project, in plan order.

Planning before removing keeps the traversal independent of anything a
project does during removal, including calling back into the registry.
Projects that are inactive or never held the contributor are not touched.

The engine is stateless and holds no reference to the directory. Committing
the ban flag before execute() is the service layer's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from guildhall.errors import PropagationFailed
from guildhall.registry.project_registry import ProjectRecord, ProjectRegistry


@dataclass(frozen=True)
class PropagationResult:
    """Outcome of one sweep."""
    identity: str
    scanned: int
    removed_from: list[int] = field(default_factory=list)


class BanPropagationEngine:
    """Sweeps the registry for a banned contributor's memberships."""

    def plan(
        self,
        identity: str,
        registry: ProjectRegistry,
    ) -> tuple[list[ProjectRecord], int]:
        """Return (records to evict from, number of records scanned).

        Raises:
            PropagationFailed: If a project fails to answer a query.
        """
        targets: list[ProjectRecord] = []
        scanned = 0
        for record in registry.list_all():
            scanned += 1
            try:
                if record.is_active() and record.handle.is_member(identity):
                    targets.append(record)
            except Exception as e:
                raise PropagationFailed(
                    f"Project {record.project_id} failed a membership query "
                    f"for {identity}: {e}"
                ) from e
        return targets, scanned

    def execute(
        self,
        identity: str,
        targets: list[ProjectRecord],
        scanned: int,
    ) -> PropagationResult:
        """Evict the contributor from each planned project.

        Raises:
            PropagationFailed: If a project raises during removal. The
                exception carries the ids already evicted in ``removed_from``.
        """
        removed: list[int] = []
        for record in targets:
            try:
                record.handle.remove_member(identity, involuntary=True)
            except Exception as e:
                raise PropagationFailed(
                    f"Project {record.project_id} failed to remove "
                    f"{identity}: {e}",
                    removed_from=removed,
                ) from e
            removed.append(record.project_id)
        return PropagationResult(
            identity=identity, scanned=scanned, removed_from=removed,
        )

    def propagate(
        self,
        identity: str,
        registry: ProjectRegistry,
    ) -> PropagationResult:
        """Plan and execute in one call."""
        targets, scanned = self.plan(identity, registry)
        return self.execute(identity, targets, scanned)
