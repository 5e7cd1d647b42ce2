"""In-memory collaborators — a reference Project and a reference token.

These satisfy the Protocols in guildhall.collaborators.interfaces without
any external system. They back the CLI when no chain is configured and are
what the test suite drives the service with.

InMemoryProject keeps only the state the registry can observe: the active
flag, the member set, and which removals were forced. Collateral amounts are
tracked per member so a forced removal can be told apart from a voluntary
withdrawal, but no funds move.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from guildhall.collaborators.interfaces import SelfDeregistration


@dataclass(frozen=True)
class RemovalNotice:
    """One member removal as seen by a project."""
    identity: str
    involuntary: bool
    collateral: int


class InMemoryProject:
    """Reference Project entity.

    Lifecycle: created active; members join up to max_contributors; finish()
    deactivates the project and deregisters it from the registry.
    """

    def __init__(
        self,
        project_identity: str,
        name: str,
        collateral_cost: int,
        reputation_threshold: int,
        max_contributors: int,
        registry: Optional[SelfDeregistration] = None,
    ) -> None:
        self.identity = project_identity
        self.name = name
        self.collateral_cost = collateral_cost
        self._threshold = reputation_threshold
        self.max_contributors = max_contributors
        self._registry = registry
        self._active = True
        self._collateral: dict[str, int] = {}
        self.removals: list[RemovalNotice] = []

    def is_active(self) -> bool:
        return self._active

    def reputation_threshold(self) -> int:
        return self._threshold

    def is_member(self, identity: str) -> bool:
        return identity in self._collateral

    def members(self) -> list[str]:
        return list(self._collateral)

    def join(self, identity: str) -> None:
        """Add a member who stakes the project's collateral cost."""
        if not self._active:
            raise ValueError(f"Project {self.identity} is not active")
        if identity in self._collateral:
            raise ValueError(f"{identity} is already a member of {self.identity}")
        if len(self._collateral) >= self.max_contributors:
            raise ValueError(f"Project {self.identity} is full")
        self._collateral[identity] = self.collateral_cost

    def withdraw(self, identity: str) -> RemovalNotice:
        """Voluntary exit: collateral is returned."""
        return self.remove_member(identity, involuntary=False)

    def remove_member(self, identity: str, involuntary: bool) -> RemovalNotice:
        if identity not in self._collateral:
            raise ValueError(f"{identity} is not a member of {self.identity}")
        staked = self._collateral.pop(identity)
        notice = RemovalNotice(
            identity=identity, involuntary=involuntary, collateral=staked,
        )
        self.removals.append(notice)
        return notice

    def deactivate(self) -> None:
        self._active = False

    def finish(self) -> Any:
        """Deactivate and deregister through the registry callback."""
        self._active = False
        if self._registry is None:
            return None
        return self._registry.deregister_self(self.identity)


def in_memory_project_factory(
    project_identity: str,
    name: str,
    collateral_cost: int,
    reputation_threshold: int,
    max_contributors: int,
    registry: SelfDeregistration,
) -> InMemoryProject:
    """ProjectFactory that builds InMemoryProject instances."""
    return InMemoryProject(
        project_identity,
        name,
        collateral_cost,
        reputation_threshold,
        max_contributors,
        registry=registry,
    )


class InMemoryToken:
    """Reference fungible token bound to one spending account.

    balance_of answers for any identity; transfer always spends from
    ``account`` (the registry's own identity).
    """

    def __init__(
        self,
        account: str,
        balances: Optional[dict[str, int]] = None,
    ) -> None:
        self.account = account
        self._balances: dict[str, int] = dict(balances or {})
        self.fail_transfers = False

    def balance_of(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def mint(self, identity: str, amount: int) -> None:
        if amount <= 0:
            raise ValueError("Mint amount must be positive")
        self._balances[identity] = self._balances.get(identity, 0) + amount

    def transfer(self, to: str, amount: int) -> bool:
        if self.fail_transfers:
            return False
        available = self._balances.get(self.account, 0)
        if amount <= 0 or amount > available:
            return False
        self._balances[self.account] = available - amount
        self._balances[to] = self._balances.get(to, 0) + amount
        return True
