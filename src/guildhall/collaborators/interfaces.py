"""Collaborator contracts — what the registry needs from the outside world.

The registry never owns a Project's lifecycle or a token's ledger. It talks
to both through these Protocols, so a project implementation or a token
backend can be swapped without touching the directory, registry, or ban
propagation logic.

Re-entrancy: any method here may call back into the GuildService. The
service commits its own bookkeeping before calling out, so a callback always
observes consistent state.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ProjectControl(Protocol):
    """A live Project as seen by the registry."""

    def is_active(self) -> bool:
        """Whether the project is currently running."""
        ...

    def reputation_threshold(self) -> int:
        ...

    def is_member(self, identity: str) -> bool:
        ...

    def remove_member(self, identity: str, involuntary: bool) -> None:
        """Remove a contributor.

        involuntary=True marks a forced removal (ban), which the project may
        treat differently from voluntary withdrawal, e.g. for collateral.
        """
        ...


@runtime_checkable
class BalanceOracle(Protocol):
    """Answers token balances — used to decide holder standing."""

    def balance_of(self, identity: str) -> int:
        ...


@runtime_checkable
class FungibleTransfer(BalanceOracle, Protocol):
    """A token the owner can withdraw from."""

    def transfer(self, to: str, amount: int) -> bool:
        ...


@runtime_checkable
class SelfDeregistration(Protocol):
    """The single callback a Project receives from the registry.

    A project calls deregister_self with its own identity when it finishes.
    The registry validates the identity against its reverse lookup; holding
    this callback grants no other standing.
    """

    def deregister_self(self, caller: str) -> Any:
        ...


class ProjectFactory(Protocol):
    """Builds the external Project entity for a new registry record."""

    def __call__(
        self,
        project_identity: str,
        name: str,
        collateral_cost: int,
        reputation_threshold: int,
        max_contributors: int,
        registry: SelfDeregistration,
    ) -> ProjectControl:
        ...
