"""Capability interfaces the engine consumes, plus in-memory references."""

from guildhall.collaborators.interfaces import (
    BalanceOracle,
    FungibleTransfer,
    ProjectControl,
    ProjectFactory,
    SelfDeregistration,
)

__all__ = [
    "BalanceOracle",
    "FungibleTransfer",
    "ProjectControl",
    "ProjectFactory",
    "SelfDeregistration",
]
