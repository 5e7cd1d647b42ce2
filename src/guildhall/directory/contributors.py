"""Contributor directory — who registered, and their reputation and ban state.

The directory is pure bookkeeping. It does not check roles, pause state, or
holder balances; the service layer does that before calling in. It also
never touches projects: a ban transition is reported back to the caller,
which runs ban propagation.

Invariants:
- A profile exists iff the identity registered (or was restored).
- reputation_level >= 1 and reputation_points >= 0 at all times.
- The roster lists each registered identity once, in registration order.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from guildhall.errors import AlreadyRegistered, InvalidParameter

DEFAULT_REPUTATION_LEVEL = 1
INITIAL_REPUTATION_POINTS = 0


@dataclass(frozen=True)
class ContributorProfile:
    """Reputation and ban state of one contributor.

    Frozen: every change produces a new profile, which keeps rollback to a
    single reference swap.
    """
    reputation_level: int = DEFAULT_REPUTATION_LEVEL
    reputation_points: int = INITIAL_REPUTATION_POINTS
    is_banned: bool = False

    def validate(self) -> None:
        """Raise InvalidParameter if the profile breaks a directory invariant."""
        if (
            not isinstance(self.reputation_level, int)
            or isinstance(self.reputation_level, bool)
            or self.reputation_level < 1
        ):
            raise InvalidParameter(
                f"reputation_level must be a positive integer, "
                f"got {self.reputation_level!r}"
            )
        if (
            not isinstance(self.reputation_points, int)
            or isinstance(self.reputation_points, bool)
            or self.reputation_points < 0
        ):
            raise InvalidParameter(
                f"reputation_points must be a non-negative integer, "
                f"got {self.reputation_points!r}"
            )


class ContributorDirectory:
    """Profiles keyed by identity, plus the enumerable roster."""

    def __init__(self, config: Optional[dict[str, Any]] = None) -> None:
        config = config or {}
        self._default_level = config.get(
            "default_reputation_level", DEFAULT_REPUTATION_LEVEL
        )
        self._initial_points = config.get(
            "initial_reputation_points", INITIAL_REPUTATION_POINTS
        )
        self._profiles: dict[str, ContributorProfile] = {}
        self._roster: list[str] = []
        self._registered_utc: dict[str, datetime] = {}

    @classmethod
    def from_records(
        cls,
        config: dict[str, Any],
        data: dict[str, Any],
    ) -> ContributorDirectory:
        """Restore the directory from persistence records."""
        directory = cls(config)
        for entry in data.get("contributors", []):
            identity = entry["identity"]
            directory._profiles[identity] = ContributorProfile(
                reputation_level=entry["reputation_level"],
                reputation_points=entry["reputation_points"],
                is_banned=entry["is_banned"],
            )
            directory._roster.append(identity)
            if entry.get("registered_utc"):
                directory._registered_utc[identity] = datetime.fromisoformat(
                    entry["registered_utc"]
                )
        return directory

    def register(
        self,
        identity: str,
        now: Optional[datetime] = None,
    ) -> ContributorProfile:
        """Create a fresh profile and append the identity to the roster.

        Raises:
            InvalidParameter: If the identity is blank.
            AlreadyRegistered: If a profile already exists.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        canonical = identity.strip()
        if not canonical:
            raise InvalidParameter("Cannot register a blank identity")
        if canonical in self._profiles:
            raise AlreadyRegistered(f"{canonical} is already registered")

        profile = ContributorProfile(
            reputation_level=self._default_level,
            reputation_points=self._initial_points,
            is_banned=False,
        )
        self._profiles[canonical] = profile
        self._roster.append(canonical)
        self._registered_utc[canonical] = now
        return profile

    def unregister_latest(self, identity: str) -> None:
        """Undo the most recent register(). Rollback only."""
        canonical = identity.strip()
        if not self._roster or self._roster[-1] != canonical:
            raise ValueError("Only the latest registration can be undone")
        self._roster.pop()
        self._profiles.pop(canonical, None)
        self._registered_utc.pop(canonical, None)

    def set_profile(
        self,
        identity: str,
        profile: ContributorProfile,
    ) -> ContributorProfile:
        """Overwrite a profile. Returns the previous one.

        Raises:
            InvalidParameter: If the identity is unknown or the profile is
                out of range.
        """
        previous = self._require(identity)
        profile.validate()
        self._profiles[identity.strip()] = profile
        return previous

    def increase_reputation(
        self,
        identity: str,
        levels: int,
    ) -> ContributorProfile:
        """Promote by ``levels`` and reset points. Returns the previous profile.

        Points accrue toward promotions elsewhere; a promotion spends them.

        Raises:
            InvalidParameter: If levels is not a positive integer or the
                identity is unknown.
        """
        if not isinstance(levels, int) or isinstance(levels, bool) or levels <= 0:
            raise InvalidParameter(
                f"levels must be a positive integer, got {levels!r}"
            )
        previous = self._require(identity)
        self._profiles[identity.strip()] = dataclasses.replace(
            previous,
            reputation_level=previous.reputation_level + levels,
            reputation_points=0,
        )
        return previous

    def set_banned(self, identity: str, state: bool) -> ContributorProfile:
        """Set the ban flag. Returns the previous profile.

        Whether this is a new ban is ``not previous.is_banned and state``.
        """
        previous = self._require(identity)
        self._profiles[identity.strip()] = dataclasses.replace(
            previous, is_banned=bool(state),
        )
        return previous

    def restore_profile(self, identity: str, profile: ContributorProfile) -> None:
        """Put back a profile captured before a mutation. Rollback only."""
        self._profiles[identity.strip()] = profile

    def get(self, identity: str) -> Optional[ContributorProfile]:
        return self._profiles.get(identity.strip())

    def is_registered(self, identity: str) -> bool:
        return identity.strip() in self._profiles

    def is_banned(self, identity: str) -> bool:
        profile = self.get(identity)
        return profile is not None and profile.is_banned

    def reputation_level(self, identity: str) -> int:
        """Stored level for members; the default level for everyone else."""
        profile = self.get(identity)
        if profile is None:
            return self._default_level
        return profile.reputation_level

    def roster(self) -> list[str]:
        """Registered identities in registration order."""
        return list(self._roster)

    def registered_utc(self, identity: str) -> Optional[datetime]:
        return self._registered_utc.get(identity.strip())

    @property
    def count(self) -> int:
        return len(self._roster)

    @property
    def banned_count(self) -> int:
        return sum(1 for p in self._profiles.values() if p.is_banned)

    def _require(self, identity: str) -> ContributorProfile:
        profile = self.get(identity)
        if profile is None:
            raise InvalidParameter(f"Contributor not registered: {identity}")
        return profile

    def to_records(self) -> dict[str, Any]:
        contributors: list[dict[str, Any]] = []
        for identity in self._roster:
            profile = self._profiles[identity]
            registered = self._registered_utc.get(identity)
            contributors.append({
                "identity": identity,
                "reputation_level": profile.reputation_level,
                "reputation_points": profile.reputation_points,
                "is_banned": profile.is_banned,
                "registered_utc": registered.isoformat() if registered else None,
            })
        return {"contributors": contributors}
