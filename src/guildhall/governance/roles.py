"""Role Authority — owner and admin standing.

Hierarchy:
    owner  >  admin  >  everyone else

- There is exactly one owner, fixed at construction and transferable only
  by the owner.
- The owner is always an admin, whether or not it appears in the admin set.
- Admin grants are idempotent; revoking a non-admin is a no-op.
- Only the owner may grant, revoke, or transfer.

Holder standing is not decided here: it depends on an external balance and
is resolved by the service layer.
"""

from __future__ import annotations

from typing import Any

from guildhall.errors import InvalidParameter, PermissionDenied


class RoleAuthority:
    """Owner/admin role set.

    Usage:
        roles = RoleAuthority("alice")
        roles.grant_admin("alice", "bob")
        roles.is_admin("bob")      # True
        roles.revoke_admin("alice", "bob")
    """

    def __init__(self, owner: str) -> None:
        canonical = owner.strip()
        if not canonical:
            raise InvalidParameter("Owner identity cannot be blank")
        self._owner = canonical
        self._admins: set[str] = {canonical}

    @classmethod
    def from_records(cls, data: dict[str, Any]) -> RoleAuthority:
        """Restore the role set from persistence records."""
        roles = cls(data["owner"])
        roles._admins.update(data.get("admins", []))
        return roles

    @property
    def owner(self) -> str:
        return self._owner

    def is_owner(self, identity: str) -> bool:
        return identity.strip() == self._owner

    def is_admin(self, identity: str) -> bool:
        canonical = identity.strip()
        return canonical == self._owner or canonical in self._admins

    def admins(self) -> list[str]:
        """All admins, owner first, the rest sorted."""
        others = sorted(a for a in self._admins if a != self._owner)
        return [self._owner, *others]

    def require_owner(self, caller: str) -> None:
        if not self.is_owner(caller):
            raise PermissionDenied(f"{caller} is not the owner")

    def require_admin(self, caller: str) -> None:
        if not self.is_admin(caller):
            raise PermissionDenied(f"{caller} is not an admin")

    def grant_admin(self, caller: str, identity: str) -> bool:
        """Grant admin standing.

        Returns:
            True if the set changed, False if already an admin.

        Raises:
            PermissionDenied: If caller is not the owner.
            InvalidParameter: If identity is blank.
        """
        self.require_owner(caller)
        canonical = identity.strip()
        if not canonical:
            raise InvalidParameter("Cannot grant admin to a blank identity")
        if self.is_admin(canonical):
            return False
        self._admins.add(canonical)
        return True

    def revoke_admin(self, caller: str, identity: str) -> bool:
        """Revoke admin standing. The owner's implicit standing is untouchable.

        Returns:
            True if the set changed.

        Raises:
            PermissionDenied: If caller is not the owner.
        """
        self.require_owner(caller)
        canonical = identity.strip()
        if canonical == self._owner or canonical not in self._admins:
            return False
        self._admins.discard(canonical)
        return True

    def transfer_ownership(self, caller: str, new_owner: str) -> str:
        """Hand ownership to another identity. The new owner becomes an admin.

        The previous owner keeps admin standing until revoked by the new owner.

        Returns:
            The previous owner.
        """
        self.require_owner(caller)
        canonical = new_owner.strip()
        if not canonical:
            raise InvalidParameter("New owner identity cannot be blank")
        previous = self._owner
        self._owner = canonical
        self._admins.add(canonical)
        return previous

    def snapshot(self) -> tuple[str, frozenset[str]]:
        """Capture state for rollback."""
        return self._owner, frozenset(self._admins)

    def restore(self, snapshot: tuple[str, frozenset[str]]) -> None:
        self._owner, admins = snapshot
        self._admins = set(admins)

    def to_records(self) -> dict[str, Any]:
        return {"owner": self._owner, "admins": self.admins()}
