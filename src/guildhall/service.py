"""Guildhall service — the single stateful facade over the registry engines.

All process-wide state lives in one GuildService instance: the role set,
the pause flag, the contributor directory, and the project registry. Every
mutation goes through an operation here; there are no module-level globals.

Operation contract:
- The caller identity is always the first argument.
- Every precondition is checked before anything is mutated. The first
  failing check aborts the call and nothing changes.
- Internal bookkeeping is committed before any external collaborator is
  called (project removal, token transfer), so a collaborator that calls
  back into the service sees consistent state.
- Failures come back synchronously as ServiceResult(success=False) with the
  error kind set. Nothing is retried.

Persistence (optional): with a StateStore wired in, each mutation is
persisted before its events are written. A persistence failure rolls the
in-memory mutation back and fails the call.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from guildhall import __version__
from guildhall.collaborators.in_memory import InMemoryProject, in_memory_project_factory
from guildhall.collaborators.interfaces import (
    BalanceOracle,
    FungibleTransfer,
    ProjectControl,
    ProjectFactory,
)
from guildhall.directory.contributors import ContributorDirectory, ContributorProfile
from guildhall.errors import (
    AlreadyRegistered,
    ErrorKind,
    HolderRequired,
    InvalidParameter,
    NoFundsToWithdraw,
    PersistenceFailure,
    PropagationFailed,
    RegistryError,
    SystemPaused,
    TransferFailed,
)
from guildhall.governance.ban_propagation import BanPropagationEngine
from guildhall.governance.roles import RoleAuthority
from guildhall.governance.visibility import VisibilityFilter
from guildhall.persistence.event_log import EventKind, EventLog, EventRecord
from guildhall.persistence.state_store import StateStore
from guildhall.policy.resolver import PolicyResolver
from guildhall.registry.project_registry import ProjectRecord, ProjectRegistry

DEFAULT_SERVICE_IDENTITY = "guildhall"


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    error_kind: Optional[ErrorKind] = None


def _failure(error: RegistryError) -> ServiceResult:
    data: dict[str, Any] = {}
    if isinstance(error, PropagationFailed):
        # Evictions a project already performed cannot be undone from here.
        data["removed_from"] = list(error.removed_from)
    return ServiceResult(
        success=False,
        errors=[str(error)],
        data=data,
        error_kind=error.kind,
    )


def project_summary(record: ProjectRecord) -> dict[str, Any]:
    """Plain-dict view of a record for results and the CLI."""
    return {
        "project_id": record.project_id,
        "name": record.name,
        "project_identity": record.project_identity,
        "collateral_cost": record.collateral_cost,
        "reputation_threshold": record.reputation_threshold,
        "max_contributors": record.max_contributors,
        "created_utc": record.created_utc.isoformat(),
        "deleted_utc": record.deleted_utc.isoformat() if record.deleted_utc else None,
    }


class GuildService:
    """Role-gated project registry.

    Usage:
        token = InMemoryToken("guildhall", {"carol": 5})
        service = GuildService("alice", token)

        service.create_project("alice", "Docs", 100, 1, 5)
        service.register_self("carol")
        service.get_visible_projects("carol")
        service.increase_reputation("alice", "carol", 2)
        service.set_banned("alice", "carol", True)

    Persistence (optional):
        service = GuildService("alice", token, event_log=log, state_store=store)
        # State is persisted on each mutation and loaded on construction.
    """

    def __init__(
        self,
        owner: str,
        balance_oracle: BalanceOracle,
        resolver: Optional[PolicyResolver] = None,
        project_factory: ProjectFactory = in_memory_project_factory,
        service_identity: str = DEFAULT_SERVICE_IDENTITY,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
        project_binder: Optional[Callable[[dict[str, Any]], ProjectControl]] = None,
    ) -> None:
        self._resolver = resolver or PolicyResolver()
        self._balance_oracle = balance_oracle
        self._project_factory = project_factory
        self._event_log = event_log
        self._state_store = state_store
        self._ban_engine = BanPropagationEngine()

        if state_store is not None and state_store.has_state():
            self._identity = state_store.load_service_identity() or service_identity
            self._roles = state_store.load_roles() or RoleAuthority(owner)
            self._paused = state_store.load_paused()
            self._directory = state_store.load_directory(
                self._resolver.directory_config(),
            )
            self._registry = state_store.load_registry(
                self._resolver.registry_config(),
                project_binder or self._bind_in_memory,
            )
        else:
            self._identity = service_identity
            self._roles = RoleAuthority(owner)
            self._paused = self._resolver.start_paused
            self._directory = ContributorDirectory(self._resolver.directory_config())
            self._registry = ProjectRegistry(self._resolver.registry_config())

        # Initialize counter from persisted log to avoid ID collision on restart
        self._event_counter = event_log.count if event_log is not None else 0
        # Set when an event append fails after state was committed.
        self._persistence_degraded: bool = False

    # ------------------------------------------------------------------
    # Identity and standing
    # ------------------------------------------------------------------

    @property
    def identity(self) -> str:
        """The registry's own identity (the account that holds its funds)."""
        return self._identity

    @property
    def owner(self) -> str:
        return self._roles.owner

    @property
    def paused(self) -> bool:
        return self._paused

    def is_owner(self, identity: str) -> bool:
        return self._roles.is_owner(identity)

    def is_admin(self, identity: str) -> bool:
        return self._roles.is_admin(identity)

    def is_holder(self, identity: str) -> bool:
        """Admins, plus anyone whose token balance exceeds the policy minimum.

        Raises:
            InvalidParameter: If the balance oracle cannot answer for the
                identity (malformed address, unreachable node).
        """
        if self._roles.is_admin(identity):
            return True
        try:
            balance = self._balance_oracle.balance_of(identity.strip())
        except Exception as e:
            raise InvalidParameter(
                f"Balance query failed for {identity}: {e}"
            ) from e
        return balance > self._resolver.holder_min_balance

    def admins(self) -> list[str]:
        return self._roles.admins()

    def _require_not_paused(self) -> None:
        if self._paused:
            raise SystemPaused("Registry is paused")

    def _require_holder(self, caller: str) -> None:
        if not self.is_holder(caller):
            raise HolderRequired(f"{caller} is not a token holder")

    # ------------------------------------------------------------------
    # Role management (not gated by pause)
    # ------------------------------------------------------------------

    def grant_admin(self, caller: str, identity: str) -> ServiceResult:
        """Owner-only. Granting an existing admin succeeds without change."""
        try:
            before = self._roles.snapshot()
            changed = self._roles.grant_admin(caller, identity)
            if changed:
                self._commit(
                    lambda: self._roles.restore(before),
                    [(EventKind.ADMIN_GRANTED, caller, {"identity": identity.strip()})],
                )
        except RegistryError as e:
            return _failure(e)
        return ServiceResult(
            success=True, data={"identity": identity.strip(), "changed": changed},
        )

    def revoke_admin(self, caller: str, identity: str) -> ServiceResult:
        """Owner-only. Revoking a non-admin succeeds without change."""
        try:
            before = self._roles.snapshot()
            changed = self._roles.revoke_admin(caller, identity)
            if changed:
                self._commit(
                    lambda: self._roles.restore(before),
                    [(EventKind.ADMIN_REVOKED, caller, {"identity": identity.strip()})],
                )
        except RegistryError as e:
            return _failure(e)
        return ServiceResult(
            success=True, data={"identity": identity.strip(), "changed": changed},
        )

    def transfer_ownership(self, caller: str, new_owner: str) -> ServiceResult:
        try:
            before = self._roles.snapshot()
            previous = self._roles.transfer_ownership(caller, new_owner)
            self._commit(
                lambda: self._roles.restore(before),
                [(
                    EventKind.OWNERSHIP_TRANSFERRED,
                    caller,
                    {"previous_owner": previous, "new_owner": self._roles.owner},
                )],
            )
        except RegistryError as e:
            return _failure(e)
        return ServiceResult(
            success=True,
            data={"previous_owner": previous, "owner": self._roles.owner},
        )

    # ------------------------------------------------------------------
    # Pause switch
    # ------------------------------------------------------------------

    def set_paused(self, caller: str, state: bool) -> ServiceResult:
        """Admin-only. Setting the current value again is a no-op."""
        try:
            self._roles.require_admin(caller)
            state = bool(state)
            changed = state != self._paused
            if changed:
                previous = self._paused
                self._paused = state

                def _rollback() -> None:
                    self._paused = previous

                self._commit(
                    _rollback,
                    [(EventKind.PAUSE_CHANGED, caller, {"paused": state})],
                )
        except RegistryError as e:
            return _failure(e)
        return ServiceResult(success=True, data={"paused": self._paused, "changed": changed})

    # ------------------------------------------------------------------
    # Contributor directory
    # ------------------------------------------------------------------

    def register_self(self, identity: str) -> ServiceResult:
        """A holder registers as a contributor (level 1, 0 points, not banned)."""
        try:
            self._require_not_paused()
            canonical = identity.strip()
            if not canonical:
                raise InvalidParameter("Cannot register a blank identity")
            if self._directory.is_registered(canonical):
                raise AlreadyRegistered(f"{canonical} is already registered")
            self._require_holder(canonical)

            profile = self._directory.register(canonical)
            self._commit(
                lambda: self._directory.unregister_latest(canonical),
                [(EventKind.CONTRIBUTOR_REGISTERED, canonical, {"identity": canonical})],
            )
        except RegistryError as e:
            return _failure(e)
        return ServiceResult(
            success=True,
            data={
                "identity": canonical,
                "reputation_level": profile.reputation_level,
                "reputation_points": profile.reputation_points,
            },
        )

    def set_profile(
        self,
        caller: str,
        identity: str,
        profile: ContributorProfile,
    ) -> ServiceResult:
        """Admin-only full overwrite. A new ban propagates like set_banned."""
        try:
            self._require_not_paused()
            self._roles.require_admin(caller)
            previous = self._directory.set_profile(identity, profile)
            return self._finish_profile_change(
                caller,
                identity.strip(),
                previous,
                profile,
                [(
                    EventKind.PROFILE_SET,
                    caller,
                    {
                        "identity": identity.strip(),
                        "reputation_level": profile.reputation_level,
                        "reputation_points": profile.reputation_points,
                        "is_banned": profile.is_banned,
                    },
                )],
            )
        except RegistryError as e:
            return _failure(e)

    def increase_reputation(
        self,
        caller: str,
        identity: str,
        levels: int,
    ) -> ServiceResult:
        """Admin-only. Raises the level by ``levels`` and resets points to 0."""
        try:
            self._require_not_paused()
            self._roles.require_admin(caller)
            previous = self._directory.increase_reputation(identity, levels)
            updated = self._directory.get(identity)
            return self._finish_profile_change(
                caller,
                identity.strip(),
                previous,
                updated,
                [(
                    EventKind.REPUTATION_INCREASED,
                    caller,
                    {
                        "identity": identity.strip(),
                        "previous_level": previous.reputation_level,
                        "reputation_level": updated.reputation_level,
                    },
                )],
            )
        except RegistryError as e:
            return _failure(e)

    def set_banned(self, caller: str, identity: str, state: bool) -> ServiceResult:
        """Admin-only. A false → true transition evicts the contributor from
        every active project before returning. Unbanning re-adds nothing."""
        try:
            self._require_not_paused()
            self._roles.require_admin(caller)
            previous = self._directory.set_banned(identity, state)
            updated = self._directory.get(identity)
            events: list[tuple[EventKind, str, dict[str, Any]]] = []
            if previous.is_banned != updated.is_banned:
                kind = (
                    EventKind.CONTRIBUTOR_BANNED if updated.is_banned
                    else EventKind.CONTRIBUTOR_UNBANNED
                )
                events.append((kind, caller, {"identity": identity.strip()}))
            return self._finish_profile_change(
                caller, identity.strip(), previous, updated, events,
            )
        except RegistryError as e:
            return _failure(e)

    def _finish_profile_change(
        self,
        caller: str,
        identity: str,
        previous: ContributorProfile,
        updated: ContributorProfile,
        events: list[tuple[EventKind, str, dict[str, Any]]],
    ) -> ServiceResult:
        """Persist the new profile, propagate a new ban, then record events.

        The new profile is in the directory and on disk before any project
        is called, so a project calling back into the service sees the
        contributor as banned and any snapshot it triggers already holds the
        ban.

        Raises:
            PersistenceFailure: After restoring the previous profile. No
                project has been called.
            PropagationFailed: After restoring and re-persisting the
                previous profile. Evictions already made are recorded as
                events and carried in ``removed_from``.
        """
        def _rollback() -> None:
            self._directory.restore_profile(identity, previous)

        removed_from: list[int] = []
        if not events:
            return self._profile_result(identity, updated, removed_from)

        err = self._safe_persist(on_rollback=_rollback)
        if err:
            raise PersistenceFailure(err)

        if updated.is_banned and not previous.is_banned:
            try:
                result = self._ban_engine.propagate(identity, self._registry)
            except PropagationFailed as e:
                _rollback()
                if self._safe_persist() is not None:
                    self._persistence_degraded = True
                self._emit(self._removal_events(caller, identity, e.removed_from))
                raise
            removed_from = result.removed_from
            events = events + self._removal_events(caller, identity, removed_from)

        self._emit(events)
        return self._profile_result(identity, updated, removed_from)

    @staticmethod
    def _removal_events(
        caller: str,
        identity: str,
        project_ids: list[int],
    ) -> list[tuple[EventKind, str, dict[str, Any]]]:
        return [
            (
                EventKind.MEMBER_REMOVED,
                caller,
                {"identity": identity, "project_id": pid, "involuntary": True},
            )
            for pid in project_ids
        ]

    @staticmethod
    def _profile_result(
        identity: str,
        updated: ContributorProfile,
        removed_from: list[int],
    ) -> ServiceResult:
        return ServiceResult(
            success=True,
            data={
                "identity": identity,
                "reputation_level": updated.reputation_level,
                "reputation_points": updated.reputation_points,
                "is_banned": updated.is_banned,
                "removed_from": removed_from,
            },
        )

    def get_profile(self, identity: str) -> Optional[ContributorProfile]:
        return self._directory.get(identity)

    def is_registered(self, identity: str) -> bool:
        return self._directory.is_registered(identity)

    def list_contributors(self) -> list[str]:
        """Registered identities in registration order."""
        return self._directory.roster()

    # ------------------------------------------------------------------
    # Project registry
    # ------------------------------------------------------------------

    def create_project(
        self,
        caller: str,
        name: str,
        collateral_cost: int,
        reputation_threshold: int,
        max_contributors: int,
        project_identity: Optional[str] = None,
    ) -> ServiceResult:
        """Admin-only. Builds the project and puts it at the registry front.

        The project receives this service as its deregistration callback and
        nothing else: it gains no admin standing.
        """
        try:
            self._require_not_paused()
            self._roles.require_admin(caller)
            self._registry.validate_parameters(
                name, collateral_cost, reputation_threshold, max_contributors,
            )
            identity = (project_identity or f"project_{uuid.uuid4().hex[:12]}").strip()
            if not identity or self._registry.id_of(identity):
                raise InvalidParameter(f"Project identity unavailable: {identity!r}")

            handle = self._project_factory(
                identity,
                name.strip(),
                collateral_cost,
                reputation_threshold,
                max_contributors,
                self,
            )
            record = self._registry.add_project(
                identity,
                name,
                collateral_cost,
                reputation_threshold,
                max_contributors,
                handle,
            )
            self._commit(
                lambda: self._registry.discard_latest(record),
                [(
                    EventKind.PROJECT_CREATED,
                    caller,
                    {"name": record.name, "project_identity": identity,
                     "project_id": record.project_id},
                )],
            )
        except RegistryError as e:
            return _failure(e)
        return ServiceResult(
            success=True,
            data={"project_id": record.project_id, "project_identity": identity},
        )

    def deregister_self(self, caller: str) -> ServiceResult:
        """A project removes its own live entry and moves it to the archive.

        Only the project identity itself can do this; the registry resolves
        the caller through its reverse lookup.
        """
        try:
            self._require_not_paused()
            record = self._registry.deregister(caller)
            self._commit(
                lambda: self._registry.restore(record),
                [(
                    EventKind.PROJECT_DELETED,
                    record.project_identity,
                    {"project_id": record.project_id, "name": record.name},
                )],
            )
        except RegistryError as e:
            return _failure(e)
        return ServiceResult(success=True, data={"project_id": record.project_id})

    # Deletion is always self-deregistration.
    delete_project = deregister_self

    def list_all(self) -> list[ProjectRecord]:
        """Live projects, newest first."""
        return self._registry.list_all()

    def list_deleted(self) -> list[ProjectRecord]:
        """Archived projects, oldest first."""
        return self._registry.list_deleted()

    def count(self) -> int:
        return self._registry.count()

    def get_project(self, project_id: int) -> Optional[ProjectRecord]:
        return self._registry.get(project_id)

    def project_id_of(self, project_identity: str) -> int:
        """Live id of a project identity, or 0."""
        return self._registry.id_of(project_identity)

    # ------------------------------------------------------------------
    # Visibility
    # ------------------------------------------------------------------

    def get_visible_projects(self, caller: str) -> ServiceResult:
        """Projects the caller may see. Holders and admins only.

        Admins see everything. Others see projects whose threshold is at or
        below their reputation level (the default level if unregistered).
        """
        try:
            self._require_holder(caller)
        except RegistryError as e:
            return _failure(e)
        is_admin = self._roles.is_admin(caller)
        level = self._directory.reputation_level(caller)
        projects = VisibilityFilter.visible_projects(self._registry, is_admin, level)
        return ServiceResult(
            success=True,
            data={
                "projects": projects,
                "reputation_level": level,
                "is_admin": is_admin,
            },
        )

    # ------------------------------------------------------------------
    # Funds (owner-only, not gated by pause)
    # ------------------------------------------------------------------

    def withdraw_funds(
        self,
        caller: str,
        token: Optional[FungibleTransfer] = None,
    ) -> ServiceResult:
        """Send the registry's whole token balance to the owner."""
        try:
            self._roles.require_owner(caller)
            token = token if token is not None else self._balance_oracle
            if not isinstance(token, FungibleTransfer):
                raise InvalidParameter("No transferable token configured")
            try:
                amount = token.balance_of(self._identity)
            except Exception as e:
                raise TransferFailed(
                    f"Balance query for {self._identity} failed: {e}"
                ) from e
            if amount <= 0:
                raise NoFundsToWithdraw(f"{self._identity} holds no funds")
            try:
                sent = token.transfer(self._roles.owner, amount)
            except Exception as e:
                raise TransferFailed(
                    f"Transfer of {amount} to {self._roles.owner} failed: {e}"
                ) from e
            if not sent:
                raise TransferFailed(
                    f"Transfer of {amount} to {self._roles.owner} failed"
                )
            self._emit([(
                EventKind.FUNDS_WITHDRAWN,
                caller,
                {"to": self._roles.owner, "amount": amount},
            )])
        except RegistryError as e:
            return _failure(e)
        return ServiceResult(
            success=True, data={"to": self._roles.owner, "amount": amount},
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        """Return system-wide status summary."""
        return {
            "version": __version__,
            "identity": self._identity,
            "owner": self._roles.owner,
            "admins": len(self._roles.admins()),
            "paused": self._paused,
            "contributors": {
                "total": self._directory.count,
                "banned": self._directory.banned_count,
            },
            "projects": {
                "live": self._registry.count(),
                "deleted": len(self._registry.list_deleted()),
                "next_id": self._registry.next_id,
            },
            "events": self._event_log.count if self._event_log is not None else 0,
            "persistence_degraded": self._persistence_degraded,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _bind_in_memory(self, data: dict[str, Any]) -> ProjectControl:
        """Default binder: a fresh, active in-memory project per stored record."""
        return InMemoryProject(
            data["project_identity"],
            data["name"],
            data["collateral_cost"],
            data["reputation_threshold"],
            data["max_contributors"],
            registry=self,
        )

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _commit(
        self,
        on_rollback: Callable[[], None],
        events: list[tuple[EventKind, str, dict[str, Any]]],
    ) -> None:
        """Persist, then record events.

        Raises:
            PersistenceFailure: After running on_rollback.
        """
        err = self._safe_persist(on_rollback=on_rollback)
        if err:
            raise PersistenceFailure(err)
        self._emit(events)

    def _emit(self, events: list[tuple[EventKind, str, dict[str, Any]]]) -> None:
        """Append events. State is already committed, so a log failure only
        marks the service degraded."""
        if self._event_log is None:
            return
        now = datetime.now(timezone.utc)
        for kind, actor_id, payload in events:
            try:
                self._event_log.append(EventRecord.create(
                    event_id=self._next_event_id(),
                    event_kind=kind,
                    actor_id=actor_id,
                    payload=payload,
                    timestamp_utc=now,
                ))
            except (ValueError, OSError):
                self._persistence_degraded = True

    def _persist_state(self) -> None:
        """Persist current state to the state store (if wired).

        NOTE: This method can raise OSError. Mutators should use
        _safe_persist() instead for fail-closed behavior.
        """
        if self._state_store is None:
            return
        self._state_store.save(
            self._identity,
            self._paused,
            self._roles,
            self._directory,
            self._registry,
        )

    def _safe_persist(
        self,
        on_rollback: Optional[Callable[[], None]] = None,
    ) -> Optional[str]:
        """Persist state with fail-closed error handling.

        On failure, runs the rollback callback to undo in-memory mutations
        and returns an error string. On success, returns None.
        """
        try:
            self._persist_state()
            return None
        except OSError as e:
            if on_rollback is not None:
                on_rollback()
            return f"Persistence failure: {e}"
