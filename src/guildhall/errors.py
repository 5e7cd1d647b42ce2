"""Error kinds raised by the registry engines.

Every engine validates its preconditions before mutating anything and raises
one of these on the first failing check. The service layer catches
RegistryError and reports the kind in ServiceResult.error_kind, so callers
can branch on the kind without parsing messages.
"""

from __future__ import annotations

import enum
from typing import Optional


class ErrorKind(str, enum.Enum):
    """Classification of a failed operation."""
    PERMISSION_DENIED = "permission_denied"
    HOLDER_REQUIRED = "holder_required"
    SYSTEM_PAUSED = "system_paused"
    INVALID_PROJECT_PARAMETERS = "invalid_project_parameters"
    INVALID_PARAMETER = "invalid_parameter"
    ALREADY_REGISTERED = "already_registered"
    NOT_REGISTERED_OR_ALREADY_DELETED = "not_registered_or_already_deleted"
    NO_FUNDS_TO_WITHDRAW = "no_funds_to_withdraw"
    TRANSFER_FAILED = "transfer_failed"
    PROPAGATION_FAILED = "propagation_failed"
    PERSISTENCE_FAILURE = "persistence_failure"


class RegistryError(Exception):
    """Base class for all registry failures."""
    kind: ErrorKind = ErrorKind.INVALID_PARAMETER


class PermissionDenied(RegistryError):
    """Caller lacks the owner/admin standing the operation requires."""
    kind = ErrorKind.PERMISSION_DENIED


class HolderRequired(PermissionDenied):
    """Caller is neither a token holder nor an admin."""
    kind = ErrorKind.HOLDER_REQUIRED


class SystemPaused(RegistryError):
    kind = ErrorKind.SYSTEM_PAUSED


class InvalidProjectParameters(RegistryError):
    kind = ErrorKind.INVALID_PROJECT_PARAMETERS


class InvalidParameter(RegistryError):
    kind = ErrorKind.INVALID_PARAMETER


class AlreadyRegistered(RegistryError):
    kind = ErrorKind.ALREADY_REGISTERED


class NotRegisteredOrAlreadyDeleted(RegistryError):
    """Caller has no live registry entry to deregister."""
    kind = ErrorKind.NOT_REGISTERED_OR_ALREADY_DELETED


class NoFundsToWithdraw(RegistryError):
    kind = ErrorKind.NO_FUNDS_TO_WITHDRAW


class TransferFailed(RegistryError):
    kind = ErrorKind.TRANSFER_FAILED


class PropagationFailed(RegistryError):
    """A project refused or failed a forced member removal.

    removed_from lists the project ids already evicted before the failure.
    """
    kind = ErrorKind.PROPAGATION_FAILED

    def __init__(self, message: str, removed_from: Optional[list[int]] = None) -> None:
        super().__init__(message)
        self.removed_from: list[int] = list(removed_from or [])


class PersistenceFailure(RegistryError):
    kind = ErrorKind.PERSISTENCE_FAILURE
