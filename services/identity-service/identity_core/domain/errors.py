"""Domain exceptions raised by the identity core.

The HTTP layer maps each class to a status code; nothing in the core retries.
"""

from __future__ import annotations


class IdentityError(Exception):
    """Base class for recoverable identity-core failures."""


class InvalidReferenceError(IdentityError, ValueError):
    """Raised when a role reference is missing or blank on mutation."""


class IdentityNotFoundError(IdentityError):
    """Raised when no identity exists for the tenant and key supplied."""

    def __init__(self, message: str = "identity not found") -> None:
        super().__init__(message)


class TenantMismatchError(IdentityNotFoundError):
    """Raised when a loaded identity belongs to a different tenant.

    Subclasses ``IdentityNotFoundError`` and carries the same message so the
    boundary cannot reveal that the identity exists in another tenant.
    """


class DuplicateEmailError(IdentityError):
    """Raised when registering an email that already exists within the tenant."""


class ConcurrentModificationError(IdentityError):
    """Raised when a save loses an optimistic version check.

    The caller decides whether to reload and retry.
    """


class DirectoryUnavailableError(IdentityError):
    """Raised by directory adapters when a lookup fails or times out."""


class TenantAlreadyAssignedError(RuntimeError):
    """Raised when code tries to reassign the tenant of a tenant-scoped entity."""
