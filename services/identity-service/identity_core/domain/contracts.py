"""Domain-level contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Protocol

from .authorization import RoleGrant, TenantInfo
from .identity import Identity, RoleId
from .tenancy import TenantContext


@dataclass(slots=True)
class RegisterIdentityInput:
    """Validated inputs required to provision an identity within a tenant."""

    email: str
    credential_secret: str
    first_name: str
    last_name: str

    def __repr__(self) -> str:
        return f"RegisterIdentityInput(email={self.email!r})"


@dataclass(slots=True)
class StatusChange:
    """Requested values for the reversible status flags; ``None`` leaves a flag alone."""

    account_non_locked: bool | None = None
    account_non_expired: bool | None = None
    credentials_non_expired: bool | None = None


class IdentityStore(Protocol):
    """Tenant-filtered persistence for identities."""

    def load(self, context: TenantContext, identity_id: str) -> Identity | None:
        """Return the identity with ``identity_id`` inside the context tenant."""

    def find_by_email(self, context: TenantContext, email: str) -> Identity | None:
        """Return the identity registered with ``email`` inside the context tenant."""

    def save(self, identity: Identity) -> Identity:
        """Insert or update an identity, assigning ``id`` on first save."""


class TenantDirectory(Protocol):
    """Source of tenant display metadata."""

    def resolve_tenant(self, tenant_id: str) -> TenantInfo | None:
        """Return metadata for ``tenant_id`` or ``None`` when unknown."""


class RoleDirectory(Protocol):
    """Global map from role references to names and permissions."""

    def resolve_roles(self, role_ids: Iterable[RoleId]) -> Mapping[RoleId, RoleGrant]:
        """Return grants for the known ids; unknown ids are simply absent."""
