"""Tenant context and the tenant-scoped entity base."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import TenantAlreadyAssignedError


@dataclass(frozen=True, slots=True)
class TenantContext:
    """Tenant the current operation runs on behalf of.

    Attributes:
        tenant_id: Opaque tenant identifier resolved by the transport layer.
        source: Where the tenant came from, e.g. ``"header"``.
    """

    tenant_id: str
    source: str = "header"

    def __post_init__(self) -> None:
        if not self.tenant_id or not str(self.tenant_id).strip():
            raise ValueError("tenant_id must not be empty")


class TenantScopedEntity:
    """Base for entities that belong to exactly one tenant.

    The tenant is assigned once, by the creation or rehydration path, and is
    read-only afterwards.
    """

    _tenant_id: str | None = None

    @property
    def tenant_id(self) -> str | None:
        return self._tenant_id

    def assign_tenant(self, tenant_id: str) -> None:
        """Bind the entity to ``tenant_id``; a second call is a programming error."""
        if self._tenant_id is not None:
            raise TenantAlreadyAssignedError(
                f"{type(self).__name__} already belongs to tenant {self._tenant_id}"
            )
        if not tenant_id or not str(tenant_id).strip():
            raise ValueError("tenant_id must not be empty")
        self._tenant_id = tenant_id

    def belongs_to(self, tenant: TenantContext | str) -> bool:
        """Scoping predicate used to filter records by tenant."""
        tenant_id = tenant.tenant_id if isinstance(tenant, TenantContext) else tenant
        return self._tenant_id is not None and self._tenant_id == tenant_id
