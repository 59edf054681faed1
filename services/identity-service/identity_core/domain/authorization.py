"""Runtime authorization state derived for a loaded identity.

Nothing in this module is persisted. A snapshot is built per request from the
role and tenant directories and discarded afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class RoleGrant:
    """Directory entry for one role reference."""

    name: str
    permissions: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class TenantInfo:
    """Display metadata for a tenant; never used for authorization decisions."""

    name: str
    status: str


@dataclass(frozen=True, slots=True)
class AuthorizationSnapshot:
    """Resolved roles and permissions for one identity and one request."""

    identity_id: str | None
    role_names: frozenset[str] = field(default_factory=frozenset)
    permissions: frozenset[str] = field(default_factory=frozenset)
    tenant_name: str | None = None
    tenant_status: str | None = None
    unresolved_role_count: int = 0
    directory_unavailable: bool = False

    @classmethod
    def unavailable(cls, identity_id: str | None) -> "AuthorizationSnapshot":
        """Empty snapshot used when the role directory could not be consulted."""
        return cls(identity_id=identity_id, directory_unavailable=True)

    def has_role(self, name: str) -> bool:
        return name in self.role_names

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


def authorities_of(snapshot: AuthorizationSnapshot | None) -> frozenset[str]:
    """Return the authority set consumed by the access-control layer.

    Role names map one to one onto authorities, without prefixing.
    """
    if snapshot is None:
        return frozenset()
    return frozenset(snapshot.role_names)


def has_role(snapshot: AuthorizationSnapshot | None, name: str) -> bool:
    return snapshot is not None and snapshot.has_role(name)


def has_permission(snapshot: AuthorizationSnapshot | None, permission: str) -> bool:
    return snapshot is not None and snapshot.has_permission(permission)
