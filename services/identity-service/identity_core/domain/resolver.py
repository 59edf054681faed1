"""Builds authorization snapshots from the role and tenant directories."""

from __future__ import annotations

import logging
import time
from concurrent import futures
from typing import Any

from .authorization import AuthorizationSnapshot, RoleGrant, TenantInfo
from .contracts import RoleDirectory, TenantDirectory
from .errors import DirectoryUnavailableError
from .identity import Identity
from ..metrics import DIRECTORY_UNAVAILABLE, UNRESOLVED_ROLE_REFERENCES

logger = logging.getLogger(__name__)

_UNAVAILABLE = object()


class AuthorityResolver:
    """Resolve role references into names and permissions for one request.

    Lookups run on a thread pool so that a slow directory is bounded by the
    caller's timeout. Results are never cached: every call consults the
    directories again.
    """

    def __init__(
        self,
        roles: RoleDirectory,
        tenants: TenantDirectory | None = None,
        *,
        default_timeout: float = 2.0,
        max_workers: int = 8,
        executor: futures.Executor | None = None,
    ) -> None:
        """Store directory collaborators and the pool used to query them."""
        self._roles = roles
        self._tenants = tenants
        self._default_timeout = default_timeout
        self._owns_executor = executor is None
        self._executor = executor or futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="directory-lookup"
        )

    def close(self) -> None:
        """Release the lookup pool without waiting on abandoned lookups."""
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def resolve(self, identity: Identity, timeout: float | None = None) -> AuthorizationSnapshot:
        """Return a fresh snapshot for ``identity``.

        Unknown role ids grant nothing and are counted. A role lookup that fails
        or exceeds ``timeout`` seconds yields an empty snapshot flagged with
        ``directory_unavailable`` instead of raising.
        """
        timeout = self._default_timeout if timeout is None else timeout
        deadline = time.monotonic() + max(timeout, 0.0)
        role_ids = frozenset(identity.role_ids)

        roles_future = self._executor.submit(self._roles.resolve_roles, role_ids) if role_ids else None
        tenant_future = None
        if self._tenants is not None and identity.tenant_id is not None:
            tenant_future = self._executor.submit(self._tenants.resolve_tenant, identity.tenant_id)

        grants: Any = {}
        if roles_future is not None:
            grants = self._await(roles_future, deadline, "roles", identity)
            if grants is _UNAVAILABLE:
                if tenant_future is not None:
                    tenant_future.cancel()
                return AuthorizationSnapshot.unavailable(identity.id)

        tenant: Any = None
        if tenant_future is not None:
            tenant = self._await(tenant_future, deadline, "tenants", identity)
            if tenant is _UNAVAILABLE:
                tenant = None

        role_names: set[str] = set()
        permissions: set[str] = set()
        unresolved = 0
        for role_id in role_ids:
            grant: RoleGrant | None = grants.get(role_id)
            if grant is None:
                unresolved += 1
                continue
            role_names.add(grant.name)
            permissions.update(grant.permissions)

        if unresolved:
            UNRESOLVED_ROLE_REFERENCES.inc(unresolved)
            logger.warning(
                "identity %s references %d unknown role(s); they grant nothing",
                identity.id,
                unresolved,
            )

        tenant_info: TenantInfo | None = tenant
        return AuthorizationSnapshot(
            identity_id=identity.id,
            role_names=frozenset(role_names),
            permissions=frozenset(permissions),
            tenant_name=tenant_info.name if tenant_info else None,
            tenant_status=tenant_info.status if tenant_info else None,
            unresolved_role_count=unresolved,
        )

    def _await(self, future: futures.Future, deadline: float, directory: str, identity: Identity) -> Any:
        remaining = max(deadline - time.monotonic(), 0.0)
        try:
            return future.result(timeout=remaining)
        except futures.TimeoutError:
            future.cancel()
            reason = "timed out"
        except DirectoryUnavailableError as exc:
            reason = str(exc) or "unavailable"
        DIRECTORY_UNAVAILABLE.labels(directory=directory).inc()
        logger.warning(
            "%s directory lookup for identity %s failed (%s); degrading to partial snapshot",
            directory,
            identity.id,
            reason,
        )
        return _UNAVAILABLE
