"""Postgres-backed tenant and role/permission directories.

Roles are global, so role lookups never set the tenant session variable.
"""

from __future__ import annotations

import logging
from typing import Iterable

import psycopg
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.authorization import RoleGrant, TenantInfo
from .domain.errors import DirectoryUnavailableError
from .domain.identity import RoleId

logger = logging.getLogger(__name__)


class PostgresRoleDirectory:
    """Resolve role ids against the global ``roles`` and ``role_permissions`` tables."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def resolve_roles(self, role_ids: Iterable[RoleId]) -> dict[RoleId, RoleGrant]:
        """Return grants for the ids the directory knows; unknown ids are omitted."""
        # ids that cannot be BIGINT keys are unknown by definition
        ids = sorted(
            {
                role_id
                for role_id in role_ids
                if isinstance(role_id, int) and not isinstance(role_id, bool)
            }
        )
        if not ids:
            return {}
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        SELECT r.role_id, r.name,
                               COALESCE(array_remove(array_agg(p.permission), NULL), '{}')
                        FROM roles r
                        LEFT JOIN role_permissions p ON p.role_id = r.role_id
                        WHERE r.role_id = ANY(%s)
                        GROUP BY r.role_id, r.name
                        """,
                        (ids,),
                    )
                    rows = cur.fetchall()
        except psycopg.Error as exc:
            logger.error("role directory query failed: %s", exc)
            raise DirectoryUnavailableError("role directory unavailable") from exc
        return {row[0]: RoleGrant(name=row[1], permissions=frozenset(row[2] or ())) for row in rows}


class PostgresTenantDirectory:
    """Resolve tenant display metadata from the ``tenants`` table."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def resolve_tenant(self, tenant_id: str) -> TenantInfo | None:
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        "SELECT name, status FROM tenants WHERE tenant_id = %s",
                        (tenant_id,),
                    )
                    row = cur.fetchone()
        except psycopg.Error as exc:
            logger.error("tenant directory query failed: %s", exc)
            raise DirectoryUnavailableError("tenant directory unavailable") from exc
        if not row:
            return None
        return TenantInfo(name=row[0], status=row[1])
