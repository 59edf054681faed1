"""Postgres repository for tenant-scoped identities.

Expected schema::

    identities(identity_id TEXT PRIMARY KEY, tenant_id TEXT, email TEXT,
               first_name TEXT, last_name TEXT, credential_secret TEXT,
               enabled BOOL, account_non_expired BOOL, account_non_locked BOOL,
               credentials_non_expired BOOL, version INT,
               created_at TIMESTAMPTZ, updated_at TIMESTAMPTZ,
               UNIQUE (tenant_id, email))
    identity_roles(identity_id TEXT REFERENCES identities, role_id BIGINT,
                   PRIMARY KEY (identity_id, role_id))

Role references are global, so ``identity_roles`` carries no tenant column.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from psycopg import errors
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.errors import ConcurrentModificationError, DuplicateEmailError
from .domain.identity import Identity
from .domain.tenancy import TenantContext

_SELECT_IDENTITY = """
    SELECT i.identity_id, i.tenant_id, i.email, i.first_name, i.last_name,
           i.credential_secret, i.enabled, i.account_non_expired,
           i.account_non_locked, i.credentials_non_expired, i.version,
           i.created_at, i.updated_at,
           COALESCE(array_remove(array_agg(r.role_id), NULL), '{{}}') AS role_ids
    FROM identities i
    LEFT JOIN identity_roles r ON r.identity_id = i.identity_id
    WHERE i.tenant_id = %s AND {predicate}
    GROUP BY i.identity_id
"""


class IdentityRepository:
    """Postgres-backed identity persistence with optimistic version checks."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def load(self, context: TenantContext, identity_id: str) -> Identity | None:
        """Fetch an identity belonging to the context tenant or return ``None``."""
        return self._fetch_one(context, "i.identity_id = %s", identity_id)

    def find_by_email(self, context: TenantContext, email: str) -> Identity | None:
        """Fetch an identity by normalized email within the context tenant."""
        return self._fetch_one(context, "i.email = %s", email)

    def save(self, identity: Identity) -> Identity:
        """Insert or update ``identity`` and its role references in one transaction."""
        if identity.tenant_id is None:
            raise ValueError("identity has no tenant")
        if identity.id is None:
            return self._insert(identity)
        return self._update(identity)

    def _fetch_one(self, context: TenantContext, predicate: str, value: str) -> Identity | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute("SELECT set_config('app.tenant_id', %s, true)", (context.tenant_id,))
                cur.execute(_SELECT_IDENTITY.format(predicate=predicate), (context.tenant_id, value))
                row = cur.fetchone()
                if not row:
                    return None
        return self._map_record(row)

    def _insert(self, identity: Identity) -> Identity:
        identity_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        try:
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT set_config('app.tenant_id', %s, true)", (identity.tenant_id,))
                    cur.execute(
                        """
                        INSERT INTO identities (
                            identity_id, tenant_id, email, first_name, last_name,
                            credential_secret, enabled, account_non_expired,
                            account_non_locked, credentials_non_expired, version,
                            created_at, updated_at
                        )
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, 1, %s, %s)
                        """,
                        (
                            identity_id,
                            identity.tenant_id,
                            identity.email,
                            identity.first_name,
                            identity.last_name,
                            identity.credential_secret,
                            identity.enabled,
                            identity.account_non_expired,
                            identity.account_non_locked,
                            identity.credentials_non_expired,
                            now,
                            now,
                        ),
                    )
                    self._write_roles(cur, identity_id, identity)
                    conn.commit()
        except errors.UniqueViolation as exc:
            raise DuplicateEmailError(f"email already registered: {identity.email}") from exc

        identity.id = identity_id
        identity.version = 1
        identity.created_at = now
        identity.updated_at = now
        return identity

    def _update(self, identity: Identity) -> Identity:
        now = datetime.now(timezone.utc)
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT set_config('app.tenant_id', %s, true)", (identity.tenant_id,))
                cur.execute(
                    """
                    UPDATE identities
                    SET first_name = %s, last_name = %s, enabled = %s,
                        account_non_expired = %s, account_non_locked = %s,
                        credentials_non_expired = %s, version = version + 1,
                        updated_at = %s
                    WHERE identity_id = %s AND tenant_id = %s AND version = %s
                    """,
                    (
                        identity.first_name,
                        identity.last_name,
                        identity.enabled,
                        identity.account_non_expired,
                        identity.account_non_locked,
                        identity.credentials_non_expired,
                        now,
                        identity.id,
                        identity.tenant_id,
                        identity.version,
                    ),
                )
                if cur.rowcount == 0:
                    conn.rollback()
                    raise ConcurrentModificationError(
                        f"identity {identity.id} changed since version {identity.version}"
                    )
                cur.execute("DELETE FROM identity_roles WHERE identity_id = %s", (identity.id,))
                self._write_roles(cur, identity.id, identity)
                conn.commit()

        identity.version += 1
        identity.updated_at = now
        return identity

    def _write_roles(self, cur, identity_id: str, identity: Identity) -> None:
        if not identity.role_ids:
            return
        cur.executemany(
            "INSERT INTO identity_roles (identity_id, role_id) VALUES (%s, %s)",
            [(identity_id, role_id) for role_id in sorted(identity.role_ids)],
        )

    def _map_record(self, row: tuple) -> Identity:
        """Convert a raw database tuple into the domain ``Identity``."""
        return Identity.restore(
            tenant_id=row[1],
            id=row[0],
            email=row[2],
            first_name=row[3],
            last_name=row[4],
            credential_secret=row[5],
            enabled=row[6],
            account_non_expired=row[7],
            account_non_locked=row[8],
            credentials_non_expired=row[9],
            version=row[10],
            created_at=row[11],
            updated_at=row[12],
            role_ids=set(row[13] or ()),
        )
