"""Tests for the Postgres repository and directories against a mocked connection pool."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import psycopg
import pytest

from identity_core.directory import PostgresRoleDirectory, PostgresTenantDirectory
from identity_core.domain.authorization import RoleGrant, TenantInfo
from identity_core.domain.errors import ConcurrentModificationError, DirectoryUnavailableError
from identity_core.domain.identity import Identity
from identity_core.domain.tenancy import TenantContext
from identity_core.repository import IdentityRepository


def _pool_with_cursor(cursor: MagicMock) -> MagicMock:
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    pool = MagicMock()
    pool.connection.return_value.__enter__.return_value = conn
    return pool


def test_load_maps_row_and_filters_by_tenant():
    now = datetime.now(timezone.utc)
    cursor = MagicMock()
    cursor.fetchone.return_value = (
        "id-1", "tenant-1", "a@x.com", "Ada", "Lovelace", "opaque",
        True, True, False, True, 3, now, now, [10, 11],
    )
    repository = IdentityRepository(_pool_with_cursor(cursor))

    identity = repository.load(TenantContext("tenant-1"), "id-1")

    assert identity.id == "id-1"
    assert identity.tenant_id == "tenant-1"
    assert identity.role_ids == {10, 11}
    assert identity.account_non_locked is False
    assert identity.version == 3
    sql, params = cursor.execute.call_args.args
    assert "i.tenant_id = %s" in sql
    assert params == ("tenant-1", "id-1")


def test_load_returns_none_when_missing():
    cursor = MagicMock()
    cursor.fetchone.return_value = None
    repository = IdentityRepository(_pool_with_cursor(cursor))

    assert repository.find_by_email(TenantContext("tenant-1"), "a@x.com") is None


def test_first_save_assigns_id_and_writes_roles():
    cursor = MagicMock()
    repository = IdentityRepository(_pool_with_cursor(cursor))
    identity = Identity.register(
        tenant_id="tenant-1", email="a@x.com", credential_secret="s", first_name="A", last_name="B"
    )
    identity.add_role(10)

    saved = repository.save(identity)

    assert saved is identity
    assert identity.id is not None
    assert identity.version == 1
    rows = cursor.executemany.call_args.args[1]
    assert rows == [(identity.id, 10)]


def test_stale_update_raises_concurrent_modification():
    cursor = MagicMock()
    cursor.rowcount = 0
    pool = _pool_with_cursor(cursor)
    repository = IdentityRepository(pool)
    identity = Identity.restore(
        tenant_id="tenant-1", id="id-1", email="a@x.com", credential_secret="s",
        first_name="A", last_name="B", version=2,
    )

    with pytest.raises(ConcurrentModificationError):
        repository.save(identity)
    assert identity.version == 2
    cursor.executemany.assert_not_called()


def test_role_directory_returns_known_roles_only():
    cursor = MagicMock()
    cursor.fetchall.return_value = [(10, "ADMIN", ["WRITE"])]
    directory = PostgresRoleDirectory(_pool_with_cursor(cursor))

    grants = directory.resolve_roles({10, 11})

    assert grants == {10: RoleGrant(name="ADMIN", permissions=frozenset({"WRITE"}))}
    assert cursor.execute.call_args.args[1] == ([10, 11],)


def test_role_directory_wraps_driver_errors():
    cursor = MagicMock()
    cursor.execute.side_effect = psycopg.OperationalError("connection lost")
    directory = PostgresRoleDirectory(_pool_with_cursor(cursor))

    with pytest.raises(DirectoryUnavailableError):
        directory.resolve_roles({10})


def test_tenant_directory_maps_metadata():
    cursor = MagicMock()
    cursor.fetchone.return_value = ("Acme", "ACTIVE")
    directory = PostgresTenantDirectory(_pool_with_cursor(cursor))

    assert directory.resolve_tenant("tenant-1") == TenantInfo(name="Acme", status="ACTIVE")


def test_role_directory_skips_non_integer_ids():
    cursor = MagicMock()
    cursor.fetchall.return_value = [(10, "ADMIN", ["WRITE"])]
    directory = PostgresRoleDirectory(_pool_with_cursor(cursor))

    grants = directory.resolve_roles(["10", "role-admin", True, 10])

    assert grants == {10: RoleGrant(name="ADMIN", permissions=frozenset({"WRITE"}))}
    assert cursor.execute.call_args.args[1] == ([10],)


def test_role_directory_without_integer_ids_does_not_query():
    cursor = MagicMock()
    pool = _pool_with_cursor(cursor)
    directory = PostgresRoleDirectory(pool)

    assert directory.resolve_roles(["10", "role-admin"]) == {}
    pool.connection.assert_not_called()


def test_save_rejects_identity_without_tenant():
    pool = MagicMock()
    repository = IdentityRepository(pool)
    identity = MagicMock(spec=Identity, tenant_id=None, id=None)

    with pytest.raises(ValueError):
        repository.save(identity)
    pool.connection.assert_not_called()
