from __future__ import annotations

import pytest

from identity_core.domain.authorization import RoleGrant, TenantInfo
from identity_core.domain.resolver import AuthorityResolver
from identity_core.domain.service import IdentityService

from fakes import FakeIdentityStore, FakeRoleDirectory, FakeTenantDirectory


@pytest.fixture()
def role_directory() -> FakeRoleDirectory:
    return FakeRoleDirectory(
        {
            10: RoleGrant(name="ADMIN", permissions=frozenset({"WRITE"})),
            20: RoleGrant(name="VIEWER", permissions=frozenset({"READ"})),
            30: RoleGrant(name="EDITOR", permissions=frozenset({"READ", "WRITE"})),
        }
    )


@pytest.fixture()
def tenant_directory() -> FakeTenantDirectory:
    return FakeTenantDirectory({"tenant-1": TenantInfo(name="Acme", status="ACTIVE")})


@pytest.fixture()
def resolver(role_directory, tenant_directory):
    resolver = AuthorityResolver(role_directory, tenant_directory, default_timeout=2.0, max_workers=4)
    yield resolver
    resolver.close()


@pytest.fixture()
def store() -> FakeIdentityStore:
    return FakeIdentityStore()


@pytest.fixture()
def service(store, resolver) -> IdentityService:
    return IdentityService(store, resolver)
