"""Tests for the tenant-scoped identity workflows."""

from __future__ import annotations

import pytest

from identity_core.domain.contracts import RegisterIdentityInput, StatusChange
from identity_core.domain.errors import (
    ConcurrentModificationError,
    DuplicateEmailError,
    IdentityNotFoundError,
    InvalidReferenceError,
    TenantMismatchError,
)
from identity_core.domain.identity import Identity
from identity_core.domain.service import IdentityService
from identity_core.domain.tenancy import TenantContext

from fakes import LeakyIdentityStore

TENANT_1 = TenantContext("tenant-1")
TENANT_2 = TenantContext("tenant-2")


def register(service: IdentityService, context: TenantContext = TENANT_1, email: str = "a@x.com") -> Identity:
    return service.register(
        context,
        RegisterIdentityInput(
            email=email, credential_secret="opaque", first_name="Ada", last_name="Lovelace"
        ),
    )


def test_register_assigns_id_and_tenant(service):
    identity = register(service)

    assert identity.id is not None
    assert identity.tenant_id == "tenant-1"
    assert identity.version == 1
    assert identity.is_eligible


def test_register_rejects_duplicate_email_within_tenant(service):
    register(service, email="a@x.com")

    with pytest.raises(DuplicateEmailError):
        register(service, email="A@X.com ")


def test_same_email_in_two_tenants_does_not_collide(service):
    first = register(service, TENANT_1, "a@x.com")
    second = register(service, TENANT_2, "a@x.com")

    assert service.find_by_email(TENANT_1, "a@x.com") == first
    assert service.find_by_email(TENANT_2, "a@x.com") == second
    assert first != second


def test_foreign_identity_is_reported_as_not_found(service):
    identity = register(service, TENANT_1)

    with pytest.raises(IdentityNotFoundError):
        service.get_identity(TENANT_2, identity.id)


def test_unknown_identity_is_not_found(service):
    with pytest.raises(IdentityNotFoundError):
        service.get_identity(TENANT_1, "missing")
    with pytest.raises(IdentityNotFoundError):
        service.find_by_email(TENANT_1, "nobody@x.com")


def test_service_rechecks_tenant_when_store_leaks(resolver):
    store = LeakyIdentityStore()
    service = IdentityService(store, resolver)
    identity = register(service, TENANT_1)

    with pytest.raises(TenantMismatchError) as excinfo:
        service.get_identity(TENANT_2, identity.id)
    assert str(excinfo.value) == "identity not found"


def test_assign_and_revoke_roles_persist(service, store):
    identity = register(service)

    service.assign_role(TENANT_1, identity.id, 10)
    service.assign_role(TENANT_1, identity.id, 20)
    assert service.get_identity(TENANT_1, identity.id).role_ids == {10, 20}

    service.revoke_role(TENANT_1, identity.id, 10)
    assert service.get_identity(TENANT_1, identity.id).role_ids == {20}


def test_idempotent_mutations_skip_save(service, store):
    identity = register(service)
    service.assign_role(TENANT_1, identity.id, 10)
    saves = store.saves

    service.assign_role(TENANT_1, identity.id, 10)
    service.revoke_role(TENANT_1, identity.id, 99)
    service.update_status(TENANT_1, identity.id, StatusChange(account_non_locked=True))

    assert store.saves == saves


def test_assign_invalid_role_fails(service):
    identity = register(service)

    with pytest.raises(InvalidReferenceError):
        service.assign_role(TENANT_1, identity.id, "")


def test_update_status_applies_requested_flags(service):
    identity = register(service)

    updated = service.update_status(
        TENANT_1,
        identity.id,
        StatusChange(account_non_locked=False, credentials_non_expired=False),
    )

    assert updated.account_non_locked is False
    assert updated.credentials_non_expired is False
    assert updated.account_non_expired is True
    assert not service.get_identity(TENANT_1, identity.id).is_eligible

    renewed = service.update_status(
        TENANT_1,
        identity.id,
        StatusChange(account_non_locked=True, credentials_non_expired=True, account_non_expired=False),
    )
    assert renewed.account_non_locked and renewed.credentials_non_expired
    assert renewed.account_non_expired is False


def test_deactivate_keeps_record(service):
    identity = register(service)

    service.deactivate(TENANT_1, identity.id)
    stored = service.get_identity(TENANT_1, identity.id)

    assert stored.enabled is False
    assert not stored.is_eligible
    assert service.reactivate(TENANT_1, identity.id).enabled is True


def test_stale_save_surfaces_concurrent_modification(service, store):
    identity = register(service)
    first = service.get_identity(TENANT_1, identity.id)
    second = service.get_identity(TENANT_1, identity.id)

    first.add_role(10)
    store.save(first)
    second.add_role(20)

    with pytest.raises(ConcurrentModificationError):
        store.save(second)
    assert service.get_identity(TENANT_1, identity.id).role_ids == {10}


def test_authorize_returns_authorities_and_eligibility(service):
    identity = register(service)
    service.assign_role(TENANT_1, identity.id, 10)
    service.assign_role(TENANT_1, identity.id, 11)

    result = service.authorize(TENANT_1, identity.id)

    assert result.authorities == {"ADMIN"}
    assert result.eligible is True


def test_authorize_reflects_disabled_account(service):
    identity = register(service)
    service.assign_role(TENANT_1, identity.id, 20)
    service.deactivate(TENANT_1, identity.id)

    result = service.authorize(TENANT_1, identity.id)

    assert result.authorities == {"VIEWER"}
    assert result.eligible is False


def test_authorize_sees_role_changes_immediately(service):
    identity = register(service)
    service.assign_role(TENANT_1, identity.id, 10)
    assert service.authorize(TENANT_1, identity.id).authorities == {"ADMIN"}

    service.revoke_role(TENANT_1, identity.id, 10)
    assert service.authorize(TENANT_1, identity.id).authorities == frozenset()


def test_resolve_snapshot_includes_permissions(service):
    identity = register(service)
    service.assign_role(TENANT_1, identity.id, 30)

    snapshot = service.resolve_snapshot(service.get_identity(TENANT_1, identity.id))

    assert snapshot.has_permission("READ")
    assert snapshot.has_permission("WRITE")
    assert snapshot.tenant_name == "Acme"
