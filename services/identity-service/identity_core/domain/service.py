"""Identity service orchestrating persistence, status changes and authorization."""

from __future__ import annotations

import logging

from .authorization import AuthorizationSnapshot
from .contracts import IdentityStore, RegisterIdentityInput, StatusChange
from .errors import DuplicateEmailError, IdentityNotFoundError, TenantMismatchError
from .identity import Identity, RoleId, normalize_email
from .resolver import AuthorityResolver
from .tenancy import TenantContext
from ..security.authentication import AuthenticationContext, project_authentication

logger = logging.getLogger(__name__)


class IdentityService:
    """Tenant-scoped identity workflows backed by an ``IdentityStore``."""

    def __init__(self, store: IdentityStore, resolver: AuthorityResolver) -> None:
        """Store dependencies used to load identities and resolve their authorities."""
        self._store = store
        self._resolver = resolver

    def register(self, context: TenantContext, payload: RegisterIdentityInput) -> Identity:
        """Provision a new identity in the context tenant."""
        email = normalize_email(payload.email)
        if self._store.find_by_email(context, email) is not None:
            raise DuplicateEmailError(f"email already registered: {email}")
        identity = Identity.register(
            tenant_id=context.tenant_id,
            email=email,
            credential_secret=payload.credential_secret,
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
        saved = self._store.save(identity)
        logger.info("registered identity %s in tenant %s", saved.id, context.tenant_id)
        return saved

    def get_identity(self, context: TenantContext, identity_id: str) -> Identity:
        """Load an identity, reporting foreign or missing records as not found."""
        return self._scoped(context, self._store.load(context, identity_id))

    def find_by_email(self, context: TenantContext, email: str) -> Identity:
        """Look up an identity by login email within the context tenant."""
        return self._scoped(context, self._store.find_by_email(context, normalize_email(email)))

    def assign_role(self, context: TenantContext, identity_id: str, role_id: RoleId) -> Identity:
        identity = self.get_identity(context, identity_id)
        if identity.add_role(role_id):
            identity = self._store.save(identity)
            logger.info("assigned role %s to identity %s", role_id, identity_id)
        return identity

    def revoke_role(self, context: TenantContext, identity_id: str, role_id: RoleId) -> Identity:
        identity = self.get_identity(context, identity_id)
        if identity.remove_role(role_id):
            identity = self._store.save(identity)
            logger.info("revoked role %s from identity %s", role_id, identity_id)
        return identity

    def update_status(self, context: TenantContext, identity_id: str, change: StatusChange) -> Identity:
        """Apply the reversible status flags present in ``change``."""
        identity = self.get_identity(context, identity_id)
        changed = False
        if change.account_non_locked is not None:
            changed |= identity.unlock() if change.account_non_locked else identity.lock()
        if change.account_non_expired is not None:
            changed |= identity.renew_account() if change.account_non_expired else identity.expire_account()
        if change.credentials_non_expired is not None:
            changed |= (
                identity.renew_credentials()
                if change.credentials_non_expired
                else identity.expire_credentials()
            )
        if changed:
            identity = self._store.save(identity)
            logger.info("updated status flags of identity %s", identity_id)
        return identity

    def deactivate(self, context: TenantContext, identity_id: str) -> Identity:
        """Logically delete an identity by disabling it; the row is kept."""
        identity = self.get_identity(context, identity_id)
        if identity.deactivate():
            identity = self._store.save(identity)
            logger.info("deactivated identity %s", identity_id)
        return identity

    def reactivate(self, context: TenantContext, identity_id: str) -> Identity:
        identity = self.get_identity(context, identity_id)
        if identity.reactivate():
            identity = self._store.save(identity)
            logger.info("reactivated identity %s", identity_id)
        return identity

    def resolve_snapshot(self, identity: Identity, timeout: float | None = None) -> AuthorizationSnapshot:
        return self._resolver.resolve(identity, timeout)

    def authorize(
        self, context: TenantContext, identity_id: str, timeout: float | None = None
    ) -> AuthenticationContext:
        """Load an identity, resolve a fresh snapshot and project it for access control."""
        identity = self.get_identity(context, identity_id)
        snapshot = self.resolve_snapshot(identity, timeout)
        return project_authentication(identity, snapshot)

    def _scoped(self, context: TenantContext, identity: Identity | None) -> Identity:
        if identity is None:
            raise IdentityNotFoundError()
        if not identity.belongs_to(context):
            logger.warning(
                "store returned identity %s outside tenant %s; reporting not found",
                identity.id,
                context.tenant_id,
            )
            raise TenantMismatchError()
        return identity
