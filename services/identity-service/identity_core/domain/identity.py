from __future__ import annotations

from dataclasses import InitVar, dataclass, field
from datetime import datetime

from .errors import InvalidReferenceError
from .tenancy import TenantScopedEntity

RoleId = int


def normalize_email(email: str) -> str:
    """Strip and lower-case an email address, rejecting blank values."""
    normalized = (email or "").strip().lower()
    if not normalized:
        raise ValueError("email cannot be blank")
    return normalized


def _require_text(value: str, name: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        raise ValueError(f"{name} cannot be blank")
    return stripped


def _validate_role_id(role_id: RoleId | None) -> RoleId:
    if role_id is None:
        raise InvalidReferenceError("role id is required")
    # bool is an int subclass but never a meaningful role reference
    if isinstance(role_id, bool) or not isinstance(role_id, int):
        raise InvalidReferenceError(f"role id must be an integer, got {role_id!r}")
    return role_id


@dataclass(eq=False, repr=False)
class Identity(TenantScopedEntity):
    """Persisted principal of a tenant.

    Holds credentials, account-status flags and role references only. Resolved
    role names and permissions live in ``AuthorizationSnapshot``. The tenant is
    a required constructor argument and is bound exactly once.
    """

    tenant_id: InitVar[str] = field()
    first_name: str
    last_name: str
    email: str
    credential_secret: str
    id: str | None = None
    enabled: bool = True
    account_non_expired: bool = True
    account_non_locked: bool = True
    credentials_non_expired: bool = True
    role_ids: set[RoleId] = field(default_factory=set)
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self, tenant_id: str) -> None:
        self.assign_tenant(tenant_id)
        self.role_ids = {_validate_role_id(role_id) for role_id in self.role_ids or ()}

    @classmethod
    def register(
        cls,
        *,
        tenant_id: str,
        email: str,
        credential_secret: str,
        first_name: str,
        last_name: str,
    ) -> "Identity":
        """Create a not-yet-persisted identity with every status flag set."""
        if not credential_secret:
            raise ValueError("credential is required")
        return cls(
            tenant_id=tenant_id,
            first_name=_require_text(first_name, "first_name"),
            last_name=_require_text(last_name, "last_name"),
            email=normalize_email(email),
            credential_secret=credential_secret,
        )

    @classmethod
    def restore(cls, *, tenant_id: str, **fields) -> "Identity":
        """Rehydrate a stored identity from its persisted fields."""
        return cls(tenant_id=tenant_id, **fields)

    @property
    def username(self) -> str:
        return self.email

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    @property
    def is_eligible(self) -> bool:
        """Whether the account may authenticate at all."""
        return (
            self.enabled
            and self.account_non_expired
            and self.account_non_locked
            and self.credentials_non_expired
        )

    # Status transitions. Each is idempotent and reports whether it changed state.

    def deactivate(self) -> bool:
        return self._set_flag("enabled", False)

    def reactivate(self) -> bool:
        """Administrative re-enable; deactivation is never undone implicitly."""
        return self._set_flag("enabled", True)

    def lock(self) -> bool:
        return self._set_flag("account_non_locked", False)

    def unlock(self) -> bool:
        return self._set_flag("account_non_locked", True)

    def expire_account(self) -> bool:
        return self._set_flag("account_non_expired", False)

    def renew_account(self) -> bool:
        return self._set_flag("account_non_expired", True)

    def expire_credentials(self) -> bool:
        return self._set_flag("credentials_non_expired", False)

    def renew_credentials(self) -> bool:
        return self._set_flag("credentials_non_expired", True)

    def _set_flag(self, name: str, value: bool) -> bool:
        if getattr(self, name) == value:
            return False
        setattr(self, name, value)
        return True

    # Role references

    def add_role(self, role_id: RoleId) -> bool:
        """Add a role reference; returns ``False`` when it was already present."""
        role_id = _validate_role_id(role_id)
        if role_id in self.role_ids:
            return False
        self.role_ids.add(role_id)
        return True

    def remove_role(self, role_id: RoleId) -> bool:
        """Remove a role reference; removing a non-member is not an error."""
        try:
            role_id = _validate_role_id(role_id)
        except InvalidReferenceError:
            return False
        if role_id not in self.role_ids:
            return False
        self.role_ids.discard(role_id)
        return True

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Identity):
            return NotImplemented
        return self.id is not None and self.id == other.id

    def __hash__(self) -> int:
        # constant per class: stays valid when save() assigns the id
        return hash(Identity)

    def __repr__(self) -> str:
        return (
            f"Identity(id={self.id!r}, email={self.email!r}, enabled={self.enabled}, "
            f"role_count={len(self.role_ids)}, tenant_id={self.tenant_id!r})"
        )
