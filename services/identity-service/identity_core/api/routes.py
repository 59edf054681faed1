"""HTTP route definitions for the identity core."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from pydantic import BaseModel, EmailStr, Field

from ..domain.contracts import RegisterIdentityInput, StatusChange
from ..domain.errors import (
    ConcurrentModificationError,
    DuplicateEmailError,
    IdentityError,
    IdentityNotFoundError,
    InvalidReferenceError,
)
from ..domain.identity import Identity
from ..domain.service import IdentityService
from ..domain.tenancy import TenantContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")


class IdentityResponse(BaseModel):
    """Serialised representation of an `Identity`, without its credential."""

    identity_id: str
    tenant_id: str
    email: EmailStr
    first_name: str
    last_name: str
    enabled: bool
    account_non_expired: bool
    account_non_locked: bool
    credentials_non_expired: bool
    eligible: bool
    role_ids: list[int]
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, identity: Identity) -> "IdentityResponse":
        """Build a response model from the domain entity."""
        return cls(
            identity_id=identity.id,
            tenant_id=identity.tenant_id,
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
            enabled=identity.enabled,
            account_non_expired=identity.account_non_expired,
            account_non_locked=identity.account_non_locked,
            credentials_non_expired=identity.credentials_non_expired,
            eligible=identity.is_eligible,
            role_ids=sorted(identity.role_ids),
            version=identity.version,
            created_at=identity.created_at,
            updated_at=identity.updated_at,
        )


class RegisterIdentityRequest(BaseModel):
    """Payload accepted when provisioning a tenant-scoped identity."""

    email: EmailStr
    credential_secret: str = Field(..., min_length=1, repr=False)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)


class StatusChangeRequest(BaseModel):
    """Reversible status flags to set; omitted flags are left unchanged."""

    account_non_locked: bool | None = None
    account_non_expired: bool | None = None
    credentials_non_expired: bool | None = None


class AuthorizationResponse(BaseModel):
    """Authority set and eligibility handed to the access-control layer."""

    identity_id: str
    authorities: list[str]
    eligible: bool


def get_service(request: Request) -> IdentityService:
    """Resolve the `IdentityService` stored on the FastAPI application state."""
    service: IdentityService = request.app.state.identity_service
    return service


def get_tenant_context(tenant_id: str = Header(..., alias="X-Tenant-ID")) -> TenantContext:
    """Build the tenant context for the request from the ``X-Tenant-ID`` header."""
    try:
        return TenantContext(tenant_id=tenant_id, source="header")
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post("/identities", response_model=IdentityResponse, status_code=status.HTTP_201_CREATED)
def register_identity(
    payload: RegisterIdentityRequest,
    context: TenantContext = Depends(get_tenant_context),
    service: IdentityService = Depends(get_service),
) -> IdentityResponse:
    """Provision an identity within the requester tenant."""
    try:
        identity = service.register(
            context,
            RegisterIdentityInput(
                email=payload.email,
                credential_secret=payload.credential_secret,
                first_name=payload.first_name,
                last_name=payload.last_name,
            ),
        )
    except (IdentityError, ValueError) as exc:
        raise _http_error(exc) from exc
    return IdentityResponse.from_domain(identity)


@router.get("/identities", response_model=IdentityResponse)
def find_identity_by_email(
    email: str = Query(..., min_length=1),
    context: TenantContext = Depends(get_tenant_context),
    service: IdentityService = Depends(get_service),
) -> IdentityResponse:
    """Look up an identity by login email within the requester tenant."""
    try:
        identity = service.find_by_email(context, email)
    except (IdentityError, ValueError) as exc:
        raise _http_error(exc) from exc
    return IdentityResponse.from_domain(identity)


@router.get("/identities/{identity_id}", response_model=IdentityResponse)
def get_identity(
    identity_id: str,
    context: TenantContext = Depends(get_tenant_context),
    service: IdentityService = Depends(get_service),
) -> IdentityResponse:
    """Retrieve an identity belonging to the requester tenant."""
    try:
        identity = service.get_identity(context, identity_id)
    except IdentityError as exc:
        raise _http_error(exc) from exc
    return IdentityResponse.from_domain(identity)


@router.put("/identities/{identity_id}/roles/{role_id}", response_model=IdentityResponse)
def assign_role(
    identity_id: str,
    role_id: int,
    context: TenantContext = Depends(get_tenant_context),
    service: IdentityService = Depends(get_service),
) -> IdentityResponse:
    try:
        identity = service.assign_role(context, identity_id, role_id)
    except IdentityError as exc:
        raise _http_error(exc) from exc
    return IdentityResponse.from_domain(identity)


@router.delete("/identities/{identity_id}/roles/{role_id}", response_model=IdentityResponse)
def revoke_role(
    identity_id: str,
    role_id: int,
    context: TenantContext = Depends(get_tenant_context),
    service: IdentityService = Depends(get_service),
) -> IdentityResponse:
    try:
        identity = service.revoke_role(context, identity_id, role_id)
    except IdentityError as exc:
        raise _http_error(exc) from exc
    return IdentityResponse.from_domain(identity)


@router.patch("/identities/{identity_id}/status", response_model=IdentityResponse)
def update_status(
    identity_id: str,
    payload: StatusChangeRequest,
    context: TenantContext = Depends(get_tenant_context),
    service: IdentityService = Depends(get_service),
) -> IdentityResponse:
    """Lock, expire or renew an identity; ``enabled`` has its own endpoints."""
    try:
        identity = service.update_status(
            context,
            identity_id,
            StatusChange(
                account_non_locked=payload.account_non_locked,
                account_non_expired=payload.account_non_expired,
                credentials_non_expired=payload.credentials_non_expired,
            ),
        )
    except IdentityError as exc:
        raise _http_error(exc) from exc
    return IdentityResponse.from_domain(identity)


@router.post("/identities/{identity_id}/deactivate", response_model=IdentityResponse)
def deactivate_identity(
    identity_id: str,
    context: TenantContext = Depends(get_tenant_context),
    service: IdentityService = Depends(get_service),
) -> IdentityResponse:
    """Disable an identity; the record is retained."""
    try:
        identity = service.deactivate(context, identity_id)
    except IdentityError as exc:
        raise _http_error(exc) from exc
    return IdentityResponse.from_domain(identity)


@router.post("/identities/{identity_id}/reactivate", response_model=IdentityResponse)
def reactivate_identity(
    identity_id: str,
    context: TenantContext = Depends(get_tenant_context),
    service: IdentityService = Depends(get_service),
) -> IdentityResponse:
    try:
        identity = service.reactivate(context, identity_id)
    except IdentityError as exc:
        raise _http_error(exc) from exc
    return IdentityResponse.from_domain(identity)


@router.get("/identities/{identity_id}/authorization", response_model=AuthorizationResponse)
def authorize_identity(
    identity_id: str,
    timeout: float | None = Query(default=None, gt=0, le=30),
    context: TenantContext = Depends(get_tenant_context),
    service: IdentityService = Depends(get_service),
) -> AuthorizationResponse:
    """Resolve the identity's authorities and eligibility for this request."""
    try:
        result = service.authorize(context, identity_id, timeout)
    except IdentityError as exc:
        raise _http_error(exc) from exc
    return AuthorizationResponse(
        identity_id=identity_id,
        authorities=sorted(result.authorities),
        eligible=result.eligible,
    )


def _http_error(exc: Exception) -> HTTPException:
    status_code = status.HTTP_400_BAD_REQUEST
    if isinstance(exc, IdentityNotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (DuplicateEmailError, ConcurrentModificationError)):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, IdentityError) and not isinstance(exc, InvalidReferenceError):
        logger.error("unhandled identity error: %s", exc)
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=status_code, detail=str(exc))
