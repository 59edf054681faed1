"""Projection of an identity into the access-control layer's input."""

from __future__ import annotations

from dataclasses import dataclass

from ..domain.authorization import AuthorizationSnapshot, authorities_of
from ..domain.identity import Identity


@dataclass(frozen=True, slots=True)
class AuthenticationContext:
    """The two outputs handed to an access-control decision point."""

    authorities: frozenset[str]
    eligible: bool


def project_authentication(
    identity: Identity, snapshot: AuthorizationSnapshot | None
) -> AuthenticationContext:
    """Combine the identity's eligibility with the snapshot's authorities.

    Parameters
    ----------
    identity:
        Loaded identity whose status flags decide eligibility.
    snapshot:
        Snapshot resolved for ``identity`` during this request, or ``None`` when
        resolution has not happened; in that case no authorities are granted.

    Raises
    ------
    ValueError
        If ``snapshot`` was resolved for a different identity.
    """
    if snapshot is not None and snapshot.identity_id != identity.id:
        raise ValueError("snapshot belongs to a different identity")
    return AuthenticationContext(authorities=authorities_of(snapshot), eligible=identity.is_eligible)
