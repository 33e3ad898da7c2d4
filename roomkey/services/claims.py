"""Claim derivation for access tokens."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from roomkey.models import OrganizationMemberRole, User, UserRole
from roomkey.services.tenancy import OrganizationScope, PlatformScope, Scope

# Tenant claim names
ORG_ID_CLAIM = "org_id"
ORG_ROLE_CLAIM = "org_role"
PLATFORM_ADMIN_CLAIM = "is_platform_admin"
LEGACY_ROLE_CLAIM = "role"


@dataclass(frozen=True)
class ClaimSet:
    """Claims for one access token, before signing.

    ``jti`` is unique per token and doubles as its revocation key.
    """

    subject: str
    jti: str
    issued_at: datetime
    scope_claims: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "sub": self.subject,
            "jti": self.jti,
            **self.scope_claims,
        }


def new_jti() -> str:
    return uuid4().hex


def build_claims(
    user: User,
    scope: Scope,
    org_role: OrganizationMemberRole | None = None,
) -> ClaimSet:
    """Map a user and scope to claims.

    Organization scope needs the caller's role in that organization;
    the other scopes ignore ``org_role``.
    """
    scope_claims: dict[str, Any]
    if isinstance(scope, OrganizationScope):
        if org_role is None:
            raise ValueError("Organization scope requires a membership role")
        scope_claims = {
            ORG_ID_CLAIM: str(scope.organization_id),
            ORG_ROLE_CLAIM: OrganizationMemberRole(org_role).value,
        }
    elif isinstance(scope, PlatformScope):
        scope_claims = {PLATFORM_ADMIN_CLAIM: True}
    else:
        scope_claims = {LEGACY_ROLE_CLAIM: UserRole(user.role).value}

    return ClaimSet(
        subject=str(user.id),
        jti=new_jti(),
        issued_at=datetime.now(UTC).replace(microsecond=0),
        scope_claims=scope_claims,
    )
