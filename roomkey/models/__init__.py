# roomkey Models
from roomkey.models.base import BaseModel, UTCDateTime
from roomkey.models.organization import (
    Organization,
    OrganizationMember,
    OrganizationMemberRole,
    OrganizationMemberStatus,
)
from roomkey.models.refresh_token import RefreshToken
from roomkey.models.revoked_token import RevokedToken
from roomkey.models.user import User, UserRole

__all__ = [
    "BaseModel",
    "Organization",
    "OrganizationMember",
    "OrganizationMemberRole",
    "OrganizationMemberStatus",
    "RefreshToken",
    "RevokedToken",
    "User",
    "UserRole",
    "UTCDateTime",
]
