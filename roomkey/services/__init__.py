# roomkey Services
from roomkey.services.access_tokens import AccessTokenIssuer, IssuedAccessToken
from roomkey.services.refresh_tokens import (
    NotFound,
    RefreshTokenStore,
    ReuseDetected,
    Rotated,
)
from roomkey.services.revocation import RevocationRegistry
from roomkey.services.sessions import AuthSession, Principal, SessionService
from roomkey.services.tenancy import (
    LegacyScope,
    OrganizationScope,
    PlatformScope,
    Scope,
    TenantContext,
)
from roomkey.services.token_cleanup import TokenCleanupService

__all__ = [
    "AccessTokenIssuer",
    "AuthSession",
    "IssuedAccessToken",
    "LegacyScope",
    "NotFound",
    "OrganizationScope",
    "PlatformScope",
    "Principal",
    "RefreshTokenStore",
    "ReuseDetected",
    "RevocationRegistry",
    "Rotated",
    "Scope",
    "SessionService",
    "TenantContext",
    "TokenCleanupService",
]
