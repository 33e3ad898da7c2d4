"""Request-scoped dependencies shared by the API routers."""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from roomkey.core import get_db
from roomkey.services.sessions import SessionService
from roomkey.services.tenancy import (
    LegacyScope,
    OrganizationScope,
    PlatformScope,
    Scope,
    TenantContext,
)


def get_session_service(db: AsyncSession = Depends(get_db)) -> SessionService:
    """Dependency to get the session service."""
    return SessionService(db)


def get_tenant(request: Request) -> TenantContext:
    """Tenant context set by the tenant resolution middleware."""
    return getattr(request.state, "tenant", None) or TenantContext()


def platform_scope() -> Scope:
    return PlatformScope()


def organization_scope(tenant: TenantContext = Depends(get_tenant)) -> Scope:
    if tenant.organization_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tenant not found",
        )
    return OrganizationScope(tenant.organization_id)


def legacy_scope() -> Scope:
    return LegacyScope()


def extract_bearer_token(request: Request) -> str | None:
    """Extract JWT token from the Authorization: Bearer <token> header."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()  # Remove "Bearer " prefix
        return token or None
    return None
