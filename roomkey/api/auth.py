"""Authentication API endpoints for the platform, organization and legacy surfaces.

All three surfaces share the same handlers; they differ only in how the
authentication scope is derived from the request.
"""

from collections.abc import Callable
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from roomkey.api.deps import (
    extract_bearer_token,
    get_session_service,
    legacy_scope,
    organization_scope,
    platform_scope,
)
from roomkey.schemas.auth import (
    AuthResponse,
    ErrorResponse,
    LoginRequest,
    RefreshRequest,
    UserResponse,
)
from roomkey.services.sessions import AuthSession, Principal, SessionService
from roomkey.services.tenancy import Scope

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
INVALID_TOKEN = "Invalid token"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _auth_response(auth_session: AuthSession) -> AuthResponse:
    user = auth_session.user
    lifetime = auth_session.access_expires_at - datetime.now(UTC)
    return AuthResponse(
        access_token=auth_session.access_token,
        access_expires_at=auth_session.access_expires_at,
        refresh_token=auth_session.refresh_token,
        refresh_expires_at=auth_session.refresh_expires_at,
        expires_in=max(0, int(lifetime.total_seconds())),
        user=UserResponse(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role.value,
            is_platform_admin=user.is_platform_admin,
            org_role=auth_session.org_role,
        ),
    )


def build_auth_router(prefix: str, tag: str, resolve_scope: Callable[..., Scope]) -> APIRouter:
    """Create the login/refresh/logout/me routes for one surface."""
    router = APIRouter(
        prefix=prefix,
        tags=[tag],
        responses={
            status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
            status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        },
    )

    async def get_principal(
        request: Request,
        scope: Scope = Depends(resolve_scope),
        service: SessionService = Depends(get_session_service),
    ) -> Principal:
        """Dependency to get the authenticated caller from the bearer token."""
        token = extract_bearer_token(request)
        if token is None:
            raise _unauthorized("Missing or invalid authorization header")
        principal = await service.authenticate(token, scope)
        if principal is None:
            raise _unauthorized(INVALID_TOKEN)
        return principal

    @router.post("/login", response_model=AuthResponse)
    async def login(
        body: LoginRequest,
        scope: Scope = Depends(resolve_scope),
        service: SessionService = Depends(get_session_service),
    ) -> AuthResponse:
        """Authenticate and get an access and refresh token pair."""
        auth_session = await service.login(body.username_or_email, body.password, scope)
        if auth_session is None:
            raise _unauthorized(INVALID_CREDENTIALS)
        return _auth_response(auth_session)

    @router.post("/refresh", response_model=AuthResponse)
    async def refresh(
        body: RefreshRequest,
        scope: Scope = Depends(resolve_scope),
        service: SessionService = Depends(get_session_service),
    ) -> AuthResponse:
        """Exchange a refresh token for a new pair (single use)."""
        auth_session = await service.refresh(body.refresh_token, scope)
        if auth_session is None:
            raise _unauthorized(INVALID_REFRESH_TOKEN)
        return _auth_response(auth_session)

    @router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
    async def logout(
        principal: Principal = Depends(get_principal),
        service: SessionService = Depends(get_session_service),
    ) -> Response:
        """Revoke the current access token and every refresh token of the user."""
        ok = await service.logout(
            principal.jti,
            principal.user_id,
            principal.claims.get("exp"),
        )
        if not ok:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_TOKEN)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.get("/me", response_model=UserResponse)
    async def me(
        principal: Principal = Depends(get_principal),
        scope: Scope = Depends(resolve_scope),
        service: SessionService = Depends(get_session_service),
    ) -> UserResponse:
        """Get the current user's information."""
        current = await service.current_user(principal, scope)
        if current is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return UserResponse(
            id=current.user.id,
            username=current.user.username,
            email=current.user.email,
            role=current.user.role.value,
            is_platform_admin=current.user.is_platform_admin,
            org_role=current.org_role.value if current.org_role is not None else None,
        )

    return router


platform_router = build_auth_router("/platform/auth", "platform-auth", platform_scope)
organization_router = build_auth_router("/org/auth", "org-auth", organization_scope)
legacy_router = build_auth_router("/auth", "auth", legacy_scope)
