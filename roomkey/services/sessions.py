"""Session orchestration: login, refresh, logout and request authentication.

This is the only service the API layer talks to. Each public operation is
one unit of work on the given database session: it commits on success and
rolls back on any exception, cancellation included, so a logout can never
half-apply.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from roomkey.models import OrganizationMemberRole, User
from roomkey.services.access_tokens import AccessTokenIssuer, IssuedAccessToken
from roomkey.services.claims import (
    ORG_ID_CLAIM,
    ORG_ROLE_CLAIM,
    PLATFORM_ADMIN_CLAIM,
    ClaimSet,
    build_claims,
)
from roomkey.services.credentials import CredentialVerifier
from roomkey.services.directory import MembershipDirectory
from roomkey.services.errors import TokenError
from roomkey.services.refresh_tokens import (
    IssuedRefreshToken,
    NotFound,
    RefreshTokenStore,
    ReuseDetected,
)
from roomkey.services.revocation import RevocationRegistry
from roomkey.services.tenancy import (
    LegacyScope,
    OrganizationScope,
    PlatformScope,
    Scope,
    describe_scope,
)

logger = logging.getLogger(__name__)

MAX_JTI_LENGTH = 64


@dataclass(frozen=True)
class AuthSession:
    """Token pair handed to the client after login or refresh."""

    access_token: str = field(repr=False)
    access_expires_at: datetime
    refresh_token: str = field(repr=False)
    refresh_expires_at: datetime
    jti: str
    user: User
    scope: Scope
    org_role: str | None = None


@dataclass(frozen=True)
class Principal:
    """Caller identity established from a validated access token."""

    user_id: int
    jti: str
    expires_at: datetime
    scope: Scope
    is_platform_admin: bool = False
    org_role: str | None = None
    claims: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class CurrentUser:
    user: User
    org_role: OrganizationMemberRole | None = None


def parse_user_id(value: Any) -> int | None:
    """Accept an int or a decimal string; anything else is malformed."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.isdecimal():
        parsed = int(value)
        return parsed if parsed > 0 else None
    return None


def parse_expiry(value: Any) -> datetime | None:
    """Accept a datetime or a unix timestamp, returned as aware UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if isinstance(value, int | float):
        try:
            return datetime.fromtimestamp(value, UTC)
        except (OverflowError, OSError, ValueError):
            return None
    return None


def _valid_jti(value: Any) -> bool:
    return isinstance(value, str) and 0 < len(value) <= MAX_JTI_LENGTH and value.strip() == value


class SessionService:
    """Composes verification, claims, token issuing and revocation."""

    def __init__(
        self,
        session: AsyncSession,
        issuer: AccessTokenIssuer | None = None,
        *,
        refresh_tokens: RefreshTokenStore | None = None,
    ):
        self.session = session
        self.issuer = issuer or AccessTokenIssuer.get_instance()
        self.directory = MembershipDirectory(session)
        self.verifier = CredentialVerifier(session, self.directory)
        self.refresh_tokens = refresh_tokens or RefreshTokenStore(session)
        self.revocations = RevocationRegistry(session)

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[None]:
        try:
            yield
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            raise

    async def login(self, identifier: str, password: str, scope: Scope) -> AuthSession | None:
        """Verify credentials and open a session in ``scope``.

        Returns ``None`` on any failure without saying which check failed.
        """
        async with self._transaction():
            user = await self.verifier.verify(identifier, password, scope)
            claims = await self._claims_for(user, scope) if user is not None else None
            if user is None or claims is None:
                logger.info(f"Login failed ({describe_scope(scope)})")
                return None

            auth_session = await self._open_session(user, scope, claims)

        logger.info(f"User {user.id} logged in ({describe_scope(scope)})")
        return auth_session

    async def refresh(self, presented_secret: str, scope: Scope) -> AuthSession | None:
        """Exchange a refresh token for a new token pair.

        Membership and platform rights are checked again here. If they no
        longer hold, the rotation is undone and the presented token stays
        valid, but no session is issued.
        """
        async with self._transaction():
            outcome = await self.refresh_tokens.rotate(presented_secret)
            if isinstance(outcome, NotFound):
                logger.info("Refresh failed: unknown token")
                return None
            if isinstance(outcome, ReuseDetected):
                # Family revocation, if any, is already committed by the store
                return None

            user = await self.directory.get_user(outcome.user_id)
            claims = await self._claims_for(user, scope) if user is not None else None
            if user is None or claims is None:
                await self.session.rollback()
                logger.info(
                    f"Refresh denied for user {outcome.user_id} ({describe_scope(scope)})"
                )
                return None

            access = self.issuer.issue(claims)

        logger.info(f"Refresh token rotated for user {user.id}")
        return _auth_session(user, scope, claims, access, outcome.token)

    async def logout(self, jti: Any, user_id: Any, access_expires_at: Any) -> bool:
        """Denylist an access token and revoke all refresh tokens of its user.

        Both writes commit together. Malformed input is rejected before the
        database is touched.
        """
        parsed_user_id = parse_user_id(user_id)
        expires_at = parse_expiry(access_expires_at)
        if not _valid_jti(jti) or parsed_user_id is None or expires_at is None:
            logger.info("Logout rejected: malformed token data")
            return False

        async with self._transaction():
            await self.revocations.revoke(jti, parsed_user_id, expires_at)
            revoked = await self.refresh_tokens.revoke_all_for_user(parsed_user_id)

        logger.info(
            f"User {parsed_user_id} logged out (jti {jti}, {revoked} refresh tokens revoked)"
        )
        return True

    async def authenticate(self, token: str, scope: Scope) -> Principal | None:
        """Validate a bearer access token for a request made in ``scope``.

        Checks signature, expiry, issuer, audience, denylist and that the
        token was minted for this tenant. Platform admins may act in any
        organization.
        """
        try:
            claims = self.issuer.decode(token)
        except TokenError as e:
            logger.debug(f"Access token rejected: {e}")
            return None

        user_id = parse_user_id(claims.get("sub"))
        jti = claims.get("jti")
        expires_at = parse_expiry(claims.get("exp"))
        if user_id is None or not _valid_jti(jti) or expires_at is None:
            return None

        is_platform_admin = claims.get(PLATFORM_ADMIN_CLAIM) is True
        token_org = claims.get(ORG_ID_CLAIM)
        if token_org is not None:
            try:
                token_scope: Scope = OrganizationScope(UUID(str(token_org)))
            except ValueError:
                return None
        elif is_platform_admin:
            token_scope = PlatformScope()
        else:
            token_scope = LegacyScope()

        if isinstance(scope, PlatformScope) and not is_platform_admin:
            return None
        if (
            isinstance(scope, OrganizationScope)
            and token_scope != scope
            and not is_platform_admin
        ):
            return None

        if await self.revocations.is_revoked(jti):
            logger.info(f"Revoked access token presented (jti {jti})")
            return None

        return Principal(
            user_id=user_id,
            jti=jti,
            expires_at=expires_at,
            scope=token_scope,
            is_platform_admin=is_platform_admin,
            org_role=claims.get(ORG_ROLE_CLAIM),
            claims=claims,
        )

    async def current_user(self, principal: Principal, scope: Scope) -> CurrentUser | None:
        """Load the principal's user, with the membership role in org scope.

        Fails when the user is gone or the membership is no longer active.
        """
        user = await self.directory.get_user(principal.user_id)
        if user is None:
            return None
        if isinstance(scope, OrganizationScope):
            role, is_active = await self.directory.is_active_member(
                scope.organization_id, user.id
            )
            if not is_active:
                if principal.is_platform_admin:
                    return CurrentUser(user=user)
                return None
            return CurrentUser(user=user, org_role=role)
        return CurrentUser(user=user)

    async def _claims_for(self, user: User, scope: Scope) -> ClaimSet | None:
        """Build claims, or ``None`` if the user may not hold this scope."""
        if isinstance(scope, PlatformScope):
            if not user.is_platform_admin:
                return None
            return build_claims(user, scope)
        if isinstance(scope, OrganizationScope):
            role, is_active = await self.directory.is_active_member(
                scope.organization_id, user.id
            )
            if not is_active or role is None:
                return None
            return build_claims(user, scope, role)
        return build_claims(user, scope)

    async def _open_session(self, user: User, scope: Scope, claims: ClaimSet) -> AuthSession:
        access = self.issuer.issue(claims)
        refresh = await self.refresh_tokens.issue(user.id)
        return _auth_session(user, scope, claims, access, refresh)


def _auth_session(
    user: User,
    scope: Scope,
    claims: ClaimSet,
    access: IssuedAccessToken,
    refresh: IssuedRefreshToken,
) -> AuthSession:
    return AuthSession(
        access_token=access.token,
        access_expires_at=access.expires_at,
        refresh_token=refresh.secret,
        refresh_expires_at=refresh.expires_at,
        jti=access.jti,
        user=user,
        scope=scope,
        org_role=claims.scope_claims.get(ORG_ROLE_CLAIM),
    )
