"""Credential verification for every login surface."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from roomkey.models import User
from roomkey.services.directory import MembershipDirectory
from roomkey.services.passwords import DUMMY_PASSWORD_HASH, verify_password
from roomkey.services.tenancy import OrganizationScope, PlatformScope, Scope

logger = logging.getLogger(__name__)

MAX_IDENTIFIER_LENGTH = 255
MAX_PASSWORD_LENGTH = 1024


class CredentialVerifier:
    """Check a login identifier and password against a target scope.

    Every failure returns ``None``. Unknown users, wrong passwords,
    missing platform rights and inactive memberships look the same to
    the caller.
    """

    def __init__(self, session: AsyncSession, directory: MembershipDirectory | None = None):
        self.session = session
        self.directory = directory or MembershipDirectory(session)

    async def verify(self, identifier: str, password: str, scope: Scope) -> User | None:
        if not identifier or not identifier.strip() or not password:
            return None
        if len(identifier) > MAX_IDENTIFIER_LENGTH or len(password) > MAX_PASSWORD_LENGTH:
            return None

        user = await self.directory.find_user_by_identifier(identifier)

        if user is None:
            # Perform a dummy verification to prevent timing attacks
            verify_password(password, DUMMY_PASSWORD_HASH)
            return None

        if not verify_password(password, user.password_hash):
            return None

        if not await self.is_authorized_for(user, scope):
            logger.info(f"User {user.id} authenticated but is not authorized for scope")
            return None

        return user

    async def is_authorized_for(self, user: User, scope: Scope) -> bool:
        """Whether ``user`` may hold a session in ``scope``."""
        if isinstance(scope, PlatformScope):
            return user.is_platform_admin
        if isinstance(scope, OrganizationScope):
            _, is_active = await self.directory.is_active_member(scope.organization_id, user.id)
            return is_active
        return True
