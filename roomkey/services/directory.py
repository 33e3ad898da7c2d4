"""User and membership lookups used during authentication."""

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from roomkey.models import (
    Organization,
    OrganizationMember,
    OrganizationMemberRole,
    OrganizationMemberStatus,
    User,
)


class MembershipDirectory:
    """Read-only access to users, organizations and memberships."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_user_by_identifier(self, identifier: str) -> User | None:
        """Get a user by username or email (email match is case-insensitive)."""
        identifier = identifier.strip()
        result = await self.session.execute(
            select(User).where(
                or_(
                    User.username == identifier,
                    func.lower(User.email) == identifier.lower(),
                )
            )
        )
        # Username wins if one user's username equals another's email
        users = result.scalars().all()
        for user in users:
            if user.username == identifier:
                return user
        return users[0] if users else None

    async def get_user(self, user_id: int) -> User | None:
        """Get user by ID."""
        return await self.session.get(User, user_id)

    async def get_organization_by_slug(self, slug: str) -> Organization | None:
        result = await self.session.execute(
            select(Organization).where(Organization.slug == slug.lower())
        )
        return result.scalar_one_or_none()

    async def is_active_member(
        self, organization_id: UUID, user_id: int
    ) -> tuple[OrganizationMemberRole | None, bool]:
        """Return the membership role and whether it may authenticate.

        A membership only counts as active when its status is Active and the
        organization itself is active. The role is returned whenever a
        membership row exists.
        """
        result = await self.session.execute(
            select(OrganizationMember.role, OrganizationMember.status, Organization.is_active)
            .join(Organization, Organization.id == OrganizationMember.organization_id)
            .where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.user_id == user_id,
            )
        )
        row = result.one_or_none()
        if row is None:
            return None, False
        role, status, org_active = row
        return role, bool(org_active) and status == OrganizationMemberStatus.ACTIVE
