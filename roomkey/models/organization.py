"""Organization (tenant) and membership models."""

import enum
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, Enum, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from roomkey.core.database import Base
from roomkey.models.base import UTCDateTime, utcnow


class OrganizationMemberRole(str, enum.Enum):
    """Role of a user inside one organization. Values appear in tokens."""

    USER = "User"
    APPROVER = "Approver"
    ORG_ADMIN = "OrgAdmin"


class OrganizationMemberStatus(str, enum.Enum):
    ACTIVE = "Active"
    INVITED = "Invited"
    SUSPENDED = "Suspended"


def _string_enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=16,
        values_callable=lambda members: [m.value for m in members],
    )


class Organization(Base):
    """A tenant. Only active organizations accept logins."""

    __tablename__ = "organizations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Organization {self.slug}>"


class OrganizationMember(Base):
    """Membership of a user in an organization.

    The composite primary key allows at most one row per (organization, user).
    """

    __tablename__ = "organization_members"

    organization_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    role: Mapped[OrganizationMemberRole] = mapped_column(
        _string_enum(OrganizationMemberRole, "organization_member_role"),
        nullable=False,
        default=OrganizationMemberRole.USER,
    )
    status: Mapped[OrganizationMemberStatus] = mapped_column(
        _string_enum(OrganizationMemberStatus, "organization_member_status"),
        nullable=False,
        default=OrganizationMemberStatus.ACTIVE,
    )
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<OrganizationMember org={self.organization_id} user={self.user_id}>"
