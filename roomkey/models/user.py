"""User model - identity records that can authenticate."""

import enum

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from roomkey.models.base import BaseModel


class UserRole(str, enum.Enum):
    """Coarse role used by the legacy single-tenant surface."""

    USER = "user"
    ADMIN = "admin"


class User(BaseModel):
    """A person who can log in.

    ``is_platform_admin`` is the only signal for platform administration;
    ``role`` is carried into legacy tokens and nothing else.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(
            UserRole,
            name="user_role",
            native_enum=False,
            length=16,
            values_callable=lambda roles: [r.value for r in roles],
        ),
        nullable=False,
        default=UserRole.USER,
    )
    is_platform_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<User {self.username}>"
