"""Refresh token model - hashed, single-use renewal secrets."""

from datetime import datetime

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from roomkey.models.base import BaseModel, UTCDateTime


class RefreshToken(BaseModel):
    """One issued refresh token.

    Only the SHA-256 hex digest of the secret is stored. A row is live while
    ``revoked_at`` is NULL and ``expires_at`` lies in the future; it is
    revoked exactly once (rotation, reuse response or logout).
    """

    __tablename__ = "refresh_tokens"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (Index("ix_refresh_tokens_user_revoked", "user_id", "revoked_at"),)

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def __repr__(self) -> str:
        return f"<RefreshToken {self.id} user={self.user_id}>"
