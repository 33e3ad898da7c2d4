"""Revoked access tokens, keyed by JTI, kept until the token would expire."""

from datetime import datetime

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from roomkey.core.database import Base
from roomkey.models.base import UTCDateTime, utcnow


class RevokedToken(Base):
    """A revoked access token identified by its JTI claim.

    Entries are created on logout and purged once ``expires_at`` passes.
    """

    __tablename__ = "revoked_tokens"

    jti: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    revoked_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
