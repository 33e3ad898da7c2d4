"""Access token denylist keyed by JTI."""

import logging
from datetime import UTC, datetime

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from roomkey.models import RevokedToken

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class RevocationRegistry:
    """Stores revoked access token ids until the tokens would have expired."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def revoke(self, jti: str, user_id: int, expires_at: datetime) -> None:
        """Add ``jti`` to the denylist. Revoking the same jti twice is a no-op."""
        dialect_name = self.session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect_name)
        if insert is None:
            if await self.is_revoked(jti):
                return
            self.session.add(RevokedToken(jti=jti, user_id=user_id, expires_at=expires_at))
            await self.session.flush()
            return

        await self.session.execute(
            insert(RevokedToken)
            .values(
                jti=jti,
                user_id=user_id,
                expires_at=expires_at,
                revoked_at=datetime.now(UTC),
            )
            .on_conflict_do_nothing(index_elements=["jti"])
        )
        logger.debug(f"Access token {jti} denylisted for user {user_id}")

    async def is_revoked(self, jti: str) -> bool:
        """Check whether a token id is on the denylist."""
        result = await self.session.execute(
            select(RevokedToken.jti).where(RevokedToken.jti == jti)
        )
        return result.scalar_one_or_none() is not None

    async def purge_expired(self, *, now: datetime | None = None) -> int:
        """Remove entries whose tokens have expired anyway."""
        now = now or datetime.now(UTC)
        result = await self.session.execute(
            delete(RevokedToken)
            .where(RevokedToken.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
