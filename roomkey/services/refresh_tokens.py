"""Refresh token store: issue, single-use rotation and reuse detection."""

import hashlib
import logging
import secrets
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from roomkey.core.config import settings
from roomkey.core.retry import RetryConfig, retry_async
from roomkey.models import RefreshToken
from roomkey.services.errors import TransientStoreConflict

logger = logging.getLogger(__name__)

# 64 random bytes, URL-safe base64 encoded
REFRESH_SECRET_BYTES = 64

# Anything longer was not issued by us
MAX_SECRET_LENGTH = 512

# PostgreSQL serialization_failure and deadlock_detected
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})

ROTATION_RETRY = RetryConfig(retryable_exceptions=(TransientStoreConflict,))


def hash_secret(secret: str) -> str:
    """One-way hash used as the lookup key for a refresh secret."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def _is_conflict(exc: DBAPIError) -> bool:
    """Whether a driver error is a lock or serialization conflict."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _CONFLICT_SQLSTATES:
        return True
    # SQLite reports writer contention as a plain OperationalError
    return "database is locked" in str(orig)


@dataclass(frozen=True)
class IssuedRefreshToken:
    secret: str = field(repr=False)
    expires_at: datetime


@dataclass(frozen=True)
class Rotated:
    """The presented token was live and has been exchanged for ``token``."""

    user_id: int
    token: IssuedRefreshToken


@dataclass(frozen=True)
class ReuseDetected:
    """The presented token was already spent.

    ``family_revoked`` is True when the presentation was a replay and every
    refresh token of the user has been revoked. It is False when the call
    merely lost a race against a concurrent rotation of the same token.
    """

    user_id: int
    family_revoked: bool


@dataclass(frozen=True)
class NotFound:
    pass


RotateResult = Rotated | ReuseDetected | NotFound


@dataclass
class _RotationAttempt:
    """State carried across retries of one rotation."""

    token_hash: str
    observed_live: bool = False
    user_id: int | None = None


class RefreshTokenStore:
    """Owns the persisted refresh tokens.

    Only hashes are stored; plaintext secrets leave this class once, from
    ``issue``. Writes are flushed, not committed, so the caller can bundle
    them with other work. The exception is a detected replay: the family
    revocation is committed immediately so it survives whatever the caller
    does next.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        token_days: int | None = None,
        retry_config: RetryConfig | None = None,
    ):
        self.session = session
        self.lifetime = timedelta(days=token_days or settings.jwt_refresh_token_days)
        # Only store conflicts are retried, whatever timings are injected
        self.retry_config = replace(
            retry_config or ROTATION_RETRY,
            retryable_exceptions=(TransientStoreConflict,),
        )

    async def issue(self, user_id: int) -> IssuedRefreshToken:
        """Create a refresh token for ``user_id`` and return its secret once."""
        secret = secrets.token_urlsafe(REFRESH_SECRET_BYTES)
        expires_at = datetime.now(UTC) + self.lifetime
        self.session.add(
            RefreshToken(
                user_id=user_id,
                token_hash=hash_secret(secret),
                expires_at=expires_at,
            )
        )
        await self.session.flush()
        return IssuedRefreshToken(secret=secret, expires_at=expires_at)

    async def rotate(self, presented_secret: str) -> RotateResult:
        """Exchange a live refresh token for a new one.

        Returns ``Rotated`` with the new token (flushed, not committed),
        ``ReuseDetected`` when the token was already revoked or expired, or
        ``NotFound`` for secrets we never issued. Lock conflicts are retried;
        when retries run out the call fails closed.
        """
        if not presented_secret or len(presented_secret) > MAX_SECRET_LENGTH:
            return NotFound()

        attempt = _RotationAttempt(token_hash=hash_secret(presented_secret))
        try:
            return await retry_async(self._rotate_once, attempt, config=self.retry_config)
        except TransientStoreConflict:
            logger.warning(
                f"Refresh rotation gave up after repeated conflicts (user {attempt.user_id})"
            )
            if attempt.user_id is None:
                return NotFound()
            return ReuseDetected(user_id=attempt.user_id, family_revoked=False)

    async def _find(self, token_hash: str):
        result = await self.session.execute(
            select(
                RefreshToken.id,
                RefreshToken.user_id,
                RefreshToken.expires_at,
                RefreshToken.revoked_at,
            ).where(RefreshToken.token_hash == token_hash)
        )
        return result.one_or_none()

    async def _rotate_once(self, attempt: _RotationAttempt) -> RotateResult:
        now = datetime.now(UTC)
        try:
            row = await self._find(attempt.token_hash)
            if row is None:
                return NotFound()
            attempt.user_id = row.user_id

            if row.revoked_at is not None or row.expires_at <= now:
                if attempt.observed_live:
                    # A concurrent rotation won between our read and our write
                    await self.session.rollback()
                    logger.info(f"Refresh token for user {row.user_id} lost a rotation race")
                    return ReuseDetected(user_id=row.user_id, family_revoked=False)
                revoked = await self.revoke_all_for_user(row.user_id, now=now)
                await self.session.commit()
                logger.warning(
                    f"Refresh token reuse detected for user {row.user_id}; "
                    f"revoked {revoked} outstanding tokens"
                )
                return ReuseDetected(user_id=row.user_id, family_revoked=True)

            attempt.observed_live = True
            # Guarded update: only one transaction can move this row off NULL
            result = await self.session.execute(
                update(RefreshToken)
                .where(
                    RefreshToken.id == row.id,
                    RefreshToken.revoked_at.is_(None),
                    RefreshToken.expires_at > now,
                )
                .values(revoked_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.session.rollback()
                logger.info(f"Refresh token for user {row.user_id} lost a rotation race")
                return ReuseDetected(user_id=row.user_id, family_revoked=False)

            issued = await self.issue(row.user_id)
        except DBAPIError as e:
            if not _is_conflict(e):
                raise
            await self.session.rollback()
            raise TransientStoreConflict(str(e.orig)) from e

        return Rotated(user_id=row.user_id, token=issued)

    async def revoke_all_for_user(self, user_id: int, *, now: datetime | None = None) -> int:
        """Revoke every unrevoked refresh token of ``user_id``. Idempotent."""
        result = await self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=now or datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def purge_disqualified(self, *, now: datetime | None = None) -> int:
        """Delete rows that can never authenticate again (expired or revoked)."""
        now = now or datetime.now(UTC)
        result = await self.session.execute(
            delete(RefreshToken)
            .where(or_(RefreshToken.expires_at <= now, RefreshToken.revoked_at.is_not(None)))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
