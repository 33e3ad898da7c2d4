"""Token cleanup service - purges expired and revoked token records."""

import asyncio
import threading
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roomkey.core import async_session_maker, settings
from roomkey.core.config import MIN_CLEANUP_INTERVAL_MINUTES
from roomkey.core.logging import get_logger
from roomkey.services.refresh_tokens import RefreshTokenStore
from roomkey.services.revocation import RevocationRegistry

logger = get_logger("token_cleanup")


@dataclass(frozen=True)
class CleanupResult:
    refresh_tokens_deleted: int = 0
    revoked_tokens_deleted: int = 0

    @property
    def total(self) -> int:
        return self.refresh_tokens_deleted + self.revoked_tokens_deleted


class TokenCleanupService:
    """Background service that bounds the growth of the token tables.

    Deletes refresh tokens that are expired or revoked and denylist
    entries whose access tokens have expired. Rows that can still
    authenticate are never touched.
    """

    _instance: Optional["TokenCleanupService"] = None
    _instance_lock: threading.Lock = threading.Lock()
    _task: asyncio.Task | None = None

    def __init__(
        self,
        interval_minutes: int | None = None,
        enabled: bool | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        self._running = False
        self._enabled = settings.token_cleanup_enabled if enabled is None else enabled
        self._interval_minutes = MIN_CLEANUP_INTERVAL_MINUTES
        self.interval_minutes = (
            settings.token_cleanup_interval_minutes if interval_minutes is None else interval_minutes
        )
        self._session_factory = session_factory

    @classmethod
    def get_instance(cls) -> "TokenCleanupService":
        """Get singleton instance of token cleanup service (thread-safe)."""
        if cls._instance is None:
            with cls._instance_lock:
                # Double-check locking pattern
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def interval_minutes(self) -> int:
        """Get current cleanup interval in minutes."""
        return self._interval_minutes

    @interval_minutes.setter
    def interval_minutes(self, value: int) -> None:
        """Set cleanup interval (never below the floor)."""
        self._interval_minutes = max(MIN_CLEANUP_INTERVAL_MINUTES, value)

    @property
    def interval_seconds(self) -> int:
        return self._interval_minutes * 60

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory or async_session_maker

    async def start(self) -> asyncio.Task | None:
        """Start the background cleanup task."""
        if not self._enabled:
            logger.info("Token cleanup is disabled")
            return None
        if self._running:
            logger.warning("Token cleanup service is already running")
            return TokenCleanupService._task

        self._running = True
        TokenCleanupService._task = asyncio.create_task(
            self._cleanup_loop(), name="token_cleanup"
        )
        logger.info(f"Token cleanup service started (interval: {self._interval_minutes} min)")
        return TokenCleanupService._task

    async def stop(self) -> None:
        """Stop the background cleanup task."""
        self._running = False
        if TokenCleanupService._task:
            TokenCleanupService._task.cancel()
            try:
                await TokenCleanupService._task
            except asyncio.CancelledError:
                pass
            TokenCleanupService._task = None
        logger.info("Token cleanup service stopped")

    async def _cleanup_loop(self) -> None:
        """Run a sweep now, then once per interval until stopped."""
        while self._running:
            try:
                await self._run_cleanup()
            except Exception as e:
                logger.exception(f"Error in token cleanup: {e}")

            await asyncio.sleep(self.interval_seconds)

    async def _run_cleanup(self) -> CleanupResult:
        """Execute a single cleanup run."""
        async with self._sessions()() as db:
            try:
                result = await self._sweep(db)
            except Exception:
                await db.rollback()
                raise  # Logged once by _cleanup_loop or the caller

        message = (
            f"Token cleanup: deleted {result.refresh_tokens_deleted} refresh tokens "
            f"and {result.revoked_tokens_deleted} revoked access tokens"
        )
        if result.total > 0:
            logger.info(message)
        else:
            logger.debug(message)
        return result

    async def run_cleanup_now(self) -> CleanupResult:
        """Manually trigger a cleanup run.

        Returns:
            Counts of deleted refresh tokens and denylist entries
        """
        return await self._run_cleanup()

    @staticmethod
    async def _sweep(db: AsyncSession) -> CleanupResult:
        refresh_deleted = await RefreshTokenStore(db).purge_disqualified()
        revoked_deleted = await RevocationRegistry(db).purge_expired()
        await db.commit()
        return CleanupResult(
            refresh_tokens_deleted=refresh_deleted,
            revoked_tokens_deleted=revoked_deleted,
        )
