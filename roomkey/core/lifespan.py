"""Startup and shutdown sequence for the application."""

import asyncio
import logging

from roomkey.core import settings, setup_logging
from roomkey.core.logging import get_logger
from roomkey.services.access_tokens import AccessTokenIssuer
from roomkey.services.token_cleanup import TokenCleanupService

_logger = get_logger("lifespan")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        _logger.error(f"Background task {task.get_name()} failed: {exc}")


async def startup(logger: logging.Logger) -> None:
    """Configure logging, validate token configuration and start the sweeper.

    Raises ``ConfigurationError`` before any request is served when the
    signing key or token lifetime is unusable.
    """
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )

    issuer = AccessTokenIssuer.get_instance()
    logger.info(f"Access tokens: {issuer!r}")

    cleanup_task = await TokenCleanupService.get_instance().start()
    if cleanup_task is not None:
        cleanup_task.add_done_callback(task_done_callback)


async def shutdown(logger: logging.Logger) -> None:
    """Stop background services."""
    await TokenCleanupService.get_instance().stop()
    logger.info("Background services stopped")
