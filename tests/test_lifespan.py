"""Tests for application startup and shutdown."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from roomkey.core.lifespan import shutdown, startup, task_done_callback
from roomkey.services.access_tokens import AccessTokenIssuer
from roomkey.services.errors import ConfigurationError
from roomkey.services.token_cleanup import TokenCleanupService

logger = logging.getLogger("roomkey.tests")


@pytest.mark.asyncio
async def test_startup_creates_issuer_and_skips_disabled_sweeper():
    with patch("roomkey.core.lifespan.setup_logging"):
        await startup(logger)

    assert AccessTokenIssuer._instance is not None
    assert TokenCleanupService._task is None
    await shutdown(logger)


@pytest.mark.asyncio
async def test_startup_fails_fast_on_weak_signing_key():
    with patch("roomkey.core.lifespan.setup_logging"):
        with patch("roomkey.services.access_tokens.settings") as mock_settings:
            mock_settings.jwt_signing_key = "short"
            mock_settings.jwt_issuer = "roomkey"
            mock_settings.jwt_audience = "roomkey"
            mock_settings.jwt_access_token_minutes = 15
            mock_settings.jwt_algorithm = "HS256"
            with pytest.raises(ConfigurationError):
                await startup(logger)


@pytest.mark.asyncio
async def test_startup_attaches_callback_to_sweeper():
    task = MagicMock()
    service = MagicMock()
    service.start = AsyncMock(return_value=task)

    with patch("roomkey.core.lifespan.setup_logging"):
        with patch.object(TokenCleanupService, "get_instance", return_value=service):
            await startup(logger)

    task.add_done_callback.assert_called_once_with(task_done_callback)


def test_task_done_callback_logs_failures():
    task = MagicMock()
    task.cancelled.return_value = False
    task.exception.return_value = RuntimeError("boom")
    task.get_name.return_value = "token_cleanup"

    with patch("roomkey.core.lifespan._logger") as mock_logger:
        task_done_callback(task)
        mock_logger.error.assert_called_once()
        assert "boom" in str(mock_logger.error.call_args)


def test_task_done_callback_ignores_cancelled_tasks():
    task = MagicMock()
    task.cancelled.return_value = True

    with patch("roomkey.core.lifespan._logger") as mock_logger:
        task_done_callback(task)
        mock_logger.error.assert_not_called()
