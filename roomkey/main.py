"""roomkey - FastAPI Application Factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roomkey.api import api_router
from roomkey.api.health import router as health_router
from roomkey.core import settings
from roomkey.core.lifespan import shutdown, startup
from roomkey.core.logging import get_logger
from roomkey.middleware import TenantResolutionMiddleware

# Import all models to ensure they're registered with Base for Alembic
from roomkey.models import (  # noqa: F401
    Organization,
    OrganizationMember,
    RefreshToken,
    RevokedToken,
    User,
)

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    await startup(logger)

    yield

    logger.info("Shutting down...")
    await shutdown(logger)


def create_app(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Credential and session service for multi-tenant room booking",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    # Tenant scope must be known before any auth route runs
    app.add_middleware(TenantResolutionMiddleware, session_factory=session_factory)

    app.include_router(health_router)  # Health at root level
    app.include_router(api_router)  # API at /api

    return app


# Application instance
app = create_app()
