"""Pytest configuration and fixtures for roomkey tests.

Every test gets its own SQLite database file (aiosqlite, NullPool), so
concurrent sessions in one test use separate connections the same way
separate requests do in production.
"""

import os
from collections.abc import AsyncGenerator
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Set test environment variables before importing roomkey modules
TEST_SIGNING_KEY = "test-signing-key-with-more-than-32-bytes!"
os.environ["JWT_SIGNING_KEY"] = TEST_SIGNING_KEY
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_ACCESS_TOKEN_MINUTES"] = "15"
os.environ["JWT_REFRESH_TOKEN_DAYS"] = "30"
os.environ["TOKEN_CLEANUP_ENABLED"] = "false"
os.environ["TENANT_BASE_DOMAIN"] = ""

# Test user credentials
TEST_PASSWORD = "Secret123!"

from roomkey.core.database import Base  # noqa: E402
from roomkey.models import (  # noqa: E402
    Organization,
    OrganizationMember,
    OrganizationMemberRole,
    OrganizationMemberStatus,
    User,
    UserRole,
)
from roomkey.services.access_tokens import AccessTokenIssuer  # noqa: E402
from roomkey.services.passwords import hash_password  # noqa: E402

# Hash the shared test password once
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


# --- Singleton Reset Fixture ---


@pytest.fixture(autouse=True)
def reset_singletons():
    """Give each test a fresh issuer and cleanup service."""
    from roomkey.services.token_cleanup import TokenCleanupService

    AccessTokenIssuer._instance = None
    TokenCleanupService._instance = None
    TokenCleanupService._task = None
    yield
    AccessTokenIssuer._instance = None
    TokenCleanupService._instance = None
    TokenCleanupService._task = None


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Create a file-backed SQLite engine with all tables."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'roomkey.db'}",
        poolclass=NullPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def issuer() -> AccessTokenIssuer:
    return AccessTokenIssuer(
        TEST_SIGNING_KEY,
        issuer="roomkey",
        audience="roomkey",
        ttl_minutes=15,
    )


@pytest_asyncio.fixture(scope="function")
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client bound to the per-test database."""
    from roomkey.core.database import get_db
    from roomkey.main import create_app

    app = create_app(session_factory=session_factory)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# --- Test Factories ---


@pytest.fixture
def user_factory(db_session):
    """Factory for creating test User objects."""

    async def _create_user(
        username: str = "alice",
        email: str | None = None,
        password: str = TEST_PASSWORD,
        role: UserRole = UserRole.USER,
        is_platform_admin: bool = False,
    ) -> User:
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            password_hash=_TEST_PASSWORD_HASH if password == TEST_PASSWORD else hash_password(password),
            role=role,
            is_platform_admin=is_platform_admin,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _create_user


@pytest.fixture
def organization_factory(db_session):
    """Factory for creating test Organization objects."""

    async def _create_organization(
        slug: str = "acme",
        name: str | None = None,
        is_active: bool = True,
    ) -> Organization:
        org = Organization(name=name or slug.title(), slug=slug, is_active=is_active)
        db_session.add(org)
        await db_session.commit()
        return org

    return _create_organization


@pytest.fixture
def membership_factory(db_session):
    """Factory for creating test OrganizationMember objects."""

    async def _create_membership(
        organization_id: UUID,
        user_id: int,
        role: OrganizationMemberRole = OrganizationMemberRole.USER,
        status: OrganizationMemberStatus = OrganizationMemberStatus.ACTIVE,
    ) -> OrganizationMember:
        member = OrganizationMember(
            organization_id=organization_id,
            user_id=user_id,
            role=role,
            status=status,
        )
        db_session.add(member)
        await db_session.commit()
        return member

    return _create_membership
