"""
Pytest configuration and fixtures for testing.

Provides:
- Database fixtures (in-memory SQLite via aiosqlite, one database per test)
- A recording notification dispatcher and a controllable clock
- An ASGI test client wired to the per-test database
- Users, tokens and auth headers

Usage:
    pytest -v
"""

import os

# Must be set before any application module reads its settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_ENABLE_FILE_LOGGING"] = "false"
os.environ["API_ENVIRONMENT"] = "development"
os.environ.setdefault("SECURITY_SECRET_KEY", "test-secret-key-not-for-production-use-0123456789")
os.environ.setdefault("SECURITY_DEMO_PASSWORD", "demo-Pass-2024!")
os.environ.setdefault("SECURITY_ADMIN_REGISTRATION_KEY", "test-admin-key")
os.environ.setdefault("SECURITY_BCRYPT_ROUNDS", "4")

from contextlib import asynccontextmanager  # noqa: E402
from typing import AsyncGenerator  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import db.models  # noqa: E402,F401  (registers tables)
from app.factory import create_app  # noqa: E402
from core.config import Settings, get_settings  # noqa: E402
from core.database import get_session  # noqa: E402
from core.rate_limit import SubmissionRateLimiter, limiter  # noqa: E402
from core.security import Principal, create_access_token  # noqa: E402
from db.enums import UserRole  # noqa: E402
from tests.factories import (  # noqa: E402
    ADMIN_PASSWORD,
    USER_PASSWORD,
    FakeClock,
    RecordingDispatcher,
    UserFactory,
)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database for each test.

    StaticPool keeps the single connection alive so every session sees the
    same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def background_session_factory(session_factory):
    """Drop-in for ``core.database.get_background_session`` bound to the test database."""

    @asynccontextmanager
    async def factory():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return factory


# ============================================================================
# Application Fixtures
# ============================================================================

@pytest.fixture
def test_settings() -> Settings:
    return get_settings()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def submission_limiter(fake_clock) -> SubmissionRateLimiter:
    return SubmissionRateLimiter(max_requests=5, window_seconds=900, clock=fake_clock)


@pytest.fixture
def recording_dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture(autouse=True)
def reset_login_limiter():
    """slowapi keeps its counters in process memory; start each test clean."""
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def app(session_factory, recording_dispatcher, submission_limiter):
    application = create_app(
        dispatcher=recording_dispatcher,
        submission_limiter=submission_limiter,
    )

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_session] = override_get_session
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


# ============================================================================
# User Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def admin_user(db_session):
    user = UserFactory.create(
        email="admin@compass.io", password=ADMIN_PASSWORD, role=UserRole.ADMIN
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def regular_user(db_session):
    user = UserFactory.create(email="user@compass.io", password=USER_PASSWORD)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def admin_principal(admin_user) -> Principal:
    return Principal(user_id=str(admin_user.id), email=admin_user.email, role=UserRole.ADMIN)


@pytest.fixture
def user_principal(regular_user) -> Principal:
    return Principal(user_id=str(regular_user.id), email=regular_user.email, role=UserRole.USER)


@pytest.fixture
def admin_headers(admin_principal, test_settings):
    token = create_access_token(admin_principal, test_settings.security)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(user_principal, test_settings):
    token = create_access_token(user_principal, test_settings.security)
    return {"Authorization": f"Bearer {token}"}
