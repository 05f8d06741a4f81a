"""Pytest configuration and fixtures for async testing."""
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

import charmshop.models  # noqa: F401  registers every table on Base.metadata
from charmshop.cache import AnalyticsCache
from charmshop.database import Base
from charmshop.main import app

# Fixed starting point for the fake clock (2025-01-01T00:00:00Z in epoch ms)
CLOCK_START_MS = 1_735_689_600_000.0

TEST_ADMIN = {
    "sub": "admin-1",
    "email": "admin@charmshop.test",
    "role": "admin",
}


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: float = CLOCK_START_MS):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    File-backed SQLite database per test.

    A file (not :memory:) lets concurrent refresh calculations open their own
    connections against the same data.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'charmshop_test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database session for each test.

    Yields:
        AsyncSession: Database session for testing
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="function")
def analytics_cache(clock: FakeClock) -> AnalyticsCache:
    """Analytics cache driven by the fake clock so cooldowns can be stepped through."""
    return AnalyticsCache(clock=clock)


async def _mock_current_user() -> dict:
    """Mock admin for tests."""
    return dict(TEST_ADMIN)


@pytest_asyncio.fixture(scope="function")
async def async_client(
    session_factory: async_sessionmaker,
    analytics_cache: AnalyticsCache,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client against the app with database, auth and cache overrides.

    Each request gets its own session, as in production.
    """
    from charmshop.api.deps import get_analytics_cache, get_current_user, get_db, get_session_factory

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = _mock_current_user
    app.dependency_overrides[get_analytics_cache] = lambda: analytics_cache
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    # Clean up
    app.dependency_overrides.clear()
