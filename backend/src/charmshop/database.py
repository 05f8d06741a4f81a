"""Async SQLAlchemy engine, session factory and request-scoped sessions."""
from typing import Any, AsyncGenerator, Dict

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from charmshop.config import settings


def engine_options(database_url: str) -> Dict[str, Any]:
    """
    Engine keyword arguments for a database URL.

    Pool sizing applies to server databases only; a full analytics refresh
    opens one extra session per metric on top of the request session.
    """
    options: Dict[str, Any] = {"echo": settings.debug}
    if make_url(database_url).get_backend_name() != "sqlite":
        options.update(pool_pre_ping=True, pool_size=20, max_overflow=10)
    return options


engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))

# Objects stay readable after commit; analytics payloads are returned after storing them
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Commits when the request handler returns and rolls back if it raised.

    Yields:
        AsyncSession: Database session for the request lifecycle
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# Declarative base for all models
Base = declarative_base()
