"""Database engine and session configuration module.

Sets up the async SQLAlchemy engine, session factory, and ORM base class.
PostgreSQL (asyncpg) in deployment; SQLite (aiosqlite) is accepted for
local runs and tests, in which case pool sizing arguments are skipped.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from bluegrid.config import settings


def _engine_kwargs(url: str) -> dict[str, Any]:
    """Pool arguments for the configured backend."""
    kwargs: dict[str, Any] = {"echo": settings.DEBUG}
    if "sqlite" not in url:
        # pool_pre_ping: validate pooled connections before use
        kwargs.update(
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
            # Disable prepared statement caches for transaction-mode poolers
            connect_args={"statement_cache_size": 0},
        )
    return kwargs


engine: AsyncEngine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

# expire_on_commit=False: attributes stay readable after commit without refresh
async_session: async_sessionmaker[AsyncSession] = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base class for all ORM models."""

    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async database session.

    The session is closed after the request completes. Uncommitted work
    is discarded, so a request that raises leaves the database untouched.

    Yields:
        AsyncSession: Async session instance
    """
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()
