"""Async engine, session factory and declarative base."""

from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

import config

engine = create_async_engine(
    config.settings.DATABASE_URL,
    echo=config.settings.SQL_ECHO,
    pool_pre_ping=True,
)

# Objects stay usable after commit: services return them to the API layer.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncSession:
    """
    Yield one session per request, closed afterwards.

    Services commit explicitly; anything left uncommitted is rolled back on close.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """
    Create missing tables on startup.

    Alembic owns schema changes; this only bootstraps an empty database.
    """
    import models  # noqa: F401  (registers every table on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the connection pool."""
    await engine.dispose()


def utcnow() -> datetime:
    """Timezone-aware current UTC time, used as column default."""
    return datetime.now(UTC)
