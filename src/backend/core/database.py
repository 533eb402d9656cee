"""
Database configuration.
Implements the async engine, session factory, request-scoped sessions and the
liveness probe used to report store outages as 503 instead of generic errors.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict

from sqlalchemy import text
from sqlalchemy.exc import PendingRollbackError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from .config import DatabaseSettings, settings

logger = logging.getLogger(__name__)


def engine_options(config: DatabaseSettings) -> Dict[str, Any]:
    """Engine keyword arguments for the configured backend."""
    options: Dict[str, Any] = {"echo": config.echo, "future": True}
    if not config.is_sqlite:
        options.update(
            pool_pre_ping=True,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_timeout=config.pool_timeout,
            pool_recycle=config.pool_recycle,
        )
    return options


# Create async engine with pool settings
engine: AsyncEngine = create_async_engine(
    settings.database.url, **engine_options(settings.database)
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,  # Prevent additional queries after commit
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.
    Commits on success, rolls back on any error.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            if session.in_transaction():
                try:
                    await session.commit()
                except PendingRollbackError:
                    await session.rollback()
                    raise
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_background_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an isolated session for work that outlives the request.

    Example:
        async with get_background_session() as db:
            config = await settings_crud.get_system_settings(db)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping_database(session: AsyncSession) -> bool:
    """
    Lightweight liveness probe.

    Returns:
        True if ``SELECT 1`` succeeds, False on any database error
    """
    try:
        await session.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database liveness probe failed: {e}")
        return False


async def init_db(bind: AsyncEngine = engine) -> None:
    """
    Create tables that do not exist yet.
    Should be called on application startup.
    """
    import db.models  # noqa: F401  (registers the tables on SQLModel.metadata)

    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def close_db(bind: AsyncEngine = engine) -> None:
    """
    Close database connections.
    Should be called on application shutdown.
    """
    await bind.dispose()
