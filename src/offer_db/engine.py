"""Async SQLAlchemy engine, session factory and a transactional scope helper.

The engine is created lazily on first call and shared by the whole process
(API workers and CLIs alike).  Call ``dispose_engine()`` during graceful
shutdown.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from offer_db.config import get_async_url, load_pool_settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Return (and lazily create) the singleton async engine."""
    global _engine
    if _engine is None:
        pool = load_pool_settings()
        _engine = create_async_engine(
            get_async_url(),
            echo=pool.echo,
            pool_size=pool.pool_size,
            max_overflow=pool.max_overflow,
            pool_pre_ping=True,
        )
        logger.info(
            "Database engine created (pool_size=%d, max_overflow=%d)",
            pool.pool_size, pool.max_overflow,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return (and lazily create) the async session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Yield a session that commits on success and rolls back on error.

    For CLIs and background jobs; API requests use the FastAPI
    ``get_db`` dependency instead.
    """
    async with get_session_factory()() as db:
        try:
            yield db
            await db.commit()
        except Exception:
            await db.rollback()
            raise


async def dispose_engine() -> None:
    """Dispose the engine's connection pool (call on app shutdown)."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
