"""Optional PostgreSQL backing.

DATABASE_URL (postgresql+asyncpg://...) switches the repositories from
memory to Postgres.  Unset, `engine` and `session_factory` stay None,
`database_configured()` is False, and the API runs on the in-memory
repos; the test suite runs that way.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from studytrack.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _build_engine(url: str) -> AsyncEngine:
    return create_async_engine(
        url,
        echo=SETTINGS.is_dev,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


engine: AsyncEngine | None = (
    _build_engine(SETTINGS.database_url) if SETTINGS.database_url else None
)
session_factory: async_sessionmaker[AsyncSession] | None = (
    async_sessionmaker(engine, expire_on_commit=False) if engine is not None else None
)


def database_configured() -> bool:
    return session_factory is not None


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """One unit of work: commit when the block exits cleanly, roll back otherwise."""
    if session_factory is None:
        raise RuntimeError("DATABASE_URL is not set; no database session available")
    async with session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        await session.commit()


async def ping_database() -> None:
    """Round-trip SELECT 1; raises whatever the driver raises."""
    if engine is None:
        raise RuntimeError("DATABASE_URL is not set")
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


@asynccontextmanager
async def lifespan_db() -> AsyncIterator[None]:
    if engine is None:
        logger.info("DATABASE_URL unset, progress and taxonomy kept in memory")
        yield
        return

    logger.info("Using database %s", engine.url.render_as_string(hide_password=True))
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database pool closed")
