"""
Database connection and session management.

Provides the async SQLAlchemy engine, the session factory and table
bootstrap helpers. PostgreSQL runs through asyncpg, local development
and tests through aiosqlite.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from content_api.core.config import settings

logger = logging.getLogger(__name__)

_async_engine: AsyncEngine | None = None
_async_sessionmaker: async_sessionmaker | None = None
_telemetry_instrumented: bool = False


def _engine_kwargs(url: str) -> dict[str, object]:
    """Pool settings for the given URL. SQLite keeps SQLAlchemy's defaults."""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 20,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_pre_ping": True,
        "connect_args": {
            "server_settings": {"timezone": "UTC"},
            "timeout": 30,
        },
    }


def create_fresh_async_engine(url: str | None = None) -> AsyncEngine:
    """Create an async engine without caching.

    Used by scripts and tests that need an engine bound to their own event loop.
    """
    url = url or settings.async_url
    if not url:
        raise RuntimeError("DATABASE_URL is required")
    return create_async_engine(url, echo=settings.database_echo, **_engine_kwargs(url))


def get_async_engine() -> AsyncEngine:
    """
    Create and configure the async SQLAlchemy engine.

    Returns:
        Configured async SQLAlchemy engine
    """
    global _async_engine

    if _async_engine is not None:
        return _async_engine

    _async_engine = create_fresh_async_engine()
    _instrument_sqlalchemy(_async_engine)
    return _async_engine


def _instrument_sqlalchemy(engine: AsyncEngine) -> None:
    """
    Instrument the engine with OpenTelemetry (only once per process).

    Args:
        engine: Async SQLAlchemy engine instance
    """
    global _telemetry_instrumented

    if _telemetry_instrumented or not settings.otel_enabled:
        return

    try:
        from content_api.core.telemetry import instrument_sqlalchemy

        instrument_sqlalchemy(engine.sync_engine)
        _telemetry_instrumented = True
    except Exception as e:
        logger.warning(f"Failed to instrument SQLAlchemy with OpenTelemetry: {e}")


def get_async_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """
    Get or create the async sessionmaker.

    Returns:
        Async sessionmaker factory
    """
    global _async_sessionmaker
    if _async_sessionmaker is not None:
        return _async_sessionmaker

    _async_sessionmaker = async_sessionmaker(
        bind=get_async_engine(),
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )
    return _async_sessionmaker


async def reset_async_engine() -> None:
    """Reset the async database engine and sessionmaker.

    Useful for tests to ensure fresh connections on new event loops.
    """
    global _async_engine, _async_sessionmaker

    if _async_engine is not None:
        await _async_engine.dispose()
    _async_engine = None
    _async_sessionmaker = None


async def create_tables(engine: AsyncEngine | None = None) -> None:
    """Create every table in the ORM metadata that does not exist yet."""
    from content_api.db.models import Base

    engine = engine or get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created", extra={"tables": sorted(Base.metadata.tables)})


async def drop_tables(engine: AsyncEngine | None = None) -> None:
    """Drop every table in the ORM metadata."""
    from content_api.db.models import Base

    engine = engine or get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("Database tables dropped")


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Transactional session for scripts.

    Usage:
        async with session_scope() as db:
            await db.execute(select(Post))

    Commits on success and rolls back if the block raises.
    """
    session_maker = get_async_sessionmaker()
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
