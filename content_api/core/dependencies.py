"""
FastAPI dependency injection utilities.

Provides reusable dependencies for database sessions.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from content_api.core.db import get_async_sessionmaker


async def get_async_db_session() -> AsyncGenerator[AsyncSession]:
    """
    Async database session dependency for FastAPI endpoints.

    Routes commit explicitly after a successful mutation; anything left
    uncommitted is rolled back when the session closes.

    Usage:
        @router.get("/posts")
        async def list_posts(db: AsyncDbSession):
            result = await db.execute(select(Post))
            return result.scalars().all()

    Yields:
        Async SQLAlchemy database session
    """
    session_maker = get_async_sessionmaker()
    async with session_maker() as session:
        yield session


# Type alias for async database session dependency
AsyncDbSession = Annotated[AsyncSession, Depends(get_async_db_session)]
