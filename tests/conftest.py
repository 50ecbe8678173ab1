"""
Pytest configuration and shared fixtures.

Provides:
- Test environment variables (set before the app is imported)
- A fresh in-memory SQLite database per test (aiosqlite + StaticPool)
- Async sessions bound to that database
- An httpx AsyncClient over the ASGI app with the DB dependency overridden
- Helpers that create categories and posts directly in the database

Async Helper Functions:
- acreate_category(): Create a Category (with closure rows) through the service
- acreate_post(): Create a Post with explicit timestamps
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

# Set test environment variables before importing app
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["OTEL_ENABLED"] = "false"
os.environ["OBSERVABILITY_STRUCTURED_LOGS"] = "false"
os.environ.pop("HEALTH_TOKEN", None)
os.environ.pop("METRICS_TOKEN", None)

import httpx  # noqa: E402 (import after env setup)
import pytest  # noqa: E402 (import after env setup)
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from content_api.api.schemas.category import CategoryCreate  # noqa: E402
from content_api.core.dependencies import get_async_db_session  # noqa: E402
from content_api.db.models import Base, Category, Post  # noqa: E402
from content_api.main import create_app  # noqa: E402
from content_api.services import category_service  # noqa: E402

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Fresh in-memory database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
async def db(session_maker: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Async session with real commits against the per-test database."""
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[httpx.AsyncClient]:
    """HTTP client for the app; every request gets its own session."""
    app = create_app()

    async def override_get_async_db_session() -> AsyncGenerator[AsyncSession]:
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_db_session] = override_get_async_db_session

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================================
# Data Helpers
# ============================================================================


async def acreate_category(
    db: AsyncSession,
    name: str,
    parent: Category | None = None,
    custom_order: int = 0,
) -> Category:
    """Create a category through the service so its closure rows exist."""
    category = await category_service.create(
        db,
        CategoryCreate(
            name=name,
            parent=parent.id if parent is not None else None,
            custom_order=custom_order,
        ),
    )
    await db.commit()
    return category


async def acreate_post(
    db: AsyncSession,
    title: str,
    *,
    minutes: int = 0,
    categories: list[Category] | None = None,
    published_at: datetime | None = None,
    custom_order: int = 0,
    deleted: bool = False,
    body: str = "Body text",
) -> Post:
    """Create a post whose created_at is BASE_TIME plus `minutes`."""
    created_at = BASE_TIME + timedelta(minutes=minutes)
    post = Post(
        title=title,
        body=body,
        summary=f"Summary of {title}",
        keywords=["python"],
        published_at=published_at,
        custom_order=custom_order,
        created_at=created_at,
        updated_at=created_at,
        deleted_at=created_at if deleted else None,
    )
    post.categories = list(categories or [])
    db.add(post)
    await db.commit()
    return post
