"""
Database setup commands.

Tables are created from the ORM metadata against DATABASE_URL.

Usage:
    uv run db-init     # Create missing tables
    uv run db-reset    # Drop and recreate every table
"""

from __future__ import annotations

import asyncio
import logging
import sys

from content_api.core.config import settings
from content_api.core.db import create_tables, drop_tables, reset_async_engine

logger = logging.getLogger(__name__)


async def _init() -> None:
    try:
        await create_tables()
    finally:
        await reset_async_engine()


async def _reset() -> None:
    try:
        await drop_tables()
        await create_tables()
    finally:
        await reset_async_engine()


def _confirm_reset() -> None:
    if "--yes" in sys.argv[1:]:
        return
    answer = input(f"Drop and recreate all tables in {settings.app_env.value}? [y/N] ")
    if answer.strip().lower() != "y":
        raise SystemExit("Aborted")


def init() -> None:
    """Create any missing tables."""
    logging.basicConfig(level=settings.app_log_level)
    asyncio.run(_init())
    print("Tables created")


def reset() -> None:
    """Drop and recreate every table (asks for confirmation unless --yes)."""
    logging.basicConfig(level=settings.app_log_level)
    _confirm_reset()
    asyncio.run(_reset())
    print("Tables recreated")
