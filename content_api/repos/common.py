"""
Common repository functions shared across multiple repos.

All functions are async - use AsyncSession from SQLAlchemy.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Select

from content_api.domain.enums import SelectTrashMode

__all__ = ["apply_trash_mode", "utcnow"]


def utcnow() -> datetime:
    """Timestamp used for soft deletes."""
    return datetime.now(UTC)


def apply_trash_mode(stmt: Select, model: Any, trash_mode: SelectTrashMode) -> Select:
    """Restrict a select on a soft-deletable model to the requested rows.

    Args:
        stmt: Select statement over `model`
        model: ORM class with a `deleted_at` column
        trash_mode: NONE (live rows), ONLY (trashed rows) or ALL

    Returns:
        The filtered statement
    """
    if trash_mode == SelectTrashMode.ONLY:
        return stmt.where(model.deleted_at.is_not(None))
    if trash_mode == SelectTrashMode.ALL:
        return stmt
    return stmt.where(model.deleted_at.is_(None))
