"""Shared utilities for offset and keyset/cursor-based pagination."""

import base64
import binascii
import json
import math
import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from content_api.api.schemas.pagination import CursorDirection, PaginationMeta
from content_api.core.observability import db_metrics

T = TypeVar("T")

# ============================================================================
# Offset Pagination
# ============================================================================


def build_meta(total_items: int, item_count: int, page: int, limit: int) -> PaginationMeta:
    """Page metadata for `total_items` rows split into pages of `limit`."""
    return PaginationMeta(
        total_items=total_items,
        item_count=item_count,
        per_page=limit,
        total_pages=math.ceil(total_items / limit),
        current_page=page,
    )


async def paginate(
    db: AsyncSession,
    stmt: Select,
    page: int,
    limit: int,
    operation: str = "paginate",
) -> tuple[list[Any], PaginationMeta]:
    """Run `stmt` as one offset page.

    Args:
        db: Async database session
        stmt: Fully filtered and ordered select over one ORM entity
        page: 1-based page number
        limit: Page size
        operation: Label for the query metrics

    Returns:
        Tuple of (items on the page, page metadata)
    """
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())

    with db_metrics.track(operation):
        total_items = (await db.execute(count_stmt)).scalar_one()
        result = await db.execute(stmt.limit(limit).offset((page - 1) * limit))
        items = list(result.scalars().unique().all())

    return items, build_meta(total_items, len(items), page, limit)


def paginate_list(items: Sequence[T], page: int, limit: int) -> tuple[list[T], PaginationMeta]:
    """Offset page over an in-memory list (used for flattened trees)."""
    start = (page - 1) * limit
    page_items = list(items[start : start + limit])
    return page_items, build_meta(len(items), len(page_items), page, limit)


# ============================================================================
# Keyset Pagination
# ============================================================================


def encode_cursor(id: str, created_at: datetime) -> str:
    """Encode a cursor from ID and timestamp.

    Args:
        id: Entity ID (UUID)
        created_at: Creation timestamp

    Returns:
        URL-safe base64-encoded cursor string
    """
    payload = json.dumps({"id": str(id), "created_at": created_at.isoformat()})
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> tuple[str, datetime]:
    """Decode a cursor into ID and timestamp.

    Raises:
        ValueError: If cursor is invalid or malformed
    """
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8"))
        row_id = str(uuid.UUID(str(payload["id"])))
        return row_id, datetime.fromisoformat(payload["created_at"])
    except (KeyError, TypeError, UnicodeError, binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid cursor: {e}") from e


def apply_cursor_filter(
    stmt: Select,
    model: Any,
    cursor: tuple[str, datetime] | None,
    direction: CursorDirection,
    limit: int,
) -> Select:
    """Apply keyset ordering, the cursor filter and the limit to a query.

    Pages run newest first on (created_at, id). NEXT pages are fetched
    descending; PREV pages are fetched ascending and must be reversed by
    `get_keyset_page_info`. One extra row is fetched to detect more pages.

    Args:
        stmt: Filtered select over `model` (any existing ORDER BY is replaced)
        model: ORM class with `created_at` and `id` columns
        cursor: Tuple of (id, created_at), None for the first page
        direction: NEXT or PREV
        limit: Page size
    """
    order_col = model.created_at
    id_col = model.id

    if cursor is not None:
        cursor_id, cursor_created_at = cursor
        if direction == CursorDirection.NEXT:
            stmt = stmt.where(
                or_(
                    order_col < cursor_created_at,
                    and_(order_col == cursor_created_at, id_col < cursor_id),
                )
            )
        else:
            stmt = stmt.where(
                or_(
                    order_col > cursor_created_at,
                    and_(order_col == cursor_created_at, id_col > cursor_id),
                )
            )

    if direction == CursorDirection.NEXT:
        stmt = stmt.order_by(None).order_by(order_col.desc(), id_col.desc())
    else:
        stmt = stmt.order_by(None).order_by(order_col.asc(), id_col.asc())

    return stmt.limit(limit + 1)


def get_keyset_page_info(
    items: list[Any],
    limit: int,
    direction: CursorDirection,
    is_first_page: bool = False,
) -> tuple[list[Any], bool, bool, str | None, str | None]:
    """Trim the fetched rows and compute the cursors around them.

    Args:
        items: Rows fetched by a query built with `apply_cursor_filter`
        limit: Page size
        direction: Pagination direction used for the fetch
        is_first_page: True if no cursor was provided

    Returns:
        Tuple of (items newest first, has_next, has_prev, next_cursor, prev_cursor)
    """
    has_more = len(items) > limit
    items = items[:limit]

    if direction == CursorDirection.PREV:
        items = list(reversed(items))

    if not items:
        return items, False, False, None, None

    first_cursor = encode_cursor(items[0].id, items[0].created_at)
    last_cursor = encode_cursor(items[-1].id, items[-1].created_at)

    if direction == CursorDirection.NEXT:
        has_next = has_more
        has_prev = not is_first_page
    else:
        # Coming back from a later page, so a later page always exists
        has_next = True
        has_prev = has_more

    return (
        items,
        has_next,
        has_prev,
        last_cursor if has_next else None,
        first_cursor if has_prev else None,
    )
