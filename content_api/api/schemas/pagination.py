"""Offset and keyset/cursor-based pagination schemas."""

from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class CursorDirection(str, Enum):
    """Direction for cursor-based pagination."""

    NEXT = "next"
    PREV = "prev"


class PaginationMeta(BaseModel):
    """Totals describing one offset page."""

    total_items: int = Field(..., ge=0, description="Rows matching the query")
    item_count: int = Field(..., ge=0, description="Rows on this page")
    per_page: int = Field(..., ge=1, description="Requested page size")
    total_pages: int = Field(..., ge=0, description="Pages available at this page size")
    current_page: int = Field(..., ge=1, description="Requested page number")


class PaginatedResponse(BaseModel, Generic[T]):
    """Response model for offset-paginated data."""

    items: list[T]
    meta: PaginationMeta


class KeysetPaginatedResponse(BaseModel, Generic[T]):
    """Response model for keyset-paginated data."""

    items: list[T]
    next_cursor: str | None = None
    prev_cursor: str | None = None
    has_next: bool
    has_prev: bool
    limit: int
