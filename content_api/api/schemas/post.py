"""
Pydantic schemas for Post API operations.

List responses omit the post body; detail responses include it.
"""

import uuid
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from content_api.api.schemas.category import CategorySummary
from content_api.domain.enums import PostOrderType, SelectTrashMode

Keyword = Annotated[str, StringConstraints(max_length=20)]


def _null_string_to_none(value: Any) -> Any:
    # Form-style clients send the literal string "null" to clear the date
    if value == "null":
        return None
    return value


# ============================================================================
# Request Schemas
# ============================================================================


class PostCreate(BaseModel):
    """Schema for creating a post."""

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "examples": [
                {
                    "title": "Closure tables in practice",
                    "body": "Storing every ancestor/descendant pair...",
                    "summary": "How the category tree is stored",
                    "keywords": ["sql", "trees"],
                    "categories": [],
                    "published_at": None,
                    "custom_order": 0,
                }
            ]
        },
    )

    title: str = Field(..., min_length=1, max_length=255, description="Post title")
    body: str = Field(..., min_length=1, description="Post content")
    summary: str | None = Field(default=None, max_length=500, description="Short description")
    published_at: datetime | None = Field(
        default=None, description="Publication time; null keeps the post unpublished"
    )
    keywords: list[Keyword] | None = Field(
        default=None, description="Keywords, at most 20 characters each"
    )
    categories: list[uuid.UUID] | None = Field(default=None, description="Category IDs")
    custom_order: int = Field(default=0, ge=0, description="Sort position for custom ordering")

    @field_validator("published_at", mode="before")
    @classmethod
    def normalize_published_at(cls, v: Any) -> Any:
        """Treat the string "null" as null."""
        return _null_string_to_none(v)


class PostUpdate(BaseModel):
    """
    Schema for updating a post.

    All fields except `id` are optional; only fields present in the request
    are written. `categories` replaces the whole set.
    """

    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID = Field(..., description="Post to update")
    title: str | None = Field(default=None, min_length=1, max_length=255)
    body: str | None = Field(default=None, min_length=1)
    summary: str | None = Field(default=None, max_length=500)
    published_at: datetime | None = None
    keywords: list[Keyword] | None = None
    categories: list[uuid.UUID] | None = None
    custom_order: int | None = Field(default=None, ge=0)

    @field_validator("published_at", mode="before")
    @classmethod
    def normalize_published_at(cls, v: Any) -> Any:
        """Treat the string "null" as null."""
        return _null_string_to_none(v)


class PostQuery(BaseModel):
    """Filters, ordering and paging for the post list."""

    trashed: SelectTrashMode = SelectTrashMode.NONE
    is_published: bool | None = None
    order_by: PostOrderType | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)
    category: uuid.UUID | None = None


# ============================================================================
# Response Schemas
# ============================================================================


class PostListItem(BaseModel):
    """Post as shown in lists (no body)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    summary: str | None = None
    keywords: list[str] | None = None
    published_at: datetime | None = None
    custom_order: int
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None
    categories: list[CategorySummary] = Field(default_factory=list)


class PostDetail(PostListItem):
    """Post with its body."""

    body: str
