"""
Pydantic schemas for Category API operations.

These schemas define the request/response structure for the category
tree endpoints.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from content_api.domain.enums import SelectTrashMode

# ============================================================================
# Request Schemas
# ============================================================================


class CategoryCreate(BaseModel):
    """Schema for creating a category."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(
        ...,
        min_length=1,
        max_length=25,
        description="Category name, unique among its siblings",
        examples=["Python"],
    )
    parent: uuid.UUID | None = Field(
        default=None,
        description="Parent category ID; omit or null for a root category",
    )
    custom_order: int = Field(
        default=0,
        ge=0,
        description="Sort position among siblings (ascending)",
    )


class CategoryUpdate(BaseModel):
    """
    Schema for updating a category.

    All fields except `id` are optional. Sending `parent: null` explicitly
    moves the category (with its subtree) to the root.
    """

    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID = Field(..., description="Category to update")
    name: str | None = Field(default=None, min_length=1, max_length=25)
    parent: uuid.UUID | None = Field(default=None, description="New parent category ID")
    custom_order: int | None = Field(default=None, ge=0)


class CategoryQuery(BaseModel):
    """Options for the flattened category list."""

    trashed: SelectTrashMode = SelectTrashMode.NONE
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)


# ============================================================================
# Response Schemas
# ============================================================================


class CategorySummary(BaseModel):
    """Compact category representation embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    custom_order: int
    parent_id: str | None = None


class CategoryDetail(CategorySummary):
    """Schema for a single category."""

    parent: CategorySummary | None = None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None


class CategoryTree(CategorySummary):
    """A category with its nested children."""

    deleted_at: datetime | None = None
    children: list[CategoryTree] = Field(default_factory=list)


class CategoryFlat(CategorySummary):
    """A category from a flattened tree, with its depth (roots are 0)."""

    deleted_at: datetime | None = None
    depth: int = 0
