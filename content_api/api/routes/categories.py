"""
FastAPI routes for the category tree.

Categories are returned either as nested trees (`/categories/tree`) or as a
flattened, paginated list (`/categories`) in which each entry carries its depth.
"""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from content_api.api.schemas.category import (
    CategoryCreate,
    CategoryDetail,
    CategoryFlat,
    CategoryQuery,
    CategoryTree,
    CategoryUpdate,
)
from content_api.api.schemas.common import DeleteWithTrashRequest, RestoreRequest
from content_api.api.schemas.pagination import PaginatedResponse
from content_api.core.config import settings
from content_api.core.dependencies import AsyncDbSession
from content_api.domain.enums import SelectTrashMode
from content_api.services import category_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["Categories"])

TrashedParam = Annotated[
    SelectTrashMode, Query(description="Trash filter: none (live), only (trashed) or all")
]


@router.get(
    "/tree",
    response_model=list[CategoryTree],
    summary="Get the category trees",
    description="Every root category with its nested children, ordered by custom_order.",
)
async def get_category_trees(
    db: AsyncDbSession,
    trashed: TrashedParam = SelectTrashMode.NONE,
) -> list[CategoryTree]:
    """Return all category trees."""
    return await category_service.find_trees(db, trashed)


@router.get(
    "",
    response_model=PaginatedResponse[CategoryFlat],
    summary="List categories",
    description="""
    The category trees flattened in pre-order (each parent directly before
    its children), paginated. Each entry carries its `depth` (roots are 0).
    """,
)
async def list_categories(
    db: AsyncDbSession,
    trashed: TrashedParam = SelectTrashMode.NONE,
    page: Annotated[int, Query(ge=1, description="Page number")] = 1,
    limit: Annotated[
        int,
        Query(
            ge=1,
            le=settings.pagination_max_limit,
            description=f"Number of items per page (max {settings.pagination_max_limit})",
        ),
    ] = settings.pagination_default_limit,
) -> PaginatedResponse[CategoryFlat]:
    """List flattened categories."""
    items, meta = await category_service.paginate(
        db, CategoryQuery(trashed=trashed, page=page, limit=limit)
    )
    return PaginatedResponse[CategoryFlat](items=items, meta=meta)


@router.get(
    "/{category_id}",
    response_model=CategoryDetail,
    summary="Get a category",
    description="""
    Retrieve a live category with its parent.

    **Errors:**
    - 404 Not Found: If the category does not exist or is in the trash
    """,
)
async def get_category(
    category_id: Annotated[uuid.UUID, Path(description="Category ID")],
    db: AsyncDbSession,
) -> CategoryDetail:
    """Get a single category."""
    category = await category_service.detail(db, str(category_id))
    return CategoryDetail.model_validate(category)


@router.post(
    "",
    response_model=CategoryDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Create a category",
    description="""
    Create a root category, or a child of `parent`.

    **Errors:**
    - 404 Not Found: If the parent does not exist
    - 409 Conflict: If a sibling already has this name
    - 422 Unprocessable Entity: If the body is invalid
    """,
)
async def create_category(data: CategoryCreate, db: AsyncDbSession) -> CategoryDetail:
    """Create a new category."""
    category = await category_service.create(db, data)
    await db.commit()

    logger.info(f"Created category {category.id}", extra={"category_id": category.id})
    return CategoryDetail.model_validate(category)


@router.patch(
    "",
    response_model=CategoryDetail,
    summary="Update a category",
    description="""
    Partially update a category. A new `parent` moves the category with its
    whole subtree; `"parent": null` moves it to the root.

    **Errors:**
    - 400 Bad Request: If the new parent is the category or one of its descendants
    - 404 Not Found: If the category or the new parent does not exist
    - 409 Conflict: If a sibling at the target position has the same name
    """,
)
async def update_category(data: CategoryUpdate, db: AsyncDbSession) -> CategoryDetail:
    """Update an existing category."""
    category = await category_service.update(db, data)
    await db.commit()
    return CategoryDetail.model_validate(category)


@router.patch(
    "/restore",
    response_model=list[CategoryDetail],
    summary="Restore categories from the trash",
    description="IDs that are not in the trash are ignored.",
)
async def restore_categories(
    data: RestoreRequest, db: AsyncDbSession
) -> list[CategoryDetail]:
    """Restore trashed categories."""
    categories = await category_service.restore(db, data.ids)
    await db.commit()
    return [CategoryDetail.model_validate(item) for item in categories]


@router.delete(
    "/{category_id}",
    response_model=CategoryDetail,
    summary="Delete a category",
    description="""
    Permanently delete a live category. Its children move up to its parent.

    **Errors:**
    - 404 Not Found: If the category does not exist or is in the trash
    """,
)
async def delete_category(
    category_id: Annotated[uuid.UUID, Path(description="Category ID")],
    db: AsyncDbSession,
) -> CategoryDetail:
    """Delete a single category."""
    category = await category_service.delete(db, str(category_id))
    await db.commit()
    return CategoryDetail.model_validate(category)


@router.delete(
    "",
    response_model=list[CategoryDetail],
    summary="Delete several categories",
    description="""
    Children of each deleted category move up to its parent. With
    `trash=true`, live categories move to the trash and categories already
    in the trash are deleted permanently. With `trash=false` (default), all
    are deleted permanently. Unknown IDs are ignored.
    """,
)
async def delete_categories(
    data: DeleteWithTrashRequest, db: AsyncDbSession
) -> list[CategoryDetail]:
    """Delete or trash several categories."""
    categories = await category_service.delete_multi(db, data.ids, trash=data.trash)
    await db.commit()
    return [CategoryDetail.model_validate(item) for item in categories]
