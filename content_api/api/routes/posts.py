"""
FastAPI routes for blog posts.

Lists support trash modes, publication and category filters, several
orderings, and both offset (`/posts`) and keyset (`/posts/feed`) pagination.
"""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from content_api.api.schemas.common import DeleteWithTrashRequest, RestoreRequest
from content_api.api.schemas.pagination import (
    CursorDirection,
    KeysetPaginatedResponse,
    PaginatedResponse,
)
from content_api.api.schemas.post import (
    PostCreate,
    PostDetail,
    PostListItem,
    PostQuery,
    PostUpdate,
)
from content_api.core.config import settings
from content_api.core.dependencies import AsyncDbSession
from content_api.domain.enums import PostOrderType, SelectTrashMode
from content_api.services import post_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["Posts"])

TrashedParam = Annotated[
    SelectTrashMode, Query(description="Trash filter: none (live), only (trashed) or all")
]
PublishedParam = Annotated[
    bool | None, Query(description="true: published posts only, false: drafts only")
]
CategoryParam = Annotated[
    uuid.UUID | None, Query(description="Only posts in this category or its descendants")
]
LimitParam = Annotated[
    int,
    Query(
        ge=1,
        le=settings.pagination_max_limit,
        description=f"Number of items per page (max {settings.pagination_max_limit})",
    ),
]


@router.get(
    "",
    response_model=PaginatedResponse[PostListItem],
    summary="List posts",
    description="""
    Offset-paginated post list.

    **Query Parameters:**
    - `trashed`: none (default), only, all
    - `is_published`: filter on publication state
    - `order_by`: created_at, updated_at, published_at, custom
      (default: created_at, then updated_at, then published_at, all descending)
    - `category`: category ID; posts in any of its descendants match too
    - `page`, `limit`: page number (1-based) and page size

    **Errors:**
    - 404 Not Found: If `category` does not exist
    """,
)
async def list_posts(
    db: AsyncDbSession,
    trashed: TrashedParam = SelectTrashMode.NONE,
    is_published: PublishedParam = None,
    order_by: Annotated[PostOrderType | None, Query(description="Sort order")] = None,
    page: Annotated[int, Query(ge=1, description="Page number")] = 1,
    limit: LimitParam = settings.pagination_default_limit,
    category: CategoryParam = None,
) -> PaginatedResponse[PostListItem]:
    """List posts with offset pagination."""
    options = PostQuery(
        trashed=trashed,
        is_published=is_published,
        order_by=order_by,
        page=page,
        limit=limit,
        category=category,
    )
    items, meta = await post_service.paginate(db, options)

    return PaginatedResponse[PostListItem](
        items=[PostListItem.model_validate(item) for item in items],
        meta=meta,
    )


@router.get(
    "/feed",
    response_model=KeysetPaginatedResponse[PostListItem],
    summary="List posts with cursor pagination",
    description="""
    Keyset-paginated post list, newest first.

    Accepts the same filters as `GET /posts` (ordering is always by creation
    time). Pass `next_cursor` or `prev_cursor` from a previous response as
    `cursor` together with the matching `direction`.

    **Errors:**
    - 400 Bad Request: If the cursor is malformed
    - 404 Not Found: If `category` does not exist
    """,
)
async def list_posts_feed(
    db: AsyncDbSession,
    trashed: TrashedParam = SelectTrashMode.NONE,
    is_published: PublishedParam = None,
    category: CategoryParam = None,
    cursor: Annotated[
        str | None, Query(description="Base64-encoded cursor from previous page")
    ] = None,
    limit: LimitParam = settings.pagination_default_limit,
    direction: Annotated[
        CursorDirection, Query(description="Pagination direction")
    ] = CursorDirection.NEXT,
) -> KeysetPaginatedResponse[PostListItem]:
    """List posts with keyset pagination."""
    options = PostQuery(trashed=trashed, is_published=is_published, category=category)
    return await post_service.paginate_cursor(db, options, cursor, limit, direction)


@router.get(
    "/{post_id}",
    response_model=PostDetail,
    summary="Get a post",
    description="""
    Retrieve a live post with its body and categories.

    **Errors:**
    - 404 Not Found: If the post does not exist or is in the trash
    """,
)
async def get_post(
    post_id: Annotated[uuid.UUID, Path(description="Post ID")],
    db: AsyncDbSession,
) -> PostDetail:
    """Get a single post."""
    post = await post_service.detail(db, str(post_id))
    return PostDetail.model_validate(post)


@router.post(
    "",
    response_model=PostDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Create a post",
    description="""
    Create a post, optionally attached to categories.

    **Errors:**
    - 404 Not Found: If a category ID does not exist
    - 422 Unprocessable Entity: If the body is invalid
    """,
)
async def create_post(data: PostCreate, db: AsyncDbSession) -> PostDetail:
    """Create a new post."""
    post = await post_service.create(db, data)
    await db.commit()

    logger.info(f"Created post {post.id}", extra={"post_id": post.id})
    return PostDetail.model_validate(post)


@router.patch(
    "",
    response_model=PostDetail,
    summary="Update a post",
    description="""
    Partially update a live post. Only fields present in the body are
    written; `categories` replaces the whole set.

    **Errors:**
    - 404 Not Found: If the post or a category does not exist
    - 422 Unprocessable Entity: If the body is invalid
    """,
)
async def update_post(data: PostUpdate, db: AsyncDbSession) -> PostDetail:
    """Update an existing post."""
    post = await post_service.update(db, data)
    await db.commit()
    return PostDetail.model_validate(post)


@router.patch(
    "/restore",
    response_model=list[PostListItem],
    summary="Restore posts from the trash",
    description="IDs that are not in the trash are ignored.",
)
async def restore_posts(data: RestoreRequest, db: AsyncDbSession) -> list[PostListItem]:
    """Restore trashed posts."""
    posts = await post_service.restore(db, data.ids)
    await db.commit()
    return [PostListItem.model_validate(post) for post in posts]


@router.delete(
    "/{post_id}",
    response_model=PostDetail,
    summary="Delete a post",
    description="""
    Permanently delete a live post and return it.

    **Errors:**
    - 404 Not Found: If the post does not exist or is in the trash
    """,
)
async def delete_post(
    post_id: Annotated[uuid.UUID, Path(description="Post ID")],
    db: AsyncDbSession,
) -> PostDetail:
    """Delete a single post."""
    post = await post_service.delete(db, str(post_id))
    await db.commit()
    return PostDetail.model_validate(post)


@router.delete(
    "",
    response_model=list[PostListItem],
    summary="Delete several posts",
    description="""
    With `trash=true`, live posts move to the trash and posts already in
    the trash are deleted permanently. With `trash=false` (default), every
    post is deleted permanently. Unknown IDs are ignored.
    """,
)
async def delete_posts(data: DeleteWithTrashRequest, db: AsyncDbSession) -> list[PostListItem]:
    """Delete or trash several posts."""
    posts = await post_service.delete_multi(db, data.ids, trash=data.trash)
    await db.commit()
    return [PostListItem.model_validate(post) for post in posts]
