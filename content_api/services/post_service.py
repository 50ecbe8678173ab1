"""
Post service.

Composes the post list query (trash mode, publication state, category
subtree, ordering) and implements create/update/delete/restore on top of
the post repository.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession

from content_api.api.schemas.pagination import (
    CursorDirection,
    KeysetPaginatedResponse,
    PaginationMeta,
)
from content_api.api.schemas.post import PostCreate, PostListItem, PostQuery, PostUpdate
from content_api.core.errors import NotFoundError, ValidationError
from content_api.core.observability import db_metrics, metrics
from content_api.db.models import Category, Post
from content_api.domain.enums import PostOrderType, SelectTrashMode
from content_api.repos import category_repo, post_repo
from content_api.repos.common import utcnow
from content_api.repos.pagination import (
    apply_cursor_filter,
    decode_cursor,
    get_keyset_page_info,
    paginate as paginate_stmt,
)

logger = logging.getLogger(__name__)

QueryHook = Callable[[Select], Select | Awaitable[Select]]

# Columns that can not be cleared by an update
_REQUIRED_FIELDS = {"title", "body", "custom_order"}


async def _apply_hook(stmt: Select, callback: QueryHook | None) -> Select:
    if callback is None:
        return stmt
    result = callback(stmt)
    if inspect.isawaitable(result):
        result = await result
    return result


# ============================================================================
# Query Composition
# ============================================================================


def query_order_by(stmt: Select, order_by: PostOrderType | None) -> Select:
    """
    Order a post query.

    A named column sorts descending on that column; `custom` sorts on
    custom_order descending. Without an ordering, posts sort by creation,
    then update, then publication time, all descending.
    """
    if order_by == PostOrderType.CREATED:
        return stmt.order_by(Post.created_at.desc())
    if order_by == PostOrderType.UPDATED:
        return stmt.order_by(Post.updated_at.desc())
    if order_by == PostOrderType.PUBLISHED:
        return stmt.order_by(Post.published_at.desc())
    if order_by == PostOrderType.CUSTOM:
        return stmt.order_by(Post.custom_order.desc())
    return stmt.order_by(
        Post.created_at.desc(), Post.updated_at.desc(), Post.published_at.desc()
    )


async def query_by_category(db: AsyncSession, stmt: Select, category_id: str) -> Select:
    """Keep posts attached to the category or to any of its descendants."""
    category = await category_repo.get_category(db, category_id)
    descendants = await category_repo.find_descendants(db, category)
    ids = [item.id for item in descendants]
    return stmt.where(Post.categories.any(Category.id.in_(ids)))


async def build_list_query(
    db: AsyncSession,
    options: PostQuery,
    callback: QueryHook | None = None,
) -> Select:
    """
    Build the filtered, ordered post list query.

    Raises:
        NotFoundError: If `options.category` does not exist
    """
    stmt = post_repo.build_base_query(options.trashed)

    if options.is_published is True:
        stmt = stmt.where(Post.published_at.is_not(None))
    elif options.is_published is False:
        stmt = stmt.where(Post.published_at.is_(None))

    if options.category is not None:
        stmt = await query_by_category(db, stmt, str(options.category))

    stmt = query_order_by(stmt, options.order_by)
    return await _apply_hook(stmt, callback)


# ============================================================================
# Reads
# ============================================================================


async def paginate(
    db: AsyncSession,
    options: PostQuery,
    callback: QueryHook | None = None,
) -> tuple[list[Post], PaginationMeta]:
    """One offset page of the post list."""
    stmt = await build_list_query(db, options, callback)
    return await paginate_stmt(db, stmt, options.page, options.limit, operation="post_list")


async def paginate_cursor(
    db: AsyncSession,
    options: PostQuery,
    cursor: str | None,
    limit: int,
    direction: CursorDirection = CursorDirection.NEXT,
) -> KeysetPaginatedResponse[PostListItem]:
    """
    One keyset page of the post list, newest first.

    The ordering in `options` is ignored; pages always follow creation time.

    Raises:
        ValidationError: If the cursor can not be decoded
    """
    decoded = None
    if cursor:
        try:
            decoded = decode_cursor(cursor)
        except ValueError as e:
            raise ValidationError(str(e), details={"cursor": cursor}) from e

    stmt = await build_list_query(db, options)
    stmt = apply_cursor_filter(stmt, Post, decoded, direction, limit)

    with db_metrics.track("post_feed"):
        result = await db.execute(stmt)
        rows = list(result.scalars().all())

    items, has_next, has_prev, next_cursor, prev_cursor = get_keyset_page_info(
        rows, limit, direction, is_first_page=decoded is None
    )

    return KeysetPaginatedResponse[PostListItem](
        items=[PostListItem.model_validate(item) for item in items],
        next_cursor=next_cursor,
        prev_cursor=prev_cursor,
        has_next=has_next,
        has_prev=has_prev,
        limit=limit,
    )


async def detail(
    db: AsyncSession,
    post_id: str,
    callback: QueryHook | None = None,
) -> Post:
    """
    A single live post with its categories.

    Raises:
        NotFoundError: If the post does not exist or is in the trash
    """
    if callback is None:
        return await post_repo.get_post(db, post_id)

    stmt = post_repo.build_base_query().where(Post.id == str(post_id))
    stmt = await _apply_hook(stmt, callback)
    result = await db.execute(stmt.execution_options(populate_existing=True))
    post = result.scalar_one_or_none()
    if post is None:
        raise NotFoundError(f"The post {post_id} not exists!", details={"post_id": str(post_id)})
    return post


# ============================================================================
# Mutations
# ============================================================================


async def _resolve_categories(db: AsyncSession, ids: Sequence[object]) -> list[Category]:
    wanted = list(dict.fromkeys(str(i) for i in ids))
    categories = await category_repo.find_by_ids(db, wanted, SelectTrashMode.NONE)
    found = {item.id for item in categories}
    missing = [i for i in wanted if i not in found]
    if missing:
        raise NotFoundError(
            f"Categories not found: {', '.join(missing)}",
            details={"categories": missing},
        )
    return categories


async def create(db: AsyncSession, data: PostCreate) -> Post:
    """
    Persist a new post.

    Raises:
        NotFoundError: If a category ID does not exist
    """
    fields = data.model_dump(exclude={"categories"})
    post = Post(**fields)
    post.categories = await _resolve_categories(db, data.categories or [])

    db.add(post)
    await db.flush()

    logger.info(
        "Created post",
        extra={"post_id": post.id, "categories": [c.id for c in post.categories]},
    )
    metrics.record_mutation("post", "create")
    return await detail(db, post.id)


async def update(db: AsyncSession, data: PostUpdate) -> Post:
    """
    Partially update a live post.

    Only fields present in the request are written; `categories`
    replaces the whole set.

    Raises:
        NotFoundError: If the post or a category does not exist
    """
    post = await post_repo.get_post(db, str(data.id))
    fields = data.model_dump(exclude_unset=True, exclude={"id", "categories"})

    for key, value in fields.items():
        if value is None and key in _REQUIRED_FIELDS:
            continue
        setattr(post, key, value)

    if "categories" in data.model_fields_set:
        post.categories = await _resolve_categories(db, data.categories or [])

    await db.flush()

    logger.info("Updated post", extra={"post_id": post.id, "fields": sorted(data.model_fields_set)})
    metrics.record_mutation("post", "update")
    return await detail(db, post.id)


async def delete(db: AsyncSession, post_id: str) -> Post:
    """
    Permanently delete a live post.

    Raises:
        NotFoundError: If the post does not exist or is in the trash
    """
    post = await post_repo.get_post(db, post_id)
    await post_repo.remove_post(db, post)
    await db.flush()

    logger.info("Deleted post", extra={"post_id": post.id})
    metrics.record_mutation("post", "delete")
    return post


async def delete_multi(db: AsyncSession, ids: Sequence[object], trash: bool = False) -> list[Post]:
    """
    Delete several posts.

    With `trash`, live posts go to the trash and posts already in the trash
    are deleted permanently. Without it, every post is deleted permanently.
    Unknown IDs are ignored.
    """
    posts = await post_repo.find_posts_by_ids(db, [str(i) for i in ids], SelectTrashMode.ALL)

    trashed = 0
    for post in posts:
        if trash and post.deleted_at is None:
            post.deleted_at = utcnow()
            trashed += 1
        else:
            await post_repo.remove_post(db, post)

    await db.flush()

    removed = len(posts) - trashed
    logger.info(
        "Deleted posts",
        extra={"post_ids": [p.id for p in posts], "trashed": trashed, "removed": removed},
    )
    metrics.record_mutation("post", "trash", trashed)
    metrics.record_mutation("post", "delete", removed)
    return posts


async def restore(db: AsyncSession, ids: Sequence[object]) -> list[Post]:
    """
    Take posts out of the trash.

    IDs that are not in the trash are ignored. Returns the restored posts
    through the list query, or an empty list if nothing was restored.
    """
    posts = await post_repo.find_posts_by_ids(db, [str(i) for i in ids], SelectTrashMode.ONLY)
    if not posts:
        return []

    for post in posts:
        post.deleted_at = None
    await db.flush()

    restored_ids = [post.id for post in posts]
    logger.info("Restored posts", extra={"post_ids": restored_ids})
    metrics.record_mutation("post", "restore", len(restored_ids))

    stmt = await build_list_query(
        db, PostQuery(), callback=lambda stmt: stmt.where(Post.id.in_(restored_ids))
    )
    result = await db.execute(stmt.execution_options(populate_existing=True))
    return list(result.scalars().all())
