"""
Repository layer for Post data access.

Categories are loaded with each post (selectin), so returned posts can be
serialized after the session is closed.
"""

import logging
from collections.abc import Sequence

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from content_api.core.errors import NotFoundError
from content_api.db.models import Post
from content_api.domain.enums import SelectTrashMode
from content_api.repos.common import apply_trash_mode

logger = logging.getLogger(__name__)


def build_base_query(trash_mode: SelectTrashMode = SelectTrashMode.NONE) -> Select:
    """Select posts filtered by trash mode."""
    return apply_trash_mode(select(Post), Post, trash_mode)


async def get_post(
    db: AsyncSession,
    post_id: str,
    trash_mode: SelectTrashMode = SelectTrashMode.NONE,
) -> Post:
    """
    Retrieve a single post.

    Args:
        db: Database session
        post_id: Post UUID
        trash_mode: Which rows are visible

    Returns:
        Post model with its categories

    Raises:
        NotFoundError: If no visible post has this ID
    """
    stmt = build_base_query(trash_mode).where(Post.id == str(post_id))
    result = await db.execute(stmt.execution_options(populate_existing=True))
    post = result.scalar_one_or_none()

    if post is None:
        logger.warning(f"Post not found: {post_id}")
        raise NotFoundError(
            f"The post {post_id} not exists!",
            details={"post_id": str(post_id)},
        )

    return post


async def find_posts_by_ids(
    db: AsyncSession,
    ids: Sequence[str],
    trash_mode: SelectTrashMode = SelectTrashMode.ALL,
) -> list[Post]:
    """Posts whose ID is in `ids`; unknown IDs are skipped."""
    if not ids:
        return []
    stmt = build_base_query(trash_mode).where(Post.id.in_([str(i) for i in ids]))
    result = await db.execute(stmt.order_by(Post.created_at.desc(), Post.id.desc()))
    return list(result.scalars().all())


async def remove_post(db: AsyncSession, post: Post) -> None:
    """Permanently delete a post; the ORM removes its category links on flush."""
    await db.delete(post)
    logger.debug(f"Deleted post {post.id}")
