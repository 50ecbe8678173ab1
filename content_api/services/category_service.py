"""
Category service.

Business rules for the category tree: parents must exist, names are unique
among siblings, a category can not move below itself, and deleting a
category hands its children over to its own parent.
"""

import logging
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from content_api.api.schemas.category import (
    CategoryCreate,
    CategoryFlat,
    CategoryQuery,
    CategoryTree,
    CategoryUpdate,
)
from content_api.api.schemas.pagination import PaginationMeta
from content_api.core.errors import ConflictError
from content_api.core.observability import metrics
from content_api.db.models import Category
from content_api.domain.enums import SelectTrashMode
from content_api.repos import category_repo
from content_api.repos.common import utcnow
from content_api.repos.pagination import paginate_list

logger = logging.getLogger(__name__)


async def _ensure_unique_name(
    db: AsyncSession,
    name: str,
    parent_id: str | None,
    exclude_id: str | None = None,
) -> None:
    existing = await category_repo.find_sibling_by_name(db, name, parent_id, exclude_id)
    if existing is not None:
        raise ConflictError(
            f"The category name '{name}' already exists under the same parent",
            details={"name": name, "parent": parent_id, "existing_id": existing.id},
        )


# ============================================================================
# Reads
# ============================================================================


async def find_trees(
    db: AsyncSession, trash_mode: SelectTrashMode = SelectTrashMode.NONE
) -> list[CategoryTree]:
    """All root categories with their nested children."""
    return await category_repo.find_trees(db, trash_mode)


async def paginate(
    db: AsyncSession, options: CategoryQuery
) -> tuple[list[CategoryFlat], PaginationMeta]:
    """Flatten every tree in pre-order and return one page of it."""
    trees = await category_repo.find_trees(db, options.trashed)
    flat = category_repo.to_flat_trees(trees)
    return paginate_list(flat, options.page, options.limit)


async def detail(
    db: AsyncSession,
    category_id: str,
    trash_mode: SelectTrashMode = SelectTrashMode.NONE,
) -> Category:
    """A single category with its parent."""
    return await category_repo.get_category(db, category_id, trash_mode)


# ============================================================================
# Mutations
# ============================================================================


async def create(db: AsyncSession, data: CategoryCreate) -> Category:
    """
    Create a category under `data.parent`, or as a root.

    Raises:
        NotFoundError: If the parent does not exist or is in the trash
        ConflictError: If a sibling already has this name
    """
    parent_id = None
    if data.parent is not None:
        parent = await category_repo.get_category(db, str(data.parent))
        parent_id = parent.id

    await _ensure_unique_name(db, data.name, parent_id)

    category = Category(name=data.name, custom_order=data.custom_order, parent_id=parent_id)
    db.add(category)
    await db.flush()

    await category_repo.insert_closure(db, category)
    await db.flush()

    logger.info(
        "Created category",
        extra={"category_id": category.id, "name": category.name, "parent_id": parent_id},
    )
    metrics.record_mutation("category", "create")
    return await detail(db, category.id)


async def update(db: AsyncSession, data: CategoryUpdate) -> Category:
    """
    Partially update a category.

    Sending `parent` moves the category and its subtree; an explicit null
    parent makes it a root. Name uniqueness is checked against the siblings
    at the target position.

    Raises:
        NotFoundError: If the category or the new parent does not exist
        ValidationError: If the new parent is inside the category's subtree
        ConflictError: If a sibling at the target position has the same name
    """
    category = await category_repo.get_category(db, str(data.id))

    target_parent_id = category.parent_id
    if "parent" in data.model_fields_set:
        target_parent_id = None
        if data.parent is not None:
            parent = await category_repo.get_category(db, str(data.parent))
            target_parent_id = parent.id

    target_name = data.name if data.name is not None else category.name

    if target_parent_id != category.parent_id:
        await category_repo.move_subtree(db, category, target_parent_id)
        await db.flush()
        await _ensure_unique_name(db, target_name, target_parent_id, exclude_id=category.id)
    elif target_name != category.name:
        await _ensure_unique_name(db, target_name, target_parent_id, exclude_id=category.id)

    category.name = target_name
    if data.custom_order is not None:
        category.custom_order = data.custom_order

    await db.flush()

    logger.info(
        "Updated category",
        extra={"category_id": category.id, "fields": sorted(data.model_fields_set)},
    )
    metrics.record_mutation("category", "update")
    return await detail(db, category.id)


async def delete(db: AsyncSession, category_id: str) -> Category:
    """
    Permanently delete a live category.

    Its children move up to its parent before it is removed.

    Raises:
        NotFoundError: If the category does not exist or is in the trash
    """
    category = await category_repo.get_category(db, category_id)
    children = await category_repo.promote_children(db, category)
    await category_repo.remove_category(db, category)
    await db.flush()

    logger.info(
        "Deleted category",
        extra={"category_id": category.id, "promoted_children": [c.id for c in children]},
    )
    metrics.record_mutation("category", "delete")
    return category


async def delete_multi(
    db: AsyncSession, ids: Sequence[object], trash: bool = False
) -> list[Category]:
    """
    Delete several categories.

    Children of every deleted category first move up to its parent. With
    `trash`, live categories go to the trash and categories already in the
    trash are deleted permanently. Without it, all are deleted permanently.
    Unknown IDs are ignored.
    """
    categories = await category_repo.find_by_ids(
        db, [str(i) for i in ids], SelectTrashMode.ALL
    )

    for category in categories:
        await category_repo.promote_children(db, category)

    trashed = 0
    for category in categories:
        if trash and category.deleted_at is None:
            category.deleted_at = utcnow()
            trashed += 1
        else:
            await category_repo.remove_category(db, category)

    await db.flush()

    removed = len(categories) - trashed
    logger.info(
        "Deleted categories",
        extra={
            "category_ids": [c.id for c in categories],
            "trashed": trashed,
            "removed": removed,
        },
    )
    metrics.record_mutation("category", "trash", trashed)
    metrics.record_mutation("category", "delete", removed)
    return categories


async def restore(db: AsyncSession, ids: Sequence[object]) -> list[Category]:
    """
    Take categories out of the trash.

    A restored category comes back under the parent it had when it was
    trashed, or under that parent's replacement if the parent has since
    been deleted. IDs that are not in the trash are ignored.
    """
    categories = await category_repo.find_by_ids(
        db, [str(i) for i in ids], SelectTrashMode.ONLY
    )
    if not categories:
        return []

    for category in categories:
        category.deleted_at = None
    await db.flush()

    restored_ids = [c.id for c in categories]
    logger.info("Restored categories", extra={"category_ids": restored_ids})
    metrics.record_mutation("category", "restore", len(restored_ids))
    return await category_repo.find_by_ids(db, restored_ids, SelectTrashMode.NONE)
