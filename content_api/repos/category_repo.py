"""
Repository layer for the category tree.

The tree is stored twice: `Category.parent_id` holds the direct parent and
`category_closure` holds every (ancestor, descendant, depth) pair, including
a depth-0 row linking each category to itself. Descendant and ancestor
queries go through the closure table; every function that changes a parent
keeps both in step.
"""

import logging
from collections.abc import Sequence

from sqlalchemy import Select, Uuid, delete, func, insert, literal, select, true
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, joinedload

from content_api.api.schemas.category import CategoryFlat, CategoryTree
from content_api.core.errors import NotFoundError, ValidationError
from content_api.core.observability import db_metrics
from content_api.db.models import Category, CategoryClosure, post_categories
from content_api.domain.enums import SelectTrashMode
from content_api.repos.common import apply_trash_mode

logger = logging.getLogger(__name__)

closure_table = CategoryClosure.__table__


# ============================================================================
# Lookups
# ============================================================================


def build_base_query(trash_mode: SelectTrashMode = SelectTrashMode.NONE) -> Select:
    """Select categories (parent eagerly joined) filtered by trash mode."""
    stmt = select(Category).options(joinedload(Category.parent))
    return apply_trash_mode(stmt, Category, trash_mode)


async def get_category(
    db: AsyncSession,
    category_id: str,
    trash_mode: SelectTrashMode = SelectTrashMode.NONE,
) -> Category:
    """
    Retrieve a single category.

    Args:
        db: Database session
        category_id: Category UUID
        trash_mode: Which rows are visible

    Returns:
        Category model

    Raises:
        NotFoundError: If no visible category has this ID
    """
    stmt = build_base_query(trash_mode).where(Category.id == str(category_id))
    result = await db.execute(stmt.execution_options(populate_existing=True))
    category = result.scalar_one_or_none()

    if category is None:
        logger.warning(f"Category not found: {category_id}")
        raise NotFoundError(
            f"The category {category_id} not exists!",
            details={"category_id": str(category_id)},
        )

    return category


async def find_by_ids(
    db: AsyncSession,
    ids: Sequence[str],
    trash_mode: SelectTrashMode = SelectTrashMode.ALL,
) -> list[Category]:
    """Categories whose ID is in `ids`; unknown IDs are skipped."""
    if not ids:
        return []
    stmt = build_base_query(trash_mode).where(Category.id.in_([str(i) for i in ids]))
    result = await db.execute(stmt.order_by(Category.custom_order))
    return list(result.scalars().all())


async def find_children(
    db: AsyncSession,
    category_id: str,
    trash_mode: SelectTrashMode = SelectTrashMode.ALL,
) -> list[Category]:
    """Direct children of a category."""
    stmt = build_base_query(trash_mode).where(Category.parent_id == category_id)
    result = await db.execute(stmt.order_by(Category.custom_order))
    return list(result.scalars().all())


async def find_sibling_by_name(
    db: AsyncSession,
    name: str,
    parent_id: str | None,
    exclude_id: str | None = None,
) -> Category | None:
    """
    Find a category named `name` under `parent_id` (None for roots).

    Trashed categories are included so that restoring one can never
    produce duplicate sibling names.
    """
    stmt = select(Category).where(Category.name == name)
    if parent_id is None:
        stmt = stmt.where(Category.parent_id.is_(None))
    else:
        stmt = stmt.where(Category.parent_id == parent_id)
    if exclude_id is not None:
        stmt = stmt.where(Category.id != exclude_id)

    result = await db.execute(stmt.limit(1))
    return result.scalars().first()


# ============================================================================
# Tree Queries
# ============================================================================


async def find_roots(
    db: AsyncSession, trash_mode: SelectTrashMode = SelectTrashMode.NONE
) -> list[Category]:
    """Categories without a parent, ordered by custom_order."""
    stmt = build_base_query(trash_mode).where(Category.parent_id.is_(None))
    with db_metrics.track("category_roots"):
        result = await db.execute(stmt.order_by(Category.custom_order, Category.created_at))
    return list(result.scalars().all())


def _descendants_stmt(category_id: str, trash_mode: SelectTrashMode) -> Select:
    stmt = (
        select(Category)
        .join(CategoryClosure, CategoryClosure.descendant_id == Category.id)
        .where(CategoryClosure.ancestor_id == category_id)
    )
    return apply_trash_mode(stmt, Category, trash_mode)


def _ancestors_stmt(category_id: str, trash_mode: SelectTrashMode) -> Select:
    stmt = (
        select(Category)
        .join(CategoryClosure, CategoryClosure.ancestor_id == Category.id)
        .where(CategoryClosure.descendant_id == category_id)
    )
    return apply_trash_mode(stmt, Category, trash_mode)


async def find_descendants(
    db: AsyncSession,
    category: Category,
    trash_mode: SelectTrashMode = SelectTrashMode.NONE,
) -> list[Category]:
    """The category and everything below it, ordered by custom_order."""
    stmt = _descendants_stmt(category.id, trash_mode).order_by(
        Category.custom_order, CategoryClosure.depth
    )
    with db_metrics.track("category_descendants"):
        result = await db.execute(stmt)
    return list(result.scalars().all())


async def find_ancestors(
    db: AsyncSession,
    category: Category,
    trash_mode: SelectTrashMode = SelectTrashMode.NONE,
) -> list[Category]:
    """The category and everything above it, ordered by custom_order."""
    stmt = _ancestors_stmt(category.id, trash_mode).order_by(
        Category.custom_order, CategoryClosure.depth.desc()
    )
    with db_metrics.track("category_ancestors"):
        result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_descendants(
    db: AsyncSession,
    category: Category,
    trash_mode: SelectTrashMode = SelectTrashMode.NONE,
) -> int:
    """Number of rows `find_descendants` returns (the category included)."""
    stmt = select(func.count()).select_from(
        _descendants_stmt(category.id, trash_mode).subquery()
    )
    return (await db.execute(stmt)).scalar_one()


async def count_ancestors(
    db: AsyncSession,
    category: Category,
    trash_mode: SelectTrashMode = SelectTrashMode.NONE,
) -> int:
    """Number of rows `find_ancestors` returns (the category included)."""
    stmt = select(func.count()).select_from(_ancestors_stmt(category.id, trash_mode).subquery())
    return (await db.execute(stmt)).scalar_one()


async def find_descendants_tree(
    db: AsyncSession,
    category: Category,
    trash_mode: SelectTrashMode = SelectTrashMode.NONE,
) -> CategoryTree:
    """
    Nested tree rooted at `category`.

    Children keep the custom_order of the descendant query. Descendants
    hidden by `trash_mode` drop out together with anything below them.
    """
    descendants = await find_descendants(db, category, trash_mode)
    nodes = {item.id: CategoryTree.model_validate(item) for item in descendants}

    for item in descendants:
        if item.id == category.id:
            continue
        parent_node = nodes.get(item.parent_id)
        if parent_node is not None:
            parent_node.children.append(nodes[item.id])

    return nodes.get(category.id) or CategoryTree.model_validate(category)


async def find_trees(
    db: AsyncSession, trash_mode: SelectTrashMode = SelectTrashMode.NONE
) -> list[CategoryTree]:
    """Every root with its nested descendants."""
    roots = await find_roots(db, trash_mode)
    return [await find_descendants_tree(db, root, trash_mode) for root in roots]


def to_flat_trees(
    trees: Sequence[CategoryTree],
    depth: int = 0,
    parent: CategoryTree | None = None,
) -> list[CategoryFlat]:
    """
    Flatten nested trees in pre-order.

    Each node comes right before its children and carries its depth
    (roots are 0).
    """
    data: list[CategoryFlat] = []
    for item in trees:
        fields = item.model_dump(exclude={"children"})
        if parent is not None:
            fields["parent_id"] = parent.id
        data.append(CategoryFlat(**fields, depth=depth))
        data.extend(to_flat_trees(item.children, depth + 1, item))
    return data


# ============================================================================
# Closure Maintenance
# ============================================================================


async def insert_closure(db: AsyncSession, category: Category) -> None:
    """
    Write the closure rows of a newly flushed category.

    One depth-0 self row plus one row per ancestor of its parent.
    """
    await db.execute(
        insert(closure_table).values(
            ancestor_id=category.id, descendant_id=category.id, depth=0
        )
    )

    if category.parent_id is not None:
        ancestors = select(
            CategoryClosure.ancestor_id,
            literal(category.id, type_=Uuid(as_uuid=False)),
            CategoryClosure.depth + 1,
        ).where(CategoryClosure.descendant_id == category.parent_id)
        await db.execute(
            insert(closure_table).from_select(
                ["ancestor_id", "descendant_id", "depth"], ancestors
            )
        )

    logger.debug(f"Inserted closure rows for category {category.id}")


async def move_subtree(db: AsyncSession, category: Category, new_parent_id: str | None) -> None:
    """
    Re-parent a category together with its whole subtree.

    Rows linking the subtree to its old ancestors are removed and rows
    linking it to the new parent's ancestors are added. Depths inside the
    subtree stay as they are.

    Raises:
        ValidationError: If the new parent is the category or one of its descendants
    """
    rows = await db.execute(
        select(CategoryClosure.descendant_id).where(CategoryClosure.ancestor_id == category.id)
    )
    subtree_ids = list(rows.scalars().all())

    if new_parent_id is not None and new_parent_id in subtree_ids:
        raise ValidationError(
            "Can not move a category under itself or one of its descendants",
            details={"category_id": category.id, "parent": new_parent_id},
        )

    with db_metrics.track("category_move"):
        await db.execute(
            delete(closure_table).where(
                closure_table.c.descendant_id.in_(subtree_ids),
                closure_table.c.ancestor_id.not_in(subtree_ids),
            )
        )

        if new_parent_id is not None:
            above = aliased(CategoryClosure)
            below = aliased(CategoryClosure)
            links = (
                select(
                    above.ancestor_id,
                    below.descendant_id,
                    above.depth + below.depth + 1,
                )
                .select_from(above)
                .join(below, true())
                .where(
                    above.descendant_id == new_parent_id,
                    below.ancestor_id == category.id,
                )
            )
            await db.execute(
                insert(closure_table).from_select(["ancestor_id", "descendant_id", "depth"], links)
            )

    category.parent_id = new_parent_id
    logger.info(
        "Moved category subtree",
        extra={
            "category_id": category.id,
            "new_parent_id": new_parent_id,
            "subtree_size": len(subtree_ids),
        },
    )


async def promote_children(db: AsyncSession, category: Category) -> list[Category]:
    """Move every direct child of `category` up to its parent."""
    children = await find_children(db, category.id)
    for child in children:
        await move_subtree(db, child, category.parent_id)
    await db.flush()
    return children


async def delete_closure(db: AsyncSession, category_id: str) -> None:
    """Remove every closure row that has the category on either side."""
    await db.execute(
        delete(closure_table).where(
            (closure_table.c.ancestor_id == category_id)
            | (closure_table.c.descendant_id == category_id)
        )
    )


async def remove_category(db: AsyncSession, category: Category) -> None:
    """
    Permanently delete a category that no longer has children.

    Its closure rows and post links are removed explicitly because SQLite
    does not enforce the ON DELETE CASCADE clauses.
    """
    await delete_closure(db, category.id)
    await db.execute(delete(post_categories).where(post_categories.c.category_id == category.id))
    await db.delete(category)
