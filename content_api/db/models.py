"""
SQLAlchemy 2.x ORM models for the Content API.

Categories form a tree: `parent_id` holds the adjacency and
`category_closure` holds one row per (ancestor, descendant) pair,
including a depth-0 self row for every category.
Models use the Mapped[] type annotation syntax and mapped_column.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates

from content_api.db.validators import validate_uuid_string


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""


post_categories = Table(
    "post_categories",
    Base.metadata,
    Column(
        "post_id",
        Uuid(as_uuid=False),
        ForeignKey("posts.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "category_id",
        Uuid(as_uuid=False),
        ForeignKey("categories.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Category(Base):
    """
    A node of the category tree.

    Soft-deleted categories keep their closure rows so that a restore
    puts them back where they were.
    """

    __tablename__ = "categories"
    __table_args__ = (
        CheckConstraint("custom_order >= 0", name="chk_categories_custom_order"),
        Index("ix_categories_parent_id", "parent_id"),
    )

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(25), nullable=False)
    custom_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    parent_id: Mapped[str | None] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    parent: Mapped[Category | None] = relationship(
        "Category", remote_side=[id], lazy="joined", innerjoin=False, join_depth=1
    )

    @validates("id", "parent_id")
    def _validate_ids(self, key: str, value: str | uuid.UUID | None) -> str | None:
        if value is None:
            return None
        return validate_uuid_string(key, value)

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name={self.name}, parent_id={self.parent_id})>"


class CategoryClosure(Base):
    """Closure-table row linking an ancestor category to a descendant."""

    __tablename__ = "category_closure"
    __table_args__ = (
        CheckConstraint("depth >= 0", name="chk_category_closure_depth"),
        Index("ix_category_closure_descendant_id", "descendant_id"),
    )

    ancestor_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("categories.id", ondelete="CASCADE"),
        primary_key=True,
    )
    descendant_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("categories.id", ondelete="CASCADE"),
        primary_key=True,
    )
    depth: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<CategoryClosure(ancestor_id={self.ancestor_id}, "
            f"descendant_id={self.descendant_id}, depth={self.depth})>"
        )


class Post(Base):
    """
    A blog post.

    `published_at` doubles as the publication flag: NULL means draft.
    `deleted_at` doubles as the trash flag: non-NULL means trashed.
    """

    __tablename__ = "posts"
    __table_args__ = (
        CheckConstraint("custom_order >= 0", name="chk_posts_custom_order"),
        Index("ix_posts_created_at_id", "created_at", "id"),
    )

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str | None] = mapped_column(String(500), nullable=True)
    keywords: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    custom_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    categories: Mapped[list[Category]] = relationship(
        "Category",
        secondary=post_categories,
        lazy="selectin",
        order_by=Category.custom_order,
    )

    @validates("id")
    def _validate_id(self, key: str, value: str | uuid.UUID) -> str:
        return validate_uuid_string(key, value)

    def __repr__(self) -> str:
        return f"<Post(id={self.id}, title={self.title!r}, deleted_at={self.deleted_at})>"
