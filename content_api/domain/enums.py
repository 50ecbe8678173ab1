"""
Domain enums shared by the query schemas, services and repositories.
"""

from enum import Enum


class SelectTrashMode(str, Enum):
    """Which rows a query sees with respect to soft deletion."""

    ALL = "all"  # Live and trashed rows
    ONLY = "only"  # Trashed rows only
    NONE = "none"  # Live rows only


class PostOrderType(str, Enum):
    """Sort orders accepted by the post list."""

    CREATED = "created_at"
    UPDATED = "updated_at"
    PUBLISHED = "published_at"
    CUSTOM = "custom"
