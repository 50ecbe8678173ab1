"""
Pydantic schemas for API request/response validation.

This package contains schema definitions for posts, categories and
pagination used in API endpoints.
"""

# Re-export schemas for convenient imports.
from .category import CategoryCreate as CategoryCreate
from .category import CategoryDetail as CategoryDetail
from .category import CategoryFlat as CategoryFlat
from .category import CategoryQuery as CategoryQuery
from .category import CategorySummary as CategorySummary
from .category import CategoryTree as CategoryTree
from .category import CategoryUpdate as CategoryUpdate
from .common import DeleteWithTrashRequest as DeleteWithTrashRequest
from .common import RestoreRequest as RestoreRequest
from .pagination import CursorDirection as CursorDirection
from .pagination import KeysetPaginatedResponse as KeysetPaginatedResponse
from .pagination import PaginatedResponse as PaginatedResponse
from .pagination import PaginationMeta as PaginationMeta
from .post import PostCreate as PostCreate
from .post import PostDetail as PostDetail
from .post import PostListItem as PostListItem
from .post import PostQuery as PostQuery
from .post import PostUpdate as PostUpdate
