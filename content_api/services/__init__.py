"""
Services package for the Content API.

Contains the business rules that sit between the routes and the
repositories: query composition, tree moves, trash and restore.
"""

from content_api.services import category_service, post_service

__all__ = ["category_service", "post_service"]
