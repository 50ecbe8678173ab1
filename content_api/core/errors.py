"""
Domain-specific exceptions for the Content API.

These exceptions represent business rule violations and are mapped
to HTTP status codes in the API layer.
"""

from typing import Any


class ContentApiError(Exception):
    """Base exception for all content domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ContentApiError):
    """
    Raised when input passes schema validation but breaks a domain rule.

    Examples:
    - Malformed pagination cursor
    - Moving a category under one of its own descendants

    HTTP Status: 400 Bad Request
    """

    pass


class NotFoundError(ContentApiError):
    """
    Raised when a requested resource does not exist.

    Examples:
    - Post ID not found (or already in the trash)
    - Parent category not found
    - Category filter refers to an unknown category

    HTTP Status: 404 Not Found
    """

    pass


class ConflictError(ContentApiError):
    """
    Raised when an operation conflicts with current state.

    Examples:
    - Two sibling categories with the same name

    HTTP Status: 409 Conflict
    """

    pass


# HTTP Status Code Mapping
ERROR_STATUS_MAP = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
}


def get_status_code(error: Exception) -> int:
    """
    Get the HTTP status code for a given exception.

    Args:
        error: The exception instance

    Returns:
        HTTP status code (defaults to 500 for unknown errors)
    """
    return ERROR_STATUS_MAP.get(type(error), 500)
