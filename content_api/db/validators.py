"""Reusable SQLAlchemy validators for the Content API."""

import uuid


def validate_uuid_string(_key: str, value: uuid.UUID | str) -> str:
    """Convert UUID to its canonical string form and validate format.

    Used with SQLAlchemy's @validates decorator so that primary and foreign
    keys are always stored as canonical, lower-case UUID strings.

    Args:
        _key: The field name being validated (unused, required by SQLAlchemy)
        value: UUID object or string representation

    Returns:
        Canonical string representation of the UUID

    Raises:
        ValueError: If the value is not a valid UUID format
    """
    if isinstance(value, uuid.UUID):
        return str(value)

    if not isinstance(value, str):
        raise ValueError(f"Expected UUID or str, got {type(value).__name__}")

    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise ValueError(f"Invalid UUID format: {value}")
