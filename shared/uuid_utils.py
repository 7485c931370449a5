# shared/uuid_utils.py
"""
UUIDv7 utilities.

UUIDv7 provides time-ordered unique identifiers, so primary keys of users,
collections, payments and spends sort in insertion order and keep B-tree
indexes compact.
"""
from typing import Union
from uuid import UUID

from uuid_extensions import uuid7


def generate_uuid7() -> UUID:
    """
    Generate a UUIDv7 (time-ordered UUID).

    Example:
        >>> user_id = generate_uuid7()
        >>> user_id.version
        7
    """
    return uuid7()


def is_valid_uuid(value: Union[str, UUID]) -> bool:
    """
    Check if a value is a valid UUID (any version).

    Example:
        >>> is_valid_uuid('018d3f5c-d5a0-7000-a000-123456789abc')
        True
        >>> is_valid_uuid('invalid-uuid')
        False
    """
    try:
        if isinstance(value, str):
            UUID(value)
        elif not isinstance(value, UUID):
            return False
        return True
    except (ValueError, TypeError):
        return False
