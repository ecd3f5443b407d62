"""Identifier helpers."""
from typing import Optional
from uuid import UUID


def parse_uuid(value) -> Optional[UUID]:
    """
    Coerce a UUID or its string form.

    Returns:
        The UUID, or None when ``value`` is empty or malformed
    """
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None
