"""Common helper functions for versioning modules."""

from typing import Any


def item_id_key(value: Any) -> str | None:
    """Normalize a primary key or foreign key value to its stored text form."""
    if value is None:
        return None
    return str(value)
