"""Exceptions raised across the versioning boundaries.

Only configuration and caller misuse surface as exceptions. A version that
cannot be written is logged and dropped; the record write that triggered it
still completes.
"""

from __future__ import annotations

from typing import Any


class StrataError(Exception):
    """Base class for all Strata errors."""

    pass


class ConfigurationError(StrataError):
    """Raised when tracking configuration is contradictory or malformed.

    Surfaces at registration time. Setup cannot continue.
    """

    pass


class SchemaCompatibilityError(StrataError):
    """Raised when an existing database lacks tables or columns the settings need."""

    pass


class UnsupportedOperationError(StrataError):
    """Raised when an operation is not valid for the record in its current state.

    Example: touching an unsaved record with a version.
    """

    pass


class RecordingFailure(StrataError):
    """A version row could not be written.

    Never propagated out of the builder. It is created so the failure can be
    logged with the record identity and the collected errors.

    Attributes:
        item_type: Record type of the versioned record
        item_id: Primary key of the versioned record (None if unsaved)
        event: Event that was being recorded
        errors: Human-readable validation or storage errors
    """

    def __init__(self, item_type: str, item_id: Any, event: str, errors: list[str]) -> None:
        self.item_type = item_type
        self.item_id = item_id
        self.event = event
        self.errors = errors
        super().__init__(f"Unable to create version for {event} of {item_type}#{item_id}: {', '.join(errors)}")
