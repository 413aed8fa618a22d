"""Protocol the versioning engine expects from a tracked record.

The engine never owns records. It only reads their attributes and change
state, and tags reified instances with their source version.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar, Protocol

if TYPE_CHECKING:
    from strata.contracts.records import Version
    from strata.contracts.schema import EntitySchema


class TrackedEntity(Protocol):
    """What the builder, detector and reifier read from a record."""

    schema: ClassVar[EntitySchema]
    source_version: Version | None
    version_event: str | None

    @property
    def id(self) -> Any: ...

    def attributes(self) -> dict[str, Any]:
        """Current attribute values."""
        ...

    def attributes_before_change(self) -> dict[str, Any]:
        """Attribute values as they were before unsaved changes."""
        ...

    def changes(self) -> dict[str, tuple[Any, Any]]:
        """Map of changed attribute name to (previous, current)."""
        ...

    def changed(self) -> set[str]:
        """Names of changed attributes."""
        ...

    def is_persisted(self) -> bool: ...

    def is_destroyed(self) -> bool: ...

    def is_new_record(self) -> bool: ...
