"""Repository layer for version history rows.

Handles the seam between SQLAlchemy rows (strings, serialized blobs) and
domain objects (strict enum types, deserialized snapshots). The versions
table is our own data: a row that cannot be loaded is a bug, so this
layer crashes rather than guessing.
"""

from typing import Any

from sqlalchemy.engine import Row as SARow

from strata.contracts.enums import VersionEvent
from strata.contracts.records import Version, VersionAssociation
from strata.core.serializers import Serializer


class VersionRepository:
    """Repository for Version records."""

    def __init__(self, serializer: Serializer, *, json_columns: bool, metadata_columns: tuple[str, ...] = ()) -> None:
        self._serializer = serializer
        self._json_columns = json_columns
        self._metadata_columns = metadata_columns

    def encode(self, snapshot: dict[str, Any] | None) -> Any:
        """Prepare a snapshot or diff for the object/object_changes columns."""
        if snapshot is None or self._json_columns:
            return snapshot
        return self._serializer.dump(snapshot)

    def decode(self, stored: Any) -> Any:
        if stored is None or self._json_columns:
            return stored
        return self._serializer.load(stored)

    def load(self, row: SARow[Any]) -> Version:
        """Load Version from database row.

        Converts the event string to VersionEvent and deserializes
        snapshots. Optional columns absent from the table load as None.
        """
        mapping = row._mapping
        return Version(
            version_id=row.version_id,
            item_type=row.item_type,
            item_id=row.item_id,
            event=VersionEvent(row.event),  # Convert HERE
            created_at=row.created_at,
            whodunnit=row.whodunnit,
            object=self.decode(row.object),
            object_changes=self.decode(mapping.get("object_changes")),
            transaction_id=mapping.get("transaction_id"),
            metadata={name: mapping[name] for name in self._metadata_columns},
        )


class VersionAssociationRepository:
    """Repository for VersionAssociation records."""

    def load(self, row: SARow[Any]) -> VersionAssociation:
        """Load VersionAssociation from database row.

        No conversion needed - all fields are primitives.
        """
        return VersionAssociation(
            association_id=row.association_id,
            foreign_key_name=row.foreign_key_name,
            foreign_key_id=row.foreign_key_id,
            version_id=row.version_id,
            transaction_id=row.transaction_id,
        )
