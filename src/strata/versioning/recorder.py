# src/strata/versioning/recorder.py
"""VersionRecorder: storage operations on the version history tables.

This is the only code that writes version and association rows. It wraps
the low-level database operations; deciding *whether* and *what* to write
is the builder's job.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import and_, or_, select
from sqlalchemy.sql import Select

from strata.contracts.records import Version, VersionAssociation
from strata.core.serializers import Serializer
from strata.versioning._database_ops import DatabaseOps
from strata.versioning.database import VersionDB
from strata.versioning.repositories import VersionAssociationRepository, VersionRepository
from strata.versioning.schema import VERSIONS_TABLE


class VersionRecorder:
    """Reads and writes versions and version associations.

    Example:
        db = VersionDB.in_memory()
        recorder = VersionRecorder(db, JSONSerializer())

        version = recorder.insert_version({"item_type": "Widget", "item_id": "1", ...})
        recorder.versions_for("Widget", "1")
    """

    def __init__(self, db: VersionDB, serializer: Serializer) -> None:
        self._db = db
        self._ops = DatabaseOps(db)
        self._versions = db.versions_table
        self._associations = db.version_associations_table
        self._version_repo = VersionRepository(
            serializer,
            json_columns=db.snapshot_columns_are_json,
            metadata_columns=tuple(db.settings.metadata_columns),
        )
        self._association_repo = VersionAssociationRepository()

    @property
    def db(self) -> VersionDB:
        return self._db

    # === Schema introspection ===

    @property
    def tracks_object_changes(self) -> bool:
        return self._db.has_column(VERSIONS_TABLE, "object_changes")

    @property
    def tracks_transaction_id(self) -> bool:
        return self._db.has_column(VERSIONS_TABLE, "transaction_id")

    @property
    def column_names(self) -> frozenset[str]:
        return frozenset(c.name for c in self._versions.columns)

    # === Writes ===

    def insert_version(self, values: dict[str, Any]) -> Version:
        """Insert one version row.

        ``object`` and ``object_changes`` in ``values`` are plain mappings;
        they are serialized here when the columns are text.
        """
        row = dict(values)
        for column in ("object", "object_changes"):
            if column in row:
                row[column] = self._version_repo.encode(row[column])
        version_id = self._ops.execute_insert(self._versions.insert().values(**row))
        version = self.get_version(version_id)
        if version is None:
            raise RuntimeError(f"Version {version_id} not found after INSERT - transaction failure")
        return version

    def set_transaction_id(self, version_id: int, transaction_id: int) -> None:
        """One-time backfill of a version's correlation id."""
        self._ops.execute_update(
            self._versions.update().where(self._versions.c.version_id == version_id).values(transaction_id=transaction_id)
        )

    def insert_association(
        self,
        *,
        foreign_key_name: str,
        foreign_key_id: str | None,
        version_id: int | None = None,
        transaction_id: int | None = None,
    ) -> VersionAssociation:
        association_id = self._ops.execute_insert(
            self._associations.insert().values(
                version_id=version_id,
                transaction_id=transaction_id,
                foreign_key_name=foreign_key_name,
                foreign_key_id=foreign_key_id,
            )
        )
        return VersionAssociation(
            association_id=association_id,
            foreign_key_name=foreign_key_name,
            foreign_key_id=foreign_key_id,
            version_id=version_id,
            transaction_id=transaction_id,
        )

    # === Reads ===

    def _item_query(self, item_type: str, item_id: str) -> Select[Any]:
        return select(self._versions).where(
            self._versions.c.item_type == item_type,
            self._versions.c.item_id == item_id,
        )

    def _ascending(self, query: Select[Any]) -> Select[Any]:
        return query.order_by(self._versions.c.created_at, self._versions.c.version_id)

    def _descending(self, query: Select[Any]) -> Select[Any]:
        return query.order_by(self._versions.c.created_at.desc(), self._versions.c.version_id.desc())

    def _first(self, query: Select[Any]) -> Version | None:
        row = self._ops.execute_fetchone(query.limit(1))
        if row is None:
            return None
        return self._version_repo.load(row)

    def get_version(self, version_id: int) -> Version | None:
        return self._first(select(self._versions).where(self._versions.c.version_id == version_id))

    def versions_for(self, item_type: str, item_id: str) -> list[Version]:
        """All versions of one item, oldest first."""
        rows = self._ops.execute_fetchall(self._ascending(self._item_query(item_type, item_id)))
        return [self._version_repo.load(row) for row in rows]

    def last_version(self, item_type: str, item_id: str) -> Version | None:
        return self._first(self._descending(self._item_query(item_type, item_id)))

    def subsequent(self, item_type: str, item_id: str, timestamp: datetime) -> Version | None:
        """Earliest version of the item strictly after ``timestamp``."""
        query = self._item_query(item_type, item_id).where(self._versions.c.created_at > timestamp)
        return self._first(self._ascending(query))

    def between(self, item_type: str, item_id: str, start: datetime, end: datetime) -> list[Version]:
        """Versions of the item with ``start <= created_at <= end``, oldest first."""
        query = self._item_query(item_type, item_id).where(
            self._versions.c.created_at >= start,
            self._versions.c.created_at <= end,
        )
        rows = self._ops.execute_fetchall(self._ascending(query))
        return [self._version_repo.load(row) for row in rows]

    def previous(self, version: Version) -> Version | None:
        """The version immediately before ``version`` for the same item."""
        c = self._versions.c
        query = self._item_query(version.item_type, version.item_id).where(
            or_(
                c.created_at < version.created_at,
                and_(c.created_at == version.created_at, c.version_id < version.version_id),
            )
        )
        return self._first(self._descending(query))

    def next(self, version: Version) -> Version | None:
        """The version immediately after ``version`` for the same item."""
        c = self._versions.c
        query = self._item_query(version.item_type, version.item_id).where(
            or_(
                c.created_at > version.created_at,
                and_(c.created_at == version.created_at, c.version_id > version.version_id),
            )
        )
        return self._first(self._ascending(query))

    def associations_for(self, version: Version) -> list[VersionAssociation]:
        """Association rows keyed to the version or to its transaction."""
        c = self._associations.c
        condition = c.version_id == version.version_id
        if version.transaction_id is not None:
            condition = or_(condition, c.transaction_id == version.transaction_id)
        rows = self._ops.execute_fetchall(select(self._associations).where(condition).order_by(c.association_id))
        return [self._association_repo.load(row) for row in rows]
