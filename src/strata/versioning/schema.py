# src/strata/versioning/schema.py
"""SQLAlchemy table definitions for version history.

Uses SQLAlchemy Core (not ORM) for explicit control over queries and
compatibility with multiple database backends.

The versions table shape depends on settings (optional columns, JSON vs
text snapshots, custom metadata columns), so tables are built per
MetaData instance rather than declared at import time.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
)
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator, TypeEngine

from strata.contracts.enums import AttributeType
from strata.contracts.schema import EntitySchema, ManyToMany
from strata.core.config import VersionTableSettings

VERSIONS_TABLE = "versions"
VERSION_ASSOCIATIONS_TABLE = "version_associations"


class UTCDateTime(TypeDecorator[datetime]):
    """DateTime that always round-trips as timezone-aware UTC.

    SQLite has no timezone storage; values come back naive. Normalize on
    the way in and restore tzinfo on the way out so comparisons never mix
    naive and aware datetimes.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


def column_type(attr_type: AttributeType) -> TypeEngine[Any]:
    """SQLAlchemy column type for a record attribute type."""
    if attr_type is AttributeType.STRING:
        return String(255)
    if attr_type is AttributeType.TEXT:
        return Text()
    if attr_type is AttributeType.INTEGER:
        return Integer()
    if attr_type is AttributeType.FLOAT:
        return Float()
    if attr_type is AttributeType.DECIMAL:
        return Numeric(precision=38, scale=10, asdecimal=True)
    if attr_type is AttributeType.BOOLEAN:
        return Boolean()
    if attr_type is AttributeType.DATETIME:
        return UTCDateTime(timezone=True)
    if attr_type is AttributeType.DATE:
        return Date()
    return JSON()


# === Versions ===


def build_versions_table(metadata: MetaData, settings: VersionTableSettings) -> Table:
    """Define the versions table on ``metadata``.

    object/object_changes are JSON when ``json_columns`` is set, otherwise
    Text holding serializer output.
    """
    snapshot_type: TypeEngine[Any] = JSON() if settings.json_columns else Text()
    columns: list[Column[Any]] = [
        Column("version_id", Integer, primary_key=True, autoincrement=True),
        Column("item_type", String(128), nullable=False),
        # Stored as text so one table serves integer and string primary keys
        Column("item_id", String(64), nullable=False),
        Column("event", String(16), nullable=False),
        Column("whodunnit", String(255)),
        Column("object", snapshot_type),
        Column("created_at", UTCDateTime(timezone=True), nullable=False),
    ]
    if settings.object_changes:
        columns.append(Column("object_changes", JSON() if settings.json_columns else Text()))
    if settings.transaction_id:
        columns.append(Column("transaction_id", Integer))
    for name, attr_type in settings.metadata_columns.items():
        columns.append(Column(name, column_type(attr_type)))

    table = Table(VERSIONS_TABLE, metadata, *columns)
    Index("ix_versions_item", table.c.item_type, table.c.item_id)
    if settings.transaction_id:
        Index("ix_versions_transaction_id", table.c.transaction_id)
    return table


# === Version Associations ===


def build_version_associations_table(metadata: MetaData) -> Table:
    """Define the version_associations table on ``metadata``.

    Rows are keyed to a version (single-valued relations) or to a
    transaction id (many-to-many relations).
    """
    table = Table(
        VERSION_ASSOCIATIONS_TABLE,
        metadata,
        Column("association_id", Integer, primary_key=True, autoincrement=True),
        Column("version_id", Integer, ForeignKey(f"{VERSIONS_TABLE}.version_id")),
        Column("transaction_id", Integer),
        Column("foreign_key_name", String(128), nullable=False),
        Column("foreign_key_id", String(64)),
    )
    Index("ix_version_associations_foreign_key", table.c.foreign_key_name, table.c.foreign_key_id)
    Index("ix_version_associations_transaction_id", table.c.transaction_id)
    return table


# === Records ===


def record_table_name(schema: EntitySchema) -> str:
    return f"{schema.name.lower()}_records"


def join_table_name(schema: EntitySchema, relation: ManyToMany) -> str:
    return f"{schema.name.lower()}_{relation.name}"


def build_record_table(metadata: MetaData, schema: EntitySchema) -> Table:
    """Define the table holding live rows for one record type."""
    columns: list[Column[Any]] = []
    for attr in schema.attributes:
        if attr.name == schema.primary_key:
            autoincrement = attr.type is AttributeType.INTEGER
            columns.append(Column(attr.name, column_type(attr.type), primary_key=True, autoincrement=autoincrement))
        else:
            columns.append(Column(attr.name, column_type(attr.type)))
    return Table(record_table_name(schema), metadata, *columns)


def build_join_table(metadata: MetaData, schema: EntitySchema, relation: ManyToMany) -> Table:
    """Define the join table for one many-to-many relation.

    Member ids are stored as text; the engine only compares them.
    """
    return Table(
        join_table_name(schema, relation),
        metadata,
        Column("owner_id", String(64), nullable=False),
        Column("member_id", String(64), nullable=False),
        PrimaryKeyConstraint("owner_id", "member_id"),
    )
