"""RecordStore: persistence for live records, with the version hooks wired in.

The store writes record rows with SQLAlchemy Core and calls the builder at
the same points an ORM would fire callbacks:

- create:  insert row, then record_create
- save:    write row, then record_update
- destroy: record_destroy, then delete row

Each operation runs in a unit of work (see transaction()). Record rows,
version rows and association rows written in one unit of work commit or
roll back together. The record's unsaved changes stay visible to the
builder until its hook has run.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from sqlalchemy import Connection, Table, and_, delete, insert, select, update

from strata.contracts.enums import VersionEvent
from strata.contracts.errors import UnsupportedOperationError
from strata.contracts.schema import ManyToMany, coerce_value
from strata.core.clock import DEFAULT_CLOCK, Clock
from strata.core.logging import get_logger
from strata.versioning._database_ops import DatabaseOps
from strata.versioning._helpers import item_id_key
from strata.versioning.associations import AssociationTracker
from strata.versioning.builder import VersionBuilder
from strata.versioning.correlator import TransactionCorrelator
from strata.versioning.database import VersionDB
from strata.versioning.record import Record
from strata.versioning.registry import ModelConfig, ModelRegistry

logger = get_logger(__name__)

R = TypeVar("R", bound=Record)


class RecordStore:
    """Stores records and fires the version hooks.

    Example:
        store = tracker.store
        widget = store.create(Widget(name="a"))
        widget.name = "b"
        store.save(widget)
        store.destroy(widget)
    """

    def __init__(
        self,
        db: VersionDB,
        builder: VersionBuilder,
        registry: ModelRegistry,
        correlator: TransactionCorrelator,
        associations: AssociationTracker,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._db = db
        self._ops = DatabaseOps(db)
        self._builder = builder
        self._registry = registry
        self._correlator = correlator
        self._associations = associations
        self._clock = clock or DEFAULT_CLOCK
        associations.attach_membership_source(self)

    # === Unit of work ===

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Open a unit of work, or join the one already open.

        When the outermost unit of work ends, on success or failure, the
        published transaction id and the staged association changes are
        discarded.
        """
        if self._db.in_transaction:
            with self._db.transaction() as conn:
                yield conn
            return
        try:
            with self._associations.unit_of_work(), self._db.transaction() as conn:
                yield conn
        finally:
            self._correlator.clear()

    # === Hooks ===

    def _hook_config(self, record: Record, event: VersionEvent) -> ModelConfig | None:
        """Config of the record's type when the event should be versioned."""
        config = self._registry.get(record.item_type)
        if config is None or not config.records_event(event):
            return None
        if not config.should_save_version(record):
            return None
        return config

    # === Tables ===

    def _table(self, record_cls: type[Record]) -> Table:
        return self._db.register_record_schema(record_cls.schema)

    @staticmethod
    def _key(record_cls: type[Record], record_id: Any) -> Any:
        schema = record_cls.schema
        return coerce_value(schema.attribute(schema.primary_key).type, record_id)

    def _row_values(self, record: Record) -> dict[str, Any]:
        values = record.attributes()
        if values[record.schema.primary_key] is None:
            # Let the database assign the key
            del values[record.schema.primary_key]
        return values

    def _fill_timestamps(self, record: Record, names: Iterable[str]) -> None:
        """Set timestamps that are still unset (create)."""
        now = self._clock.now()
        for name in names:
            if getattr(record, name) is None:
                setattr(record, name, now)

    def _bump_timestamps(self, record: Record, names: Iterable[str], *, overwrite: bool) -> None:
        """Set timestamps to now (update). Without ``overwrite``, values the caller changed win."""
        now = self._clock.now()
        for name in names:
            if overwrite or not record.attribute_changed(name):
                setattr(record, name, now)

    # === Writes ===

    def create(self, record: R) -> R:
        """Insert a new row for the record and record the create version.

        Raises:
            UnsupportedOperationError: If the record is already persisted
        """
        if not record.is_new_record():
            raise UnsupportedOperationError(f"{record.item_type}#{record.id} is already persisted")
        with self.transaction():
            self._insert(record)
        logger.debug("record_created", item_type=record.item_type, item_id=record.id)
        return record

    def _insert(self, record: Record) -> None:
        schema = record.schema
        table = self._table(type(record))
        self._fill_timestamps(record, schema.create_timestamps)
        if record.source_version is not None:
            self._bump_timestamps(record, schema.update_timestamps, overwrite=True)
        else:
            self._fill_timestamps(record, schema.update_timestamps)

        new_id = self._ops.execute_insert(insert(table).values(**self._row_values(record)))
        if record.id is None:
            setattr(record, schema.primary_key, new_id)

        if self._hook_config(record, VersionEvent.CREATE) is not None:
            self._builder.record_create(record)
        self._finish_save(record)

    def save(self, record: R, *, force_version: bool = False) -> R:
        """Create or update the row, then record the update version.

        A reified record is compared against its live row, so saving it
        records the revert as an ordinary update. When the live row no
        longer exists the record is re-inserted with its known identity and
        a create version is recorded.

        Args:
            record: Record to save
            force_version: Record an update version even when the changes
                are not notable

        Raises:
            UnsupportedOperationError: If the record was destroyed
        """
        if record.is_destroyed():
            raise UnsupportedOperationError(f"Cannot save destroyed record {record.item_type}#{record.id}")
        if record.is_new_record():
            return self.create(record)

        schema = record.schema
        with self.transaction():
            if record.source_version is not None:
                live = self.find(type(record), record.id)
                if live is None:
                    self._insert(record)
                    logger.debug("reified_record_restored", item_type=record.item_type, item_id=record.id)
                    return record
                record.track_changes_from(live.attributes())
                self._bump_timestamps(record, schema.update_timestamps, overwrite=True)
            elif record.changed():
                self._bump_timestamps(record, schema.update_timestamps, overwrite=False)

            self._write_changes(record)
            if self._hook_config(record, VersionEvent.UPDATE) is not None:
                self._builder.record_update(record, force=force_version)
            self._finish_save(record)

        logger.debug("record_saved", item_type=record.item_type, item_id=record.id)
        return record

    def _write_changes(self, record: Record) -> None:
        pk = record.schema.primary_key
        values = {name: getattr(record, name) for name in record.changed() if name != pk}
        if not values:
            return
        table = self._table(type(record))
        key = self._key(type(record), record.id)
        self._ops.execute_update(update(table).where(table.c[pk] == key).values(**values))

    def _finish_save(self, record: Record) -> None:
        record.changes_applied()
        record.mark_persisted()
        # Saved state is live again
        record.source_version = None
        record.version_event = None

    def touch(self, record: Record, attribute: str | None = None, *, with_version: bool = False) -> Record:
        """Set the update timestamps (and ``attribute``) to now and save.

        With ``with_version`` an update version is written regardless of
        the type's ``on``, ``if_`` and ``unless`` options; otherwise none is.

        Raises:
            UnsupportedOperationError: If the record is not persisted, or
                ``attribute`` is not one of its attributes
        """
        if not record.is_persisted():
            raise UnsupportedOperationError(f"Cannot touch unsaved record {record.item_type}")
        names = list(record.schema.update_timestamps)
        if attribute is not None:
            if not record.schema.has_attribute(attribute):
                raise UnsupportedOperationError(f"{record.item_type} has no attribute {attribute!r} to touch")
            names.append(attribute)

        with self.transaction():
            self._bump_timestamps(record, names, overwrite=True)
            self._write_changes(record)
            if with_version:
                self._builder.record_update(record, force=True)
            self._finish_save(record)
        return record

    def destroy(self, record: R) -> R:
        """Record the destroy version, then delete the row and its join rows."""
        if record.is_destroyed():
            return record
        schema = record.schema
        table = self._table(type(record))

        with self.transaction():
            config = self._hook_config(record, VersionEvent.DESTROY)
            if config is not None:
                self._builder.record_destroy(record)
            if not record.is_new_record():
                key = self._key(type(record), record.id)
                self._ops.execute_write(delete(table).where(table.c[schema.primary_key] == key))
                for relation in schema.relations_of(ManyToMany):
                    join = self._db.join_table(schema.name, relation.name)
                    self._ops.execute_write(delete(join).where(join.c.owner_id == item_id_key(record.id)))
            record.mark_destroyed()

        logger.debug("record_destroyed", item_type=record.item_type, item_id=record.id)
        return record

    # === Reads ===

    def find(self, record_cls: type[R], record_id: Any) -> R | None:
        """Load the live record with the given primary key, or None."""
        table = self._table(record_cls)
        schema = record_cls.schema
        key = self._key(record_cls, record_id)
        row = self._ops.execute_fetchone(select(table).where(table.c[schema.primary_key] == key))
        if row is None:
            return None
        values = {attr.name: coerce_value(attr.type, row._mapping[attr.name]) for attr in schema.attributes}
        record = record_cls(**values)
        record.changes_applied()
        record.mark_persisted()
        return record

    def all(self, record_cls: type[R]) -> list[R]:
        """Every live record of a type, by primary key."""
        table = self._table(record_cls)
        schema = record_cls.schema
        rows = self._ops.execute_fetchall(select(table).order_by(table.c[schema.primary_key]))
        records: list[R] = []
        for row in rows:
            record = record_cls(**{attr.name: coerce_value(attr.type, row._mapping[attr.name]) for attr in schema.attributes})
            record.changes_applied()
            record.mark_persisted()
            records.append(record)
        return records

    # === Many-to-many ===

    def _join(self, record: Record, relation: str) -> Table:
        if not isinstance(record.schema.relation(relation), ManyToMany):
            raise UnsupportedOperationError(f"{record.item_type}.{relation} is not a many-to-many relation")
        self._table(type(record))
        return self._db.join_table(record.schema.name, relation)

    def member_ids(self, record: Record, relation: str) -> list[str]:
        """Member ids currently stored for a many-to-many relation."""
        join = self._join(record, relation)
        rows = self._ops.execute_fetchall(
            select(join.c.member_id).where(join.c.owner_id == item_id_key(record.id)).order_by(join.c.member_id)
        )
        return [row.member_id for row in rows]

    @staticmethod
    def _member_keys(members: Iterable[Record | Any]) -> list[str]:
        keys = []
        for member in members:
            member_id = member.id if isinstance(member, Record) else member
            if member_id is None:
                raise UnsupportedOperationError("Cannot link an unsaved record")
            keys.append(str(member_id))
        return keys

    def add_members(self, record: Record, relation: str, members: Iterable[Record | Any]) -> None:
        """Link members and stage the additions for association snapshots."""
        if not record.is_persisted():
            raise UnsupportedOperationError(f"Cannot link members to unsaved record {record.item_type}")
        join = self._join(record, relation)
        owner_id = item_id_key(record.id)
        with self.transaction():
            existing = set(self.member_ids(record, relation))
            added = [key for key in self._member_keys(members) if key not in existing]
            for key in added:
                self._ops.execute_insert(insert(join).values(owner_id=owner_id, member_id=key))
            self._associations.pending.stage_added(record, relation, added)

    def remove_members(self, record: Record, relation: str, members: Iterable[Record | Any]) -> None:
        """Unlink members and stage the removals for association snapshots."""
        if not record.is_persisted():
            raise UnsupportedOperationError(f"Cannot unlink members from unsaved record {record.item_type}")
        join = self._join(record, relation)
        owner_id = item_id_key(record.id)
        with self.transaction():
            removed: list[str] = []
            for key in self._member_keys(members):
                deleted = self._ops.execute_write(
                    delete(join).where(and_(join.c.owner_id == owner_id, join.c.member_id == key))
                )
                if deleted:
                    removed.append(key)
            self._associations.pending.stage_removed(record, relation, removed)
