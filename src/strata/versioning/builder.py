"""VersionBuilder: turns a record mutation into a stored version.

Every record_* call runs the same pipeline:

1. Gate check (process, context and per-type gates). Closed: silent no-op.
2. Event-specific decision (notability for updates, persistence for
   destroys).
3. Build the row values: snapshot, diff, actor, timestamp, metadata.
4. Insert, backfill the transaction id and snapshot associations inside
   one savepoint, then publish the transaction id.

A version that cannot be written is logged with the record identity and
dropped, and the savepoint takes every row it wrote with it. The record
write that triggered it always goes ahead.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from strata.contracts.entity import TrackedEntity
from strata.contracts.enums import VersionEvent
from strata.contracts.errors import RecordingFailure
from strata.contracts.records import Version
from strata.contracts.schema import EntitySchema, to_json_value
from strata.core.clock import DEFAULT_CLOCK, Clock
from strata.core.logging import get_logger
from strata.core.rules import Attr, RecordSnapshot
from strata.core.state import VersioningState
from strata.versioning._helpers import item_id_key
from strata.versioning.associations import AssociationTracker
from strata.versioning.correlator import TransactionCorrelator
from strata.versioning.recorder import VersionRecorder
from strata.versioning.registry import ModelConfig, ModelRegistry

logger = get_logger(__name__)


def _event_for(record: TrackedEntity, default: VersionEvent) -> VersionEvent:
    """The record's event label when it names a known event, else the default."""
    label = record.version_event
    if label is not None and label in VersionEvent._value2member_map_:
        return VersionEvent(label)
    return default


class VersionBuilder:
    """Builds and stores versions for create, update and destroy.

    Example:
        builder = VersionBuilder(recorder, registry, state, correlator, associations)
        builder.record_create(widget)           # after the row is inserted
        builder.record_update(widget)           # after the row is updated
        builder.record_update(widget, force=True)
        builder.record_destroy(widget)          # before the row is deleted
    """

    def __init__(
        self,
        recorder: VersionRecorder,
        registry: ModelRegistry,
        state: VersioningState,
        correlator: TransactionCorrelator,
        associations: AssociationTracker,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._recorder = recorder
        self._registry = registry
        self._state = state
        self._correlator = correlator
        self._associations = associations
        self._clock = clock or DEFAULT_CLOCK

    @property
    def recorder(self) -> VersionRecorder:
        return self._recorder

    # === Decisions ===

    def changed_notably(self, record: TrackedEntity) -> bool:
        """Whether the record's unsaved changes warrant an update version."""
        config = self._registry.config_for(record)
        return config.detector.evaluate(record.changes(), self._snapshot(record)).changed_notably

    def _switched_on(self, record: TrackedEntity) -> bool:
        return self._state.switched_on(record.schema.name)

    def _records_changes(self, config: ModelConfig) -> bool:
        return config.options.save_changes and self._recorder.tracks_object_changes

    # === Events ===

    def record_create(self, record: TrackedEntity) -> Version | None:
        """Write the create version. Call after the row exists.

        Create versions have no ``object``. ``object_changes`` holds the
        initial values as changes from None.
        """
        if not self._switched_on(record):
            return None
        config = self._registry.config_for(record)
        snapshot = self._snapshot(record)
        changes = record.changes()

        values = self._base_values(record, _event_for(record, VersionEvent.CREATE), self._version_timestamp(record))
        if self._records_changes(config) and config.detector.evaluate(changes, snapshot).changed_notably:
            values["object_changes"] = self._object_changes(config.schema, config.detector.notable_changes(changes, snapshot))
        return self._write(record, config, values)

    def record_update(self, record: TrackedEntity, *, force: bool = False) -> Version | None:
        """Write an update version when the changes are notable, or when forced.

        Call after the row is written but before the record's changes are
        applied, so the pre-change values are still known.
        """
        if not self._switched_on(record):
            return None
        config = self._registry.config_for(record)
        snapshot = self._snapshot(record)
        changes = record.changes()
        if not force and not config.detector.evaluate(changes, snapshot).changed_notably:
            return None

        values = self._base_values(record, _event_for(record, VersionEvent.UPDATE), self._version_timestamp(record))
        values["object"] = self._object(config, record.attributes_before_change())
        if self._records_changes(config):
            values["object_changes"] = self._object_changes(config.schema, config.detector.notable_changes(changes, snapshot))
        return self._write(record, config, values)

    def record_destroy(self, record: TrackedEntity) -> Version | None:
        """Write the destroy version. No-op for a record that was never saved.

        On success the version is attached to the record as its
        ``source_version``, so navigation and ``originator`` keep working on
        the destroyed instance.
        """
        if not self._switched_on(record) or record.is_new_record():
            return None
        config = self._registry.config_for(record)
        values = self._base_values(record, _event_for(record, VersionEvent.DESTROY), self._clock.now())
        values["object"] = self._object(config, record.attributes_before_change())
        version = self._write(record, config, values)
        if version is not None:
            record.source_version = version
        return version

    # === Row values ===

    def _snapshot(self, record: TrackedEntity) -> RecordSnapshot:
        return RecordSnapshot(record.schema.name, record.attributes())

    def _version_timestamp(self, record: TrackedEntity) -> datetime:
        """The record's update timestamp when it has one, else now."""
        for name in record.schema.update_timestamps:
            value = record.attributes()[name]
            if value is not None:
                return value  # type: ignore[no-any-return]  # DATETIME attribute
        return self._clock.now()

    def _base_values(self, record: TrackedEntity, event: VersionEvent, created_at: datetime) -> dict[str, Any]:
        return {
            "item_type": record.schema.name,
            "item_id": item_id_key(record.id),
            "event": event.value,
            "whodunnit": self._state.whodunnit,
            "created_at": created_at,
        }

    def _object(self, config: ModelConfig, attributes: dict[str, Any]) -> dict[str, Any]:
        """Pre-change snapshot of the trackable attributes."""
        snapshot = {name: attributes[name] for name in config.trackable_attributes}
        if not self._recorder.db.snapshot_columns_are_json:
            return snapshot
        return {name: to_json_value(config.schema.attribute(name).type, value) for name, value in snapshot.items()}

    def _object_changes(self, schema: EntitySchema, changes: dict[str, tuple[Any, Any]]) -> dict[str, list[Any]]:
        if not self._recorder.db.snapshot_columns_are_json:
            return {name: [old, new] for name, (old, new) in changes.items()}
        out: dict[str, list[Any]] = {}
        for name, (old, new) in changes.items():
            attr_type = schema.attribute(name).type
            out[name] = [to_json_value(attr_type, old), to_json_value(attr_type, new)]
        return out

    def merge_metadata(self, record: TrackedEntity, config: ModelConfig, values: dict[str, Any]) -> dict[str, Any]:
        """Resolve configured metadata, then add ambient metadata.

        Sources, per key:
        - callable: called with the record
        - Attr(name): attribute value (the pre-change value when the
          attribute changed on a non-create event) or zero-argument method
        - anything else: stored as is

        Ambient (controller_info) values never replace configured keys.
        """
        data = dict(values)
        changes = record.changes()
        for key, source in config.options.meta.items():
            if callable(source):
                data[key] = source(record)
            elif isinstance(source, Attr):
                data[key] = self._resolve_attr(record, source.name, changes, data["event"])
            else:
                data[key] = source
        for key, value in self._state.controller_info.items():
            data.setdefault(key, value)
        return data

    @staticmethod
    def _resolve_attr(record: TrackedEntity, name: str, changes: dict[str, tuple[Any, Any]], event: str) -> Any:
        if record.schema.has_attribute(name):
            if name in changes and event != VersionEvent.CREATE:
                return changes[name][0]
            return record.attributes()[name]
        return getattr(record, name)()

    # === Storage ===

    def _validate(self, values: dict[str, Any]) -> list[str]:
        errors: list[str] = []
        if values["item_id"] is None:
            errors.append("item_id can't be blank")
        unknown = sorted(set(values) - self._recorder.column_names)
        if unknown:
            errors.append(f"unknown version columns {unknown}")
        return errors

    def _write(self, record: TrackedEntity, config: ModelConfig, values: dict[str, Any]) -> Version | None:
        data = self.merge_metadata(record, config, values)
        self._correlator.add_transaction_id(data)

        errors = self._validate(data)
        if errors:
            self._log_failure(RecordingFailure(config.item_type, record.id, data["event"], errors))
            return None

        try:
            with self._recorder.db.savepoint():
                version = self._recorder.insert_version(data)
                version = self._correlator.update_transaction_id(version)
                self._associations.save_associations(record, version, config)
        except (SQLAlchemyError, ValueError, TypeError) as e:
            self._log_failure(RecordingFailure(config.item_type, record.id, data["event"], [str(e)]))
            return None

        self._correlator.publish(version)
        logger.debug(
            "version_recorded",
            item_type=version.item_type,
            item_id=version.item_id,
            version_event=version.event.value,
            version_id=version.version_id,
        )
        return version

    @staticmethod
    def _log_failure(failure: RecordingFailure) -> None:
        logger.warning(
            "version_recording_failed",
            item_type=failure.item_type,
            item_id=failure.item_id,
            version_event=failure.event,
            errors=failure.errors,
            message=str(failure),
        )
