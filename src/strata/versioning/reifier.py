"""Reification: rebuilding past record states from stored versions.

A version's ``object`` is the state *before* its event, so the state of a
record at time T lives in the first version written *after* T. When no
such version exists the live record is the answer, unless it has been
destroyed.

Reified instances are ordinary Record objects with ``source_version`` set.
They carry a known identity: saving one updates (or re-inserts) the row
it came from instead of creating a new one.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Protocol

from strata.contracts.enums import UnversionedAttributes
from strata.contracts.records import Version
from strata.contracts.schema import coerce_value
from strata.core.logging import get_logger
from strata.versioning._helpers import item_id_key
from strata.versioning.record import Record
from strata.versioning.recorder import VersionRecorder
from strata.versioning.registry import ModelRegistry

logger = get_logger(__name__)


class RecordFinder(Protocol):
    """Loads live records by primary key."""

    def find(self, record_cls: type[Record], record_id: Any) -> Record | None: ...


class Reifier:
    """Reifies versions and navigates a record's version sequence."""

    def __init__(self, recorder: VersionRecorder, registry: ModelRegistry, finder: RecordFinder) -> None:
        self._recorder = recorder
        self._registry = registry
        self._finder = finder

    # === Reification ===

    def reify(
        self,
        version: Version,
        *,
        unversioned_attributes: UnversionedAttributes | str = UnversionedAttributes.NIL,
    ) -> Record | None:
        """Rebuild the record as it was before ``version``'s event.

        Create versions have no prior state and reify to None.

        Args:
            version: Version to reify
            unversioned_attributes: "nil" sets attributes absent from the
                snapshot to None; "preserve" keeps the live record's values
        """
        if version.object is None:
            return None
        mode = UnversionedAttributes(unversioned_attributes)
        record_cls = self._registry.record_class(version.item_type)
        schema = record_cls.schema

        values: dict[str, Any] = dict.fromkeys(schema.attribute_names)
        if mode is UnversionedAttributes.PRESERVE:
            live = self._finder.find(record_cls, version.item_id)
            if live is not None:
                values.update(live.attributes())

        for name, stored in version.object.items():
            if not schema.has_attribute(name):
                logger.warning("reify_unknown_attribute", item_type=version.item_type, attribute=name, version_id=version.version_id)
                continue
            values[name] = coerce_value(schema.attribute(name).type, stored)
        if values[schema.primary_key] is None:
            values[schema.primary_key] = coerce_value(schema.attribute(schema.primary_key).type, version.item_id)

        record = record_cls(**values)
        record.changes_applied()
        record.mark_persisted()
        record.source_version = version
        return record

    # === Time queries ===

    def version_at(self, record: Record, timestamp: datetime) -> Record | None:
        """The record as it was at ``timestamp``.

        Returns None when that state cannot be rebuilt: the covering
        version is a create, or there is none and the record is destroyed.
        """
        version = self._recorder.subsequent(record.item_type, item_id_key(record.id), timestamp)  # type: ignore[arg-type]  # persisted records have ids
        if version is not None:
            return self.reify(version)
        if record.is_destroyed():
            return None
        return record

    def versions_between(self, record: Record, start: datetime, end: datetime) -> list[Record]:
        """States of the record at each version time in ``[start, end]``.

        States that cannot be rebuilt are left out.
        """
        versions = self._recorder.between(record.item_type, item_id_key(record.id), start, end)  # type: ignore[arg-type]
        states = (self.version_at(record, version.created_at) for version in versions)
        return [state for state in states if state is not None]

    # === Navigation ===

    def versions(self, record: Record) -> list[Version]:
        if record.id is None:
            return []
        return self._recorder.versions_for(record.item_type, item_id_key(record.id))  # type: ignore[arg-type]

    def _last_version(self, record: Record) -> Version | None:
        if record.id is None:
            return None
        return self._recorder.last_version(record.item_type, item_id_key(record.id))  # type: ignore[arg-type]

    def previous_version(self, record: Record) -> Record | None:
        """The state before the one ``record`` represents.

        For a live record that is the state before its latest version.
        """
        source = record.source_version
        version = self._recorder.previous(source) if source is not None else self._last_version(record)
        return self.reify(version) if version is not None else None

    def next_version(self, record: Record) -> Record | None:
        """The state after the one a reified ``record`` represents.

        Returns the live record (re-read from storage) when the source
        version is the newest one, and None for a live record.
        """
        source = record.source_version
        if source is None:
            return None
        following = self._recorder.next(source)
        if following is not None:
            return self.reify(following)
        return self._finder.find(type(record), record.id)

    def originator(self, record: Record) -> str | None:
        """Actor who put the record into the state it represents."""
        version = record.source_version or self._last_version(record)
        return version.whodunnit if version is not None else None

    @staticmethod
    def is_live(record: Record) -> bool:
        return record.source_version is None

    @staticmethod
    @contextmanager
    def appear_as_new_record(record: Record) -> Iterator[Record]:
        """Treat ``record`` as new while its identity is unset, within the block.

        Lets a caller clear the primary key of a reified state and save it
        as a fresh row.
        """
        previous = record._new_if_identity_unset
        record._new_if_identity_unset = True
        try:
            yield record
        finally:
            record._new_if_identity_unset = previous
