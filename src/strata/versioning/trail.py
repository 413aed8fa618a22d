"""RecordTrail: the versioning operations of one record.

    trail = tracker.trail(widget)
    trail.versions()
    trail.version_at(yesterday)
    with trail.without_versioning():
        store.save(widget)
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Any

from strata.contracts.records import Version
from strata.core.state import VersioningState
from strata.versioning.record import Record
from strata.versioning.registry import ModelConfig

if TYPE_CHECKING:
    from strata.versioning.builder import VersionBuilder
    from strata.versioning.reifier import Reifier
    from strata.versioning.store import RecordStore


class RecordTrail:
    """Per-record facade over the reifier, builder, store and state."""

    def __init__(
        self,
        record: Record,
        *,
        config: ModelConfig,
        state: VersioningState,
        builder: VersionBuilder,
        reifier: Reifier,
        store: RecordStore,
    ) -> None:
        self._record = record
        self._config = config
        self._state = state
        self._builder = builder
        self._reifier = reifier
        self._store = store

    @property
    def record(self) -> Record:
        return self._record

    # === History ===

    def versions(self) -> list[Version]:
        """Stored versions of the record, oldest first (always re-read)."""
        return self._reifier.versions(self._record)

    def clear_rolled_back_versions(self) -> None:
        """Drop cached versions after a rollback.

        Versions are never cached, so there is nothing to drop.
        """

    @property
    def source_version(self) -> Version | None:
        return self._record.source_version

    def is_live(self) -> bool:
        return self._reifier.is_live(self._record)

    def version_at(self, timestamp: datetime) -> Record | None:
        return self._reifier.version_at(self._record, timestamp)

    def versions_between(self, start: datetime, end: datetime) -> list[Record]:
        return self._reifier.versions_between(self._record, start, end)

    def previous_version(self) -> Record | None:
        return self._reifier.previous_version(self._record)

    def next_version(self) -> Record | None:
        return self._reifier.next_version(self._record)

    def originator(self) -> str | None:
        return self._reifier.originator(self._record)

    def appear_as_new_record(self) -> AbstractContextManager[Record]:
        return self._reifier.appear_as_new_record(self._record)

    # === Recording ===

    def record_create(self) -> Version | None:
        return self._builder.record_create(self._record)

    def record_update(self, force: bool = False) -> Version | None:
        return self._builder.record_update(self._record, force=force)

    def record_destroy(self) -> Version | None:
        return self._builder.record_destroy(self._record)

    def touch_with_version(self, attribute: str | None = None) -> Record:
        """Bump the update timestamps (and ``attribute``) and always record a version.

        Ignores the type's ``on``, ``if_`` and ``unless`` options. The
        versioning gates still apply.

        Raises:
            UnsupportedOperationError: If the record is not persisted
        """
        return self._store.touch(self._record, attribute, with_version=True)

    # === Scoped state ===

    def is_enabled_for_model(self) -> bool:
        return self._config.is_enabled()

    @contextmanager
    def without_versioning(self) -> Iterator[Record]:
        """Disable versioning of the record's type within the block."""
        with self._state.disabled_for_model(self._config.item_type):
            yield self._record

    def call_without_versioning(self, method: str | Callable[[Record], Any]) -> Any:
        """Run ``method`` with versioning of the record's type disabled.

        ``method`` is a trail method name, a record method name, or a
        callable taking the record.
        """
        with self.without_versioning():
            if callable(method):
                return method(self._record)
            target = getattr(self, method, None)
            if target is None:
                target = getattr(self._record, method)
            return target()

    @contextmanager
    def whodunnit(self, value: str | None) -> Iterator[Record]:
        """Override the actor within the block."""
        with self._state.whodunnit_as(value):
            yield self._record
