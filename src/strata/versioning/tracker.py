"""VersionTracker: wires settings, storage and the versioning engine together.

    tracker = VersionTracker(settings=StrataSettings(), clock=MockClock())
    tracker.register(Widget, ignore=["color"])

    widget = tracker.store.create(Widget(name="a"))
    with tracker.state.whodunnit_as("alice"):
        widget.name = "b"
        tracker.store.save(widget)

    tracker.trail(widget).previous_version()  # Widget(name="a", ...)
"""

from __future__ import annotations

from typing import Any, Self

from strata.contracts.enums import UnversionedAttributes
from strata.contracts.records import Version, VersionAssociation
from strata.core.clock import DEFAULT_CLOCK, Clock
from strata.core.config import StrataSettings
from strata.core.logging import get_logger
from strata.core.serializers import Serializer, get_serializer
from strata.core.state import VersioningState
from strata.versioning._helpers import item_id_key
from strata.versioning.associations import AssociationTracker
from strata.versioning.builder import VersionBuilder
from strata.versioning.correlator import TransactionCorrelator
from strata.versioning.database import VersionDB
from strata.versioning.record import Record
from strata.versioning.recorder import VersionRecorder
from strata.versioning.registry import ModelConfig, ModelRegistry
from strata.versioning.reifier import Reifier
from strata.versioning.store import RecordStore
from strata.versioning.trail import RecordTrail

logger = get_logger(__name__)


class VersionTracker:
    """Entry point: registration, record storage and history queries."""

    def __init__(
        self,
        db: VersionDB | None = None,
        *,
        settings: StrataSettings | None = None,
        clock: Clock | None = None,
        serializer: Serializer | None = None,
    ) -> None:
        """Build the engine.

        Args:
            db: Database to use (default: built from settings.database_url)
            settings: Settings (default: StrataSettings())
            clock: Clock for version and record timestamps
            serializer: Serializer for text snapshot columns (default: the
                one named by settings.serializer)
        """
        self.settings = settings or StrataSettings()
        self.db = db or VersionDB.from_url(self.settings.database_url, settings=self.settings.versions)
        self.clock = clock or DEFAULT_CLOCK
        self.state = VersioningState(enabled=self.settings.enabled)
        self.registry = ModelRegistry(self.state)
        self.recorder = VersionRecorder(self.db, serializer or get_serializer(self.settings.serializer))
        self.correlator = TransactionCorrelator(self.recorder, self.state)
        self.associations = AssociationTracker(
            self.recorder,
            self.registry,
            self.state,
            enabled=self.settings.track_associations,
        )
        self.builder = VersionBuilder(
            self.recorder,
            self.registry,
            self.state,
            self.correlator,
            self.associations,
            clock=self.clock,
        )
        self.store = RecordStore(
            self.db,
            self.builder,
            self.registry,
            self.correlator,
            self.associations,
            clock=self.clock,
        )
        self.reifier = Reifier(self.recorder, self.registry, self.store)

    # === Registration ===

    def register(self, record_cls: type[Record], **options: Any) -> ModelConfig:
        """Track ``record_cls`` with the given options and create its tables.

        Raises:
            ConfigurationError: If the options are invalid for the record type
        """
        config = self.registry.register(record_cls, **options)
        self.db.register_record_schema(record_cls.schema)
        logger.debug("record_type_registered", item_type=config.item_type, events=[e.value for e in config.options.on])
        return config

    def trail(self, record: Record) -> RecordTrail:
        return RecordTrail(
            record,
            config=self.registry.config_for(record),
            state=self.state,
            builder=self.builder,
            reifier=self.reifier,
            store=self.store,
        )

    # === History ===

    def versions_for(self, record: Record) -> list[Version]:
        return self.reifier.versions(record)

    def versions_of(self, item_type: str, item_id: Any) -> list[Version]:
        """Versions of any item, live or destroyed, by type and id."""
        return self.recorder.versions_for(item_type, item_id_key(item_id))  # type: ignore[arg-type]

    def reify(
        self,
        version: Version,
        *,
        unversioned_attributes: UnversionedAttributes | str = UnversionedAttributes.NIL,
    ) -> Record | None:
        return self.reifier.reify(version, unversioned_attributes=unversioned_attributes)

    def associations_for(self, version: Version) -> list[VersionAssociation]:
        return self.associations.associations_for(version)

    # === Lifecycle ===

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: object) -> None:
        self.close()
