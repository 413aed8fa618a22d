"""Registration of tracked record types.

Registration validates tracking options once, up front. Everything that
can be wrong with a configuration is reported here as a
ConfigurationError; nothing is re-checked at recording time.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from strata.contracts.entity import TrackedEntity
from strata.contracts.enums import VersionEvent
from strata.contracts.errors import ConfigurationError
from strata.contracts.schema import EntitySchema, ManyToMany
from strata.core.config import TrackingOptions
from strata.core.rules import Attr, rule_attributes
from strata.core.state import VersioningState
from strata.versioning.change_detector import ChangeDetector
from strata.versioning.record import Record


@dataclass(frozen=True)
class ModelConfig:
    """Validated tracking configuration of one record type."""

    record_cls: type[Record]
    options: TrackingOptions
    detector: ChangeDetector
    state: VersioningState

    @property
    def schema(self) -> EntitySchema:
        return self.record_cls.schema

    @property
    def item_type(self) -> str:
        return self.schema.name

    @property
    def trackable_attributes(self) -> tuple[str, ...]:
        """Attributes stored in snapshots: everything but ``skip``."""
        return tuple(n for n in self.schema.attribute_names if n not in self.options.skip)

    # === Per-type gate ===

    def is_enabled(self) -> bool:
        return self.state.enabled_for_model(self.item_type)

    def enable(self) -> None:
        self.state.set_enabled_for_model(self.item_type, True)

    def disable(self) -> None:
        self.state.set_enabled_for_model(self.item_type, False)

    # === Event gating ===

    def records_event(self, event: VersionEvent) -> bool:
        return event in self.options.on

    def should_save_version(self, record: Record) -> bool:
        """Evaluate the ``if_`` / ``unless`` conditions against the record."""
        if self.options.if_ is not None and not self.options.if_(record):
            return False
        return not (self.options.unless is not None and self.options.unless(record))


class ModelRegistry:
    """Registry of tracked record types by type name."""

    def __init__(self, state: VersioningState) -> None:
        self._state = state
        self._configs: dict[str, ModelConfig] = {}

    def register(self, record_cls: type[Record], **options: Any) -> ModelConfig:
        """Validate options for ``record_cls`` and start tracking it.

        Registering the same class again replaces its options.

        Raises:
            ConfigurationError: If the options are malformed, contradictory,
                or name attributes/relations the schema does not declare
        """
        schema = getattr(record_cls, "schema", None)
        if not isinstance(schema, EntitySchema):
            raise ConfigurationError(f"{record_cls.__name__} must declare a 'schema' EntitySchema")

        existing = self._configs.get(schema.name)
        if existing is not None and existing.record_cls is not record_cls:
            raise ConfigurationError(
                f"Record type {schema.name!r} is already registered by {existing.record_cls.__name__}; "
                f"cannot register {record_cls.__name__} under the same name"
            )

        try:
            parsed = TrackingOptions(**options)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid tracking options for {schema.name}: {e}") from e
        except TypeError as e:
            raise ConfigurationError(f"Invalid tracking options for {schema.name}: {e}") from e

        self._validate_against_schema(record_cls, schema, parsed)

        config = ModelConfig(
            record_cls=record_cls,
            options=parsed,
            detector=ChangeDetector(
                ignore=parsed.ignore,
                only=parsed.only,
                skip=parsed.skip,
                timestamps=schema.update_timestamps,
            ),
            state=self._state,
        )
        self._configs[schema.name] = config
        return config

    @staticmethod
    def _validate_against_schema(record_cls: type[Record], schema: EntitySchema, options: TrackingOptions) -> None:
        known = set(schema.attribute_names)
        for option_name, names in (
            ("ignore", rule_attributes(options.ignore)),
            ("only", rule_attributes(options.only)),
            ("skip", options.skip),
        ):
            unknown = sorted(set(names) - known)
            if unknown:
                raise ConfigurationError(f"{schema.name}: '{option_name}' names unknown attributes {unknown}")

        if schema.primary_key in options.skip:
            raise ConfigurationError(f"{schema.name}: the primary key {schema.primary_key!r} cannot be skipped")

        many_to_many = {r.name for r in schema.relations_of(ManyToMany)}
        unknown_joins = sorted(options.join_tables - many_to_many)
        if unknown_joins:
            raise ConfigurationError(f"{schema.name}: 'join_tables' names unknown many-to-many relations {unknown_joins}")

        for key, source in options.meta.items():
            if isinstance(source, Attr) and source.name not in known and not callable(getattr(record_cls, source.name, None)):
                raise ConfigurationError(f"{schema.name}: meta {key!r} references unknown attribute or method {source.name!r}")

    def get(self, item_type: str) -> ModelConfig | None:
        return self._configs.get(item_type)

    def config_for(self, record: TrackedEntity) -> ModelConfig:
        """Configuration of a record's type.

        Raises:
            ConfigurationError: If the record type was never registered
        """
        config = self._configs.get(record.schema.name)
        if config is None:
            raise ConfigurationError(f"Record type {record.schema.name!r} is not registered for versioning")
        return config

    def is_tracked(self, item_type: str) -> bool:
        """Registered and its per-type gate is open in this context."""
        config = self._configs.get(item_type)
        return config is not None and config.is_enabled()

    def record_class(self, item_type: str) -> type[Record]:
        config = self._configs.get(item_type)
        if config is None:
            raise ConfigurationError(f"Record type {item_type!r} is not registered for versioning")
        return config.record_cls

    def __contains__(self, item_type: object) -> bool:
        return item_type in self._configs

    def __iter__(self) -> Iterator[ModelConfig]:
        return iter(self._configs.values())
