"""Schema descriptors for tracked record types.

A record type declares its attributes and relations up front. Diffing,
snapshotting, table creation and reification all read this descriptor
instead of discovering columns at runtime.

Example:
    WIDGET = EntitySchema(
        "Widget",
        attributes=[
            Attribute("id", AttributeType.INTEGER),
            Attribute("name", AttributeType.STRING),
            Attribute("owner_id", AttributeType.INTEGER),
            Attribute("updated_at", AttributeType.DATETIME, auto=TimestampRole.UPDATE),
        ],
        relations=[BelongsTo("owner", foreign_key="owner_id", target="Person")],
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from strata.contracts.enums import AttributeType, TimestampRole
from strata.contracts.errors import ConfigurationError


@dataclass(frozen=True)
class Attribute:
    """A named, typed attribute of a record."""

    name: str
    type: AttributeType
    auto: TimestampRole | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.type, AttributeType):
            raise ConfigurationError(f"Attribute {self.name!r}: type must be AttributeType, got {self.type!r}")
        if self.auto is not None and self.type is not AttributeType.DATETIME:
            raise ConfigurationError(f"Attribute {self.name!r}: auto timestamps must be DATETIME, got {self.type.value}")


@dataclass(frozen=True)
class BelongsTo:
    """Single-valued relation through a foreign key attribute."""

    name: str
    foreign_key: str
    target: str


@dataclass(frozen=True)
class PolymorphicBelongsTo:
    """Single-valued relation whose target type is read from a discriminator attribute."""

    name: str
    foreign_key: str
    foreign_type: str


@dataclass(frozen=True)
class ManyToMany:
    """Many-to-many relation stored in a join table.

    ``track=True`` snapshots the membership even when ``target`` is not a
    tracked type.
    """

    name: str
    target: str
    track: bool = False


Relation = BelongsTo | PolymorphicBelongsTo | ManyToMany


@dataclass(frozen=True)
class EntitySchema:
    """Ordered attribute and relation descriptor for one record type."""

    name: str
    attributes: tuple[Attribute, ...] | list[Attribute]
    relations: tuple[Relation, ...] | list[Relation] = field(default_factory=tuple)
    primary_key: str = "id"

    def __post_init__(self) -> None:
        # Freeze list arguments so the descriptor is hashable and immutable
        object.__setattr__(self, "attributes", tuple(self.attributes))
        object.__setattr__(self, "relations", tuple(self.relations))

        names = [a.name for a in self.attributes]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"{self.name}: duplicate attributes {duplicates}")
        if self.primary_key not in names:
            raise ConfigurationError(f"{self.name}: primary key {self.primary_key!r} is not a declared attribute")

        relation_names = [r.name for r in self.relations]
        if len(relation_names) != len(set(relation_names)):
            raise ConfigurationError(f"{self.name}: duplicate relation names {relation_names}")
        for relation in self.relations:
            if relation.name in names:
                raise ConfigurationError(f"{self.name}: relation {relation.name!r} shadows an attribute")
            if isinstance(relation, BelongsTo | PolymorphicBelongsTo) and relation.foreign_key not in names:
                raise ConfigurationError(f"{self.name}.{relation.name}: foreign key {relation.foreign_key!r} is not a declared attribute")
            if isinstance(relation, PolymorphicBelongsTo) and relation.foreign_type not in names:
                raise ConfigurationError(f"{self.name}.{relation.name}: foreign type {relation.foreign_type!r} is not a declared attribute")

    @property
    def attribute_names(self) -> tuple[str, ...]:
        return tuple(a.name for a in self.attributes)

    def attribute(self, name: str) -> Attribute:
        for attr in self.attributes:
            if attr.name == name:
                return attr
        raise KeyError(f"{self.name} has no attribute {name!r}")

    def has_attribute(self, name: str) -> bool:
        return name in self.attribute_names

    @property
    def create_timestamps(self) -> tuple[str, ...]:
        return tuple(a.name for a in self.attributes if a.auto is TimestampRole.CREATE)

    @property
    def update_timestamps(self) -> tuple[str, ...]:
        """Attributes maintained on every write (timestamp attributes for update)."""
        return tuple(a.name for a in self.attributes if a.auto is TimestampRole.UPDATE)

    def relation(self, name: str) -> Relation:
        for relation in self.relations:
            if relation.name == name:
                return relation
        raise KeyError(f"{self.name} has no relation {name!r}")

    def relations_of(self, kind: type[Any]) -> tuple[Any, ...]:
        return tuple(r for r in self.relations if isinstance(r, kind))


def to_json_value(attr_type: AttributeType, value: Any) -> Any:
    """Convert an attribute value to a JSON-native value.

    Used when snapshots go into semi-structured (JSON) columns.
    """
    if value is None:
        return None
    if attr_type is AttributeType.DATETIME:
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.isoformat()
    if attr_type is AttributeType.DATE:
        return value.isoformat()
    if attr_type is AttributeType.DECIMAL:
        return str(value)
    return value


def coerce_value(attr_type: AttributeType, value: Any) -> Any:
    """Convert a stored value back to the attribute's Python type.

    Accepts both already-typed values (from a serializer that preserves
    types) and JSON-native values (from a semi-structured column).
    """
    if value is None:
        return None
    if attr_type is AttributeType.DATETIME:
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value
    if attr_type is AttributeType.DATE:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str):
            return date.fromisoformat(value)
        return value
    if attr_type is AttributeType.DECIMAL:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    if attr_type is AttributeType.INTEGER:
        # bool is an int subclass - keep it out
        return value if type(value) is int else int(value)
    if attr_type is AttributeType.FLOAT:
        return float(value)
    if attr_type is AttributeType.BOOLEAN:
        return bool(value)
    if attr_type in (AttributeType.STRING, AttributeType.TEXT):
        return value if isinstance(value, str) else str(value)
    return value
