"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core or
versioning. Settings classes live in strata.core.config.
"""

from strata.contracts.entity import TrackedEntity
from strata.contracts.enums import (
    AttributeType,
    TimestampRole,
    UnversionedAttributes,
    VersionEvent,
)
from strata.contracts.errors import (
    ConfigurationError,
    RecordingFailure,
    SchemaCompatibilityError,
    StrataError,
    UnsupportedOperationError,
)
from strata.contracts.records import Version, VersionAssociation
from strata.contracts.schema import (
    Attribute,
    BelongsTo,
    EntitySchema,
    ManyToMany,
    PolymorphicBelongsTo,
    Relation,
    coerce_value,
    to_json_value,
)

__all__ = [
    "Attribute",
    "AttributeType",
    "BelongsTo",
    "ConfigurationError",
    "EntitySchema",
    "ManyToMany",
    "PolymorphicBelongsTo",
    "RecordingFailure",
    "Relation",
    "SchemaCompatibilityError",
    "StrataError",
    "TimestampRole",
    "TrackedEntity",
    "UnsupportedOperationError",
    "UnversionedAttributes",
    "Version",
    "VersionAssociation",
    "VersionEvent",
    "coerce_value",
    "to_json_value",
]
