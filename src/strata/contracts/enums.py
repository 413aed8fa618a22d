"""Status codes and kinds stored in the versions tables."""

from enum import StrEnum


class VersionEvent(StrEnum):
    """Kind of mutation a version records.

    Stored in the database (versions.event).
    """

    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"


class AttributeType(StrEnum):
    """Semantic type of a record attribute.

    Drives column types for record tables, value coercion when snapshots
    are read back from semi-structured columns, and typed diffing.
    """

    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    DATE = "date"
    JSON = "json"


class TimestampRole(StrEnum):
    """Which write maintains an auto timestamp attribute."""

    CREATE = "create"
    UPDATE = "update"


class UnversionedAttributes(StrEnum):
    """How reification fills attributes missing from a snapshot."""

    NIL = "nil"
    PRESERVE = "preserve"
