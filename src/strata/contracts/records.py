"""Version history contracts for the versions tables.

Strict contracts: enum fields must be real enum members. The repository
layer converts database strings to enums on read.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from strata.contracts.enums import VersionEvent


def _validate_enum(value: object, enum_type: type, field_name: str) -> None:
    """Validate that value is an instance of the expected enum type.

    Versions are our own data. A wrong type here is a bug, so crash.
    """
    if value is not None and not isinstance(value, enum_type):
        raise TypeError(f"{field_name} must be {enum_type.__name__}, got {type(value).__name__}: {value!r}")


@dataclass(frozen=True)
class Version:
    """One create, update or destroy of a tracked record.

    ``object`` is always the state *before* the event; it is None for
    create versions. ``object_changes`` maps attribute name to
    ``[old, new]`` and is None when diff tracking is off.
    """

    version_id: int
    item_type: str
    item_id: str
    event: VersionEvent  # Strict: enum only
    created_at: datetime
    whodunnit: str | None = None
    object: dict[str, Any] | None = None
    object_changes: dict[str, list[Any]] | None = None
    transaction_id: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _validate_enum(self.event, VersionEvent, "event")


@dataclass(frozen=True)
class VersionAssociation:
    """One member of a relationship as it stood when a version was written.

    Single-valued relations are keyed to ``version_id``. Many-to-many
    relations are keyed to ``transaction_id`` so one snapshot covers every
    record touched in that unit of work.
    """

    association_id: int
    foreign_key_name: str
    foreign_key_id: str | None
    version_id: int | None = None
    transaction_id: int | None = None

    def __post_init__(self) -> None:
        if (self.version_id is None) == (self.transaction_id is None):
            raise ValueError(
                f"VersionAssociation {self.association_id} must be keyed to exactly one of "
                f"version_id or transaction_id, got version_id={self.version_id!r}, "
                f"transaction_id={self.transaction_id!r}"
            )
