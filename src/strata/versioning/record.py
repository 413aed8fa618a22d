"""Record base class with per-attribute dirty tracking.

Subclasses declare their schema; attribute reads and writes go through it.
The first write to an attribute remembers the value it replaced, so the
record can always answer "what was this before the unsaved changes".
Writing the original value back clears the change.

Example:
    class Widget(Record):
        schema = EntitySchema(
            "Widget",
            attributes=[
                Attribute("id", AttributeType.INTEGER),
                Attribute("name", AttributeType.STRING),
            ],
        )

    widget = Widget(name="a")
    widget.name = "b"
    widget.changes()  # {"name": ("a", "b")} once "a" has been saved
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar

from strata.contracts.records import Version
from strata.contracts.schema import EntitySchema
from strata.versioning.change_detector import values_differ


class Record:
    """A tracked record. Subclasses set ``schema``."""

    schema: ClassVar[EntitySchema]

    def __init__(self, **attributes: Any) -> None:
        names = self.schema.attribute_names
        unknown = sorted(set(attributes) - set(names))
        if unknown:
            raise TypeError(f"{self.schema.name} has no attributes {unknown}")
        self._values: dict[str, Any] = dict.fromkeys(names)
        self._original: dict[str, Any] = {}
        self._persisted = False
        self._destroyed = False
        self._new_if_identity_unset = False
        # Version this instance was reified from (or the destroy version)
        self.source_version: Version | None = None
        # Overrides the event name of the next version written for this instance
        self.version_event: str | None = None
        for name, value in attributes.items():
            setattr(self, name, value)

    def __getattr__(self, name: str) -> Any:
        # Only called when normal lookup fails, i.e. for schema attributes
        if name.startswith("_"):
            raise AttributeError(name)
        values = self.__dict__.get("_values")
        if values is not None and name in values:
            return values[name]
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if name in type(self).schema.attribute_names:
            self._write_attribute(name, value)
        else:
            object.__setattr__(self, name, value)

    def _write_attribute(self, name: str, value: Any) -> None:
        current = self._values[name]
        if name in self._original:
            if not values_differ(self._original[name], value):
                del self._original[name]
        elif values_differ(current, value):
            self._original[name] = current
        self._values[name] = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return type(self) is type(other) and self._values == other._values

    __hash__ = None  # type: ignore[assignment]  # mutable, compared by value

    def __repr__(self) -> str:
        attrs = ", ".join(f"{k}={v!r}" for k, v in self._values.items())
        return f"{type(self).__name__}({attrs})"

    # === Identity ===

    @property
    def id(self) -> Any:
        return self._values[self.schema.primary_key]

    @property
    def item_type(self) -> str:
        return self.schema.name

    # === Attributes and changes ===

    def attributes(self) -> dict[str, Any]:
        return dict(self._values)

    def attributes_before_change(self) -> dict[str, Any]:
        return {**self._values, **self._original}

    def changes(self) -> dict[str, tuple[Any, Any]]:
        """Changed attribute -> (previous, current), in schema order."""
        return {name: (self._original[name], self._values[name]) for name in self._values if name in self._original}

    def changed(self) -> set[str]:
        return set(self._original)

    def attribute_changed(self, name: str) -> bool:
        return name in self._original

    def attribute_was(self, name: str) -> Any:
        if name in self._original:
            return self._original[name]
        return self._values[name]

    def changes_applied(self) -> None:
        """Forget unsaved changes; the current values are now the saved ones."""
        self._original.clear()

    def track_changes_from(self, saved: Mapping[str, Any]) -> None:
        """Treat ``saved`` as the stored state: every differing attribute becomes a change."""
        self._original = {
            name: saved[name] for name, value in self._values.items() if name in saved and values_differ(saved[name], value)
        }

    # === Persistence state ===

    def mark_persisted(self) -> None:
        self._persisted = True
        self._destroyed = False

    def mark_destroyed(self) -> None:
        self._destroyed = True

    def is_persisted(self) -> bool:
        return self._persisted and not self._destroyed

    def is_destroyed(self) -> bool:
        return self._destroyed

    def is_new_record(self) -> bool:
        """Whether saving this instance should insert a fresh row.

        Reified instances carry a known identity and are never new.
        Inside appear_as_new_record() the answer is "is the identity unset".
        """
        if self._new_if_identity_unset:
            return self.id is None
        if self.source_version is not None:
            return False
        return not self._persisted and not self._destroyed
