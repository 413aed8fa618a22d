"""Attribute rules for ignore/only options and metadata references.

A rule is either unconditional (``Always``) or guarded by a predicate
(``Conditional``). Predicates receive a read-only RecordSnapshot, never the
live record, so evaluating them cannot change the record being versioned.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any


class RecordSnapshot(Mapping[str, Any]):
    """Immutable view of a record's attributes at one moment.

    Supports both ``snapshot.name`` and ``snapshot["name"]``.
    """

    __slots__ = ("_item_type", "_values")

    def __init__(self, item_type: str, values: Mapping[str, Any]) -> None:
        object.__setattr__(self, "_item_type", item_type)
        object.__setattr__(self, "_values", MappingProxyType(dict(values)))

    @property
    def item_type(self) -> str:
        return self._item_type

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._values[name]
        except KeyError:
            raise AttributeError(f"{self._item_type} snapshot has no attribute {name!r}") from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("RecordSnapshot is read-only")

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"RecordSnapshot({self._item_type!r}, {dict(self._values)!r})"


Predicate = Callable[[RecordSnapshot], bool]


@dataclass(frozen=True)
class Always:
    """Attributes that always match."""

    attributes: frozenset[str]

    def matches(self, snapshot: RecordSnapshot) -> frozenset[str]:
        return self.attributes


@dataclass(frozen=True)
class Conditional:
    """One attribute that matches only while its predicate holds."""

    attribute: str
    predicate: Predicate

    def matches(self, snapshot: RecordSnapshot) -> frozenset[str]:
        return frozenset({self.attribute}) if self.predicate(snapshot) else frozenset()


Rule = Always | Conditional


def when(attribute: str, predicate: Predicate) -> Conditional:
    """Shorthand for a conditional rule: ``ignore=["title", when("color", is_draft)]``."""
    return Conditional(attribute, predicate)


def parse_rules(value: Any) -> tuple[Rule, ...]:
    """Normalize an ignore/only option into rules.

    Accepts a single name, an iterable of names, mappings of name to
    predicate, or Always/Conditional values, in any mix.

    Raises:
        ValueError: On entries that are none of the above, or a mapping
            value that is not callable
    """
    if value is None:
        return ()
    if isinstance(value, str | Always | Conditional | Mapping):
        value = [value]

    names: set[str] = set()
    rules: list[Rule] = []
    for item in value:
        if isinstance(item, str):
            names.add(item)
        elif isinstance(item, Always | Conditional):
            rules.append(item)
        elif isinstance(item, Mapping):
            for attr, predicate in item.items():
                if not isinstance(attr, str) or not callable(predicate):
                    raise ValueError(f"Conditional rule must map attribute name to a callable, got {attr!r}: {predicate!r}")
                rules.append(Conditional(attr, predicate))
        else:
            raise ValueError(f"Unsupported rule {item!r}; expected a name, a mapping of name to predicate, or a rule")
    if names:
        rules.insert(0, Always(frozenset(names)))
    return tuple(rules)


def static_attributes(rules: Iterable[Rule]) -> frozenset[str]:
    """Attributes named by unconditional rules."""
    return frozenset().union(*(r.attributes for r in rules if isinstance(r, Always)))


def rule_attributes(rules: Iterable[Rule]) -> frozenset[str]:
    """Every attribute a rule set can match, conditional or not."""
    out: set[str] = set()
    for rule in rules:
        if isinstance(rule, Always):
            out |= rule.attributes
        else:
            out.add(rule.attribute)
    return frozenset(out)


def evaluate_rules(rules: Iterable[Rule], snapshot: RecordSnapshot) -> frozenset[str]:
    """Union of the attributes every rule matches against the snapshot."""
    return frozenset().union(*(rule.matches(snapshot) for rule in rules))


@dataclass(frozen=True)
class Attr:
    """Metadata source naming a record attribute or zero-argument method.

    On a non-create event, a changed attribute contributes its value from
    before the change.
    """

    name: str
