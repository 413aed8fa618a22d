"""Change detection: which attribute changes warrant a new version.

Precedence, for one save of one record:

1. changed: attributes whose value differs from the previous value
2. effective ignore: static ignore rules, plus conditional ones whose
   predicate holds against the record snapshot
3. changed_and_not_ignored = changed - effective ignore - skip
4. effective only: same evaluation for ``only``; when empty every
   remaining change counts, otherwise only those in it
5. changed_notably: the notable set minus auto-maintained update
   timestamps is non-empty

A save that only moved timestamps is therefore never notable, and ignoring
an attribute cannot be worked around by the timestamp bump that comes with
it.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from strata.core.rules import RecordSnapshot, Rule, evaluate_rules


@dataclass(frozen=True)
class ChangeSet:
    """Outcome of change detection for one save."""

    changed: frozenset[str]
    notable: frozenset[str]
    ignored_changed: bool
    changed_notably: bool


def diff_attributes(previous: Mapping[str, Any], current: Mapping[str, Any]) -> dict[str, tuple[Any, Any]]:
    """Attribute name -> (previous, current) for every differing attribute.

    Attributes present on one side only compare against None.
    """
    changes: dict[str, tuple[Any, Any]] = {}
    for name in dict.fromkeys([*previous, *current]):
        before = previous.get(name)
        after = current.get(name)
        if values_differ(before, after):
            changes[name] = (before, after)
    return changes


def values_differ(before: Any, after: Any) -> bool:
    # 1 == True and 0 == 0.0 in Python; a type switch is still a change
    return type(before) is not type(after) or bool(before != after)


class ChangeDetector:
    """Classifies attribute changes as notable given ignore/only/skip."""

    def __init__(
        self,
        *,
        ignore: Iterable[Rule] = (),
        only: Iterable[Rule] = (),
        skip: Iterable[str] = (),
        timestamps: Iterable[str] = (),
    ) -> None:
        self._ignore = tuple(ignore)
        self._only = tuple(only)
        self._skip = frozenset(skip)
        self._timestamps = frozenset(timestamps)

    def changed_and_not_ignored(self, changed: Iterable[str], snapshot: RecordSnapshot) -> frozenset[str]:
        ignored = evaluate_rules(self._ignore, snapshot)
        return frozenset(changed) - ignored - self._skip

    def notably_changed(self, changed: Iterable[str], snapshot: RecordSnapshot) -> frozenset[str]:
        remaining = self.changed_and_not_ignored(changed, snapshot)
        only = evaluate_rules(self._only, snapshot)
        return remaining & only if only else remaining

    def ignored_attr_has_changed(self, changed: Iterable[str], snapshot: RecordSnapshot) -> bool:
        """True when an ignored or skipped attribute is among the changes."""
        ignored = evaluate_rules(self._ignore, snapshot) | self._skip
        return bool(frozenset(changed) & ignored)

    def evaluate(self, changes: Mapping[str, tuple[Any, Any]], snapshot: RecordSnapshot) -> ChangeSet:
        changed = frozenset(changes)
        notable = self.notably_changed(changed, snapshot)
        return ChangeSet(
            changed=changed,
            notable=notable,
            ignored_changed=self.ignored_attr_has_changed(changed, snapshot),
            changed_notably=bool(notable - self._timestamps),
        )

    def notable_changes(self, changes: Mapping[str, tuple[Any, Any]], snapshot: RecordSnapshot) -> dict[str, tuple[Any, Any]]:
        """The subset of ``changes`` that is notable, in the original order."""
        notable = self.notably_changed(changes, snapshot)
        return {name: pair for name, pair in changes.items() if name in notable}
