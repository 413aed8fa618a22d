"""Versioning gates and ambient per-context values.

Three gates must all be open for a version to be written:

- the process gate, one flag per VersioningState,
- the context gate, scoped to the current execution context (a request,
  a thread, an asyncio task),
- the per-type gate, also scoped to the current execution context.

The actor ("whodunnit"), the ambient metadata merged into every version,
the published transaction id and the many-to-many changes staged in the
current unit of work live in ContextVars as well, so concurrent units of
work never see each other's values. Every scoped helper restores the previous value on every
exit path, exceptions included.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from strata.contracts.entity import TrackedEntity

_UNSET: Any = object()


@dataclass
class _StagedChanges:
    added: set[str] = field(default_factory=set)
    removed: set[str] = field(default_factory=set)


class PendingAssociationChanges:
    """Many-to-many adds/removes staged in the current unit of work."""

    def __init__(self) -> None:
        self._staged: dict[tuple[str, str, str], _StagedChanges] = {}

    def _entry(self, record: TrackedEntity, relation: str) -> _StagedChanges:
        key = (record.schema.name, str(record.id), relation)
        return self._staged.setdefault(key, _StagedChanges())

    def stage_added(self, record: TrackedEntity, relation: str, member_ids: Iterable[object]) -> None:
        entry = self._entry(record, relation)
        for member_id in member_ids:
            key = str(member_id)
            # Adding back a member removed in the same unit of work cancels out
            if key in entry.removed:
                entry.removed.discard(key)
            else:
                entry.added.add(key)

    def stage_removed(self, record: TrackedEntity, relation: str, member_ids: Iterable[object]) -> None:
        entry = self._entry(record, relation)
        for member_id in member_ids:
            key = str(member_id)
            if key in entry.added:
                entry.added.discard(key)
            else:
                entry.removed.add(key)

    def added(self, record: TrackedEntity, relation: str) -> frozenset[str]:
        entry = self._staged.get((record.schema.name, str(record.id), relation))
        return frozenset(entry.added) if entry else frozenset()

    def removed(self, record: TrackedEntity, relation: str) -> frozenset[str]:
        entry = self._staged.get((record.schema.name, str(record.id), relation))
        return frozenset(entry.removed) if entry else frozenset()

    def __bool__(self) -> bool:
        return any(e.added or e.removed for e in self._staged.values())


_enabled_for_context: ContextVar[bool] = ContextVar("strata_enabled_for_context", default=True)
_disabled_types: ContextVar[frozenset[str]] = ContextVar("strata_disabled_types", default=frozenset())
_whodunnit: ContextVar[str | None] = ContextVar("strata_whodunnit", default=None)
_controller_info: ContextVar[Mapping[str, Any]] = ContextVar("strata_controller_info", default=MappingProxyType({}))
_transaction_id: ContextVar[int | None] = ContextVar("strata_transaction_id", default=None)
_pending_associations: ContextVar[PendingAssociationChanges | None] = ContextVar("strata_pending_associations", default=None)


class VersioningState:
    """Gates and ambient values consulted by every recording call."""

    def __init__(self, *, enabled: bool = True) -> None:
        self._enabled = enabled

    # === Process gate ===

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    @contextmanager
    def disabled(self) -> Iterator[None]:
        """Turn the process gate off for the duration of the block."""
        was_enabled = self._enabled
        self._enabled = False
        try:
            yield
        finally:
            self._enabled = was_enabled

    # === Context gate ===

    @property
    def enabled_for_context(self) -> bool:
        return _enabled_for_context.get()

    def set_enabled_for_context(self, value: bool) -> None:
        _enabled_for_context.set(value)

    @contextmanager
    def disabled_for_context(self) -> Iterator[None]:
        """Turn the context gate off for the duration of the block."""
        token = _enabled_for_context.set(False)
        try:
            yield
        finally:
            _enabled_for_context.reset(token)

    # === Per-type gate ===

    def enabled_for_model(self, item_type: str) -> bool:
        return item_type not in _disabled_types.get()

    def set_enabled_for_model(self, item_type: str, value: bool) -> None:
        disabled = _disabled_types.get()
        _disabled_types.set(disabled - {item_type} if value else disabled | {item_type})

    @contextmanager
    def disabled_for_model(self, item_type: str) -> Iterator[None]:
        """Turn one record type's gate off for the duration of the block."""
        token = _disabled_types.set(_disabled_types.get() | {item_type})
        try:
            yield
        finally:
            _disabled_types.reset(token)

    def switched_on(self, item_type: str) -> bool:
        """True when all three gates are open for the record type."""
        return self._enabled and _enabled_for_context.get() and self.enabled_for_model(item_type)

    # === Actor ===

    @property
    def whodunnit(self) -> str | None:
        return _whodunnit.get()

    def set_whodunnit(self, value: str | None) -> None:
        _whodunnit.set(value)

    @contextmanager
    def whodunnit_as(self, value: str | None) -> Iterator[None]:
        """Override the actor for the duration of the block."""
        token = _whodunnit.set(value)
        try:
            yield
        finally:
            _whodunnit.reset(token)

    # === Ambient metadata ===

    @property
    def controller_info(self) -> Mapping[str, Any]:
        return _controller_info.get()

    def set_controller_info(self, info: Mapping[str, Any]) -> None:
        _controller_info.set(MappingProxyType(dict(info)))

    @contextmanager
    def with_controller_info(self, info: Mapping[str, Any]) -> Iterator[None]:
        """Merge extra metadata into every version written inside the block."""
        token = _controller_info.set(MappingProxyType(dict(info)))
        try:
            yield
        finally:
            _controller_info.reset(token)

    # === Request scope ===

    @contextmanager
    def request(
        self,
        *,
        enabled: bool = True,
        whodunnit: str | None = _UNSET,
        controller_info: Mapping[str, Any] | None = None,
    ) -> Iterator[None]:
        """Set up the ambient values of one request in a single block.

        Args:
            enabled: Context gate for the request
            whodunnit: Actor for the request (unchanged when omitted)
            controller_info: Extra metadata for every version in the request
        """
        tokens = [(_enabled_for_context, _enabled_for_context.set(enabled))]
        if whodunnit is not _UNSET:
            tokens.append((_whodunnit, _whodunnit.set(whodunnit)))
        if controller_info is not None:
            tokens.append((_controller_info, _controller_info.set(MappingProxyType(dict(controller_info)))))
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)

    # === Unit of work ===

    @property
    def transaction_id(self) -> int | None:
        """Correlation id published by the open unit of work, if any."""
        return _transaction_id.get()

    def set_transaction_id(self, value: int | None) -> None:
        _transaction_id.set(value)

    @property
    def pending_associations(self) -> PendingAssociationChanges | None:
        return _pending_associations.get()

    def stage_associations(self) -> PendingAssociationChanges:
        """Staged changes of the current context, created on first use."""
        pending = _pending_associations.get()
        if pending is None:
            pending = PendingAssociationChanges()
            _pending_associations.set(pending)
        return pending

    @contextmanager
    def fresh_associations(self) -> Iterator[PendingAssociationChanges]:
        """Scope a fresh set of staged changes to the block."""
        pending = PendingAssociationChanges()
        token = _pending_associations.set(pending)
        try:
            yield pending
        finally:
            _pending_associations.reset(token)

    def reset_context(self) -> None:
        """Restore every context-scoped value to its default."""
        _enabled_for_context.set(True)
        _disabled_types.set(frozenset())
        _whodunnit.set(None)
        _controller_info.set(MappingProxyType({}))
        _transaction_id.set(None)
        _pending_associations.set(None)


def log_context() -> dict[str, Any]:
    """Ambient values of the current context that belong on every log line."""
    context: dict[str, Any] = {}
    whodunnit = _whodunnit.get()
    if whodunnit is not None:
        context["whodunnit"] = whodunnit
    transaction_id = _transaction_id.get()
    if transaction_id is not None:
        context["transaction_id"] = transaction_id
    return context
