"""Association tracking: relationship snapshots stored next to each version.

Single-valued relations (belongs-to, polymorphic belongs-to) produce one
row keyed to the new version. Many-to-many relations produce one row per
member keyed to the transaction id, so one membership snapshot covers every
record touched in that unit of work.

Many-to-many membership is captured as it stood *before* the adds and
removes staged in the current unit of work:

    persisted members + staged removals - staged additions
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol

from strata.contracts.entity import TrackedEntity
from strata.contracts.records import Version, VersionAssociation
from strata.contracts.schema import BelongsTo, ManyToMany, PolymorphicBelongsTo
from strata.core.state import PendingAssociationChanges, VersioningState
from strata.versioning._helpers import item_id_key
from strata.versioning.recorder import VersionRecorder
from strata.versioning.registry import ModelConfig, ModelRegistry


class MembershipSource(Protocol):
    """Reads currently persisted many-to-many member ids."""

    def member_ids(self, record: TrackedEntity, relation: str) -> list[str]: ...


class AssociationTracker:
    """Writes version_associations rows for a freshly written version."""

    def __init__(
        self,
        recorder: VersionRecorder,
        registry: ModelRegistry,
        state: VersioningState,
        *,
        enabled: bool = True,
    ) -> None:
        self._recorder = recorder
        self._registry = registry
        self._state = state
        self._enabled = enabled
        self._membership: MembershipSource | None = None

    @property
    def enabled(self) -> bool:
        """Global association-tracking switch."""
        return self._enabled

    def attach_membership_source(self, source: MembershipSource) -> None:
        self._membership = source

    # === Pending changes (per unit of work) ===

    @property
    def pending(self) -> PendingAssociationChanges:
        """Staged changes of the current unit of work (created on first use)."""
        return self._state.stage_associations()

    @contextmanager
    def unit_of_work(self) -> Iterator[PendingAssociationChanges]:
        """Scope a fresh set of staged changes to the block."""
        with self._state.fresh_associations() as pending:
            yield pending

    # === Recording ===

    def save_associations(self, record: TrackedEntity, version: Version, config: ModelConfig) -> list[VersionAssociation]:
        """Snapshot the record's relations for ``version``.

        No-op when association tracking is switched off globally.
        """
        if not self._enabled:
            return []
        written = self._save_belongs_to(record, version, config)
        written.extend(self._save_many_to_many(record, version, config))
        return written

    def _save_belongs_to(self, record: TrackedEntity, version: Version, config: ModelConfig) -> list[VersionAssociation]:
        written: list[VersionAssociation] = []
        values = record.attributes()
        for relation in config.schema.relations:
            if isinstance(relation, PolymorphicBelongsTo):
                target_type = values[relation.foreign_type]
                foreign_key_id = values[relation.foreign_key]
                # Only recorded when the discriminator points at a tracked type and a target exists
                if target_type is None or foreign_key_id is None or not self._registry.is_tracked(str(target_type)):
                    continue
            elif isinstance(relation, BelongsTo):
                if not self._registry.is_tracked(relation.target):
                    continue
                foreign_key_id = values[relation.foreign_key]
            else:
                continue
            written.append(
                self._recorder.insert_association(
                    version_id=version.version_id,
                    foreign_key_name=relation.foreign_key,
                    foreign_key_id=item_id_key(foreign_key_id),
                )
            )
        return written

    def _save_many_to_many(self, record: TrackedEntity, version: Version, config: ModelConfig) -> list[VersionAssociation]:
        relations = [
            r
            for r in config.schema.relations_of(ManyToMany)
            if r.track or r.name in config.options.join_tables or self._registry.is_tracked(r.target)
        ]
        if not relations or self._membership is None:
            return []

        written: list[VersionAssociation] = []
        pending = self._state.pending_associations
        for relation in relations:
            members = set(self._membership.member_ids(record, relation.name))
            if pending is not None:
                members = (members | pending.removed(record, relation.name)) - pending.added(record, relation.name)
            for member_id in sorted(members):
                # Without correlation ids the snapshot is keyed to the version itself
                if version.transaction_id is not None:
                    keys = {"transaction_id": version.transaction_id}
                else:
                    keys = {"version_id": version.version_id}
                written.append(
                    self._recorder.insert_association(
                        foreign_key_name=relation.name,
                        foreign_key_id=member_id,
                        **keys,
                    )
                )
        return written

    def associations_for(self, version: Version) -> list[VersionAssociation]:
        """Association rows written with ``version`` or its transaction."""
        return self._recorder.associations_for(version)
