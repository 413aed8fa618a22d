# src/strata/versioning/__init__.py
"""Versioning: version history for tracked records.

Primary API:
    VersionTracker - Wires everything together; start here
    RecordTrail - Versioning operations of one record
    RecordStore - Saves records and fires the version hooks

Engine:
    ChangeDetector - Which changes warrant a version
    VersionBuilder - Builds and stores versions
    TransactionCorrelator - Shared id per unit of work
    Reifier - Rebuilds past states, navigates versions
    AssociationTracker - Relationship snapshots per version

Storage:
    VersionDB - Connection and table management
    VersionRecorder - Reads and writes version rows
"""

from strata.core.state import PendingAssociationChanges
from strata.versioning.associations import AssociationTracker
from strata.versioning.builder import VersionBuilder
from strata.versioning.change_detector import ChangeDetector, ChangeSet, diff_attributes
from strata.versioning.correlator import TransactionCorrelator
from strata.versioning.database import VersionDB
from strata.versioning.record import Record
from strata.versioning.recorder import VersionRecorder
from strata.versioning.registry import ModelConfig, ModelRegistry
from strata.versioning.reifier import Reifier
from strata.versioning.store import RecordStore
from strata.versioning.tracker import VersionTracker
from strata.versioning.trail import RecordTrail

__all__ = [
    "AssociationTracker",
    "ChangeDetector",
    "ChangeSet",
    "ModelConfig",
    "ModelRegistry",
    "PendingAssociationChanges",
    "Record",
    "RecordStore",
    "RecordTrail",
    "Reifier",
    "TransactionCorrelator",
    "VersionBuilder",
    "VersionDB",
    "VersionRecorder",
    "VersionTracker",
    "diff_attributes",
]
