# src/strata/core/__init__.py
"""Core infrastructure: Configuration, Logging, Clock, Serializers, Rules, State."""

from strata.core.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from strata.core.config import (
    StrataSettings,
    TrackingOptions,
    VersionTableSettings,
    load_settings,
)
from strata.core.logging import configure_logging, get_logger
from strata.core.rules import (
    Always,
    Attr,
    Conditional,
    RecordSnapshot,
    Rule,
    parse_rules,
    when,
)
from strata.core.serializers import (
    JSONSerializer,
    Serializer,
    YAMLSerializer,
    get_serializer,
)
from strata.core.state import PendingAssociationChanges, VersioningState

__all__ = [
    "DEFAULT_CLOCK",
    "Always",
    "Attr",
    "Clock",
    "Conditional",
    "JSONSerializer",
    "MockClock",
    "PendingAssociationChanges",
    "RecordSnapshot",
    "Rule",
    "Serializer",
    "StrataSettings",
    "SystemClock",
    "TrackingOptions",
    "VersionTableSettings",
    "VersioningState",
    "YAMLSerializer",
    "configure_logging",
    "get_logger",
    "get_serializer",
    "load_settings",
    "parse_rules",
    "when",
]
