# src/strata/core/config.py
"""
Configuration schema and loading for Strata.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from strata.contracts.enums import AttributeType, VersionEvent
from strata.core.rules import Rule, parse_rules, static_attributes
from strata.core.serializers import SerializerName

# Columns owned by the versions table itself; metadata may not reuse them
_RESERVED_VERSION_COLUMNS = frozenset(
    {
        "version_id",
        "item_type",
        "item_id",
        "event",
        "whodunnit",
        "object",
        "object_changes",
        "created_at",
        "transaction_id",
    }
)


class VersionTableSettings(BaseModel):
    """Shape of the versions table.

    Optional columns that are switched off make the features that use them
    no-ops (diff tracking, transaction correlation).

    Example YAML:
        versions:
          json_columns: false
          object_changes: true
          transaction_id: true
          metadata_columns:
            ip: string
            answer: integer
    """

    model_config = {"frozen": True}

    json_columns: bool = Field(
        default=False,
        description="Store object/object_changes as JSON (semi-structured) instead of serialized text",
    )
    object_changes: bool = Field(default=True, description="Create the object_changes (diff) column")
    transaction_id: bool = Field(default=True, description="Create the transaction_id (correlation) column")
    metadata_columns: dict[str, AttributeType] = Field(
        default_factory=dict,
        description="Extra metadata columns: column name -> attribute type",
    )

    @field_validator("metadata_columns")
    @classmethod
    def validate_metadata_columns(cls, v: dict[str, AttributeType]) -> dict[str, AttributeType]:
        clashes = sorted(set(v) & _RESERVED_VERSION_COLUMNS)
        if clashes:
            raise ValueError(f"metadata columns clash with built-in versions columns: {clashes}")
        return v


class StrataSettings(BaseModel):
    """Top-level settings."""

    model_config = {"frozen": True}

    enabled: bool = Field(default=True, description="Process-wide versioning gate")
    track_associations: bool = Field(
        default=True,
        description="Record relationship snapshots (version_associations) with each version",
    )
    serializer: SerializerName = Field(default="json", description="Serializer for text snapshot columns")
    database_url: str = Field(
        default="sqlite:///:memory:",
        description="SQLAlchemy URL of the database holding versions and records",
    )
    versions: VersionTableSettings = Field(
        default_factory=VersionTableSettings,
        description="Versions table shape",
    )


class TrackingOptions(BaseModel):
    """Per-record-type tracking options, validated at registration.

    - on: Events to record (default: all of them)
    - ignore: Attributes that alone never warrant a version; names,
      name -> predicate mappings or rules
    - only: Inverse of ignore; when non-empty, only these attributes count
    - skip: Attributes excluded from notability AND from stored snapshots
    - meta: Extra metadata column -> callable(record) | Attr(name) | literal
    - save_changes: Store object_changes when the column exists
    - if_/unless: Predicates on the record gating whether to version at all
    - join_tables: Many-to-many relations snapshotted even when their target
      type is not tracked
    """

    model_config = {"frozen": True, "arbitrary_types_allowed": True, "extra": "forbid"}

    on: tuple[VersionEvent, ...] = Field(default=tuple(VersionEvent))
    ignore: tuple[Rule, ...] = Field(default=())
    only: tuple[Rule, ...] = Field(default=())
    skip: frozenset[str] = Field(default=frozenset())
    meta: dict[str, Any] = Field(default_factory=dict)
    save_changes: bool = True
    if_: Callable[[Any], bool] | None = None
    unless: Callable[[Any], bool] | None = None
    join_tables: frozenset[str] = Field(default=frozenset())

    @field_validator("on", mode="before")
    @classmethod
    def parse_events(cls, v: Any) -> Any:
        if isinstance(v, str):
            return (v,)
        return v

    @field_validator("ignore", "only", mode="before")
    @classmethod
    def parse_rule_option(cls, v: Any) -> tuple[Rule, ...]:
        return parse_rules(v)

    @field_validator("skip", "join_tables", mode="before")
    @classmethod
    def parse_name_set(cls, v: Any) -> Any:
        if isinstance(v, str):
            return frozenset({v})
        return v

    @field_validator("on")
    @classmethod
    def validate_events_unique(cls, v: tuple[VersionEvent, ...]) -> tuple[VersionEvent, ...]:
        if len(set(v)) != len(v):
            raise ValueError(f"'on' lists an event more than once: {[e.value for e in v]}")
        return v

    @model_validator(mode="after")
    def validate_only_ignore_disjoint(self) -> "TrackingOptions":
        overlap = static_attributes(self.only) & static_attributes(self.ignore)
        if overlap:
            raise ValueError(f"attributes cannot be in both 'only' and 'ignore': {sorted(overlap)}")
        return self


def load_settings(config_path: Path) -> StrataSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (STRATA_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: STRATA_VERSIONS__JSON_COLUMNS for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated StrataSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="STRATA",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; Pydantic wants lowercase
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    if isinstance(raw_config.get("versions"), dict):
        raw_config["versions"] = _lower_keys(raw_config["versions"])

    return StrataSettings.model_validate(raw_config)


def _lower_keys(section: dict[str, Any]) -> dict[str, Any]:
    # metadata column names are user data: keep their case
    out = {k.lower(): v for k, v in section.items()}
    for key in section:
        if key.lower() == "metadata_columns":
            out["metadata_columns"] = section[key]
    return out
