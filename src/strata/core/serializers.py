"""Type-preserving serializers for version snapshots and diffs.

When the ``object`` / ``object_changes`` columns are plain text, snapshots
go through a Serializer before storage and come back through it on read.
The contract is ``load(dump(value)) == value`` for every attribute type a
record schema can declare.

Plain JSON cannot carry datetime, date, Decimal or bytes. Those values are
wrapped in collision-safe type envelopes (``__strata_type__`` /
``__strata_value__``). User dicts that happen to contain the reserved key
are escaped so they are not mistaken for envelopes on the way back.

NaN and Infinity are rejected: a snapshot that cannot be read back
faithfully is not a snapshot.
"""

from __future__ import annotations

import base64
import json
import math
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, Literal, Protocol

import yaml

_ENVELOPE_TYPE_KEY = "__strata_type__"
_ENVELOPE_VALUE_KEY = "__strata_value__"


class Serializer(Protocol):
    """Pluggable serializer for text snapshot columns."""

    def dump(self, value: Any) -> str:
        """Serialize a snapshot (mapping) to a text blob."""
        ...

    def load(self, blob: str) -> Any:
        """Deserialize a text blob produced by dump()."""
        ...


def _envelope(type_name: str, value: Any) -> dict[str, Any]:
    return {_ENVELOPE_TYPE_KEY: type_name, _ENVELOPE_VALUE_KEY: value}


def _encode(obj: Any) -> Any:
    """Recursively replace non-JSON types with envelopes.

    Raises:
        ValueError: If a float is NaN or Infinity
        TypeError: If a value has no envelope and is not JSON-native
    """
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            raise ValueError(f"Cannot serialize non-finite float: {obj}. Use None for missing values, not NaN/Infinity.")
        return obj
    if obj is None or isinstance(obj, str | bool | int):
        return obj
    # datetime is a date subclass - check it first
    if isinstance(obj, datetime):
        if obj.tzinfo is None:
            obj = obj.replace(tzinfo=UTC)
        return _envelope("datetime", obj.isoformat())
    if isinstance(obj, date):
        return _envelope("date", obj.isoformat())
    if isinstance(obj, Decimal):
        if not obj.is_finite():
            raise ValueError(f"Cannot serialize non-finite Decimal: {obj}")
        return _envelope("decimal", str(obj))
    if isinstance(obj, bytes):
        return _envelope("bytes", base64.b64encode(obj).decode("ascii"))
    if isinstance(obj, dict):
        encoded = {_check_key(k): _encode(v) for k, v in obj.items()}
        if _ENVELOPE_TYPE_KEY in encoded:
            return _envelope("escaped_dict", encoded)
        return encoded
    if isinstance(obj, list | tuple):
        return [_encode(v) for v in obj]
    raise TypeError(f"Cannot serialize value of type {type(obj).__name__}: {obj!r}")


def _check_key(key: Any) -> str:
    if not isinstance(key, str):
        raise TypeError(f"Snapshot keys must be strings, got {type(key).__name__}: {key!r}")
    return key


def _restore(obj: Any) -> Any:
    """Recursively restore enveloped values."""
    if isinstance(obj, dict):
        if _ENVELOPE_TYPE_KEY in obj and _ENVELOPE_VALUE_KEY in obj and len(obj) == 2:
            envelope_type = obj[_ENVELOPE_TYPE_KEY]
            envelope_value = obj[_ENVELOPE_VALUE_KEY]

            if envelope_type == "datetime":
                return datetime.fromisoformat(envelope_value)
            if envelope_type == "date":
                return date.fromisoformat(envelope_value)
            if envelope_type == "decimal":
                return Decimal(envelope_value)
            if envelope_type == "bytes":
                return base64.b64decode(envelope_value)
            if envelope_type == "escaped_dict":
                return {k: _restore(v) for k, v in envelope_value.items()}
            raise ValueError(f"Unknown type envelope {envelope_type!r}")

        return {k: _restore(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_restore(v) for v in obj]
    return obj


class JSONSerializer:
    """JSON text with type envelopes. The default serializer."""

    def dump(self, value: Any) -> str:
        return json.dumps(_encode(value), allow_nan=False, sort_keys=True)

    def load(self, blob: str) -> Any:
        return _restore(json.loads(blob))


class YAMLSerializer:
    """YAML text with the same type envelopes as JSONSerializer.

    Uses safe_dump/safe_load only; arbitrary Python tags are never emitted
    or accepted.
    """

    def dump(self, value: Any) -> str:
        dumped: str = yaml.safe_dump(_encode(value), sort_keys=True, allow_unicode=True)
        return dumped

    def load(self, blob: str) -> Any:
        return _restore(yaml.safe_load(blob))


SerializerName = Literal["json", "yaml"]

_SERIALIZERS: dict[str, type[JSONSerializer] | type[YAMLSerializer]] = {
    "json": JSONSerializer,
    "yaml": YAMLSerializer,
}


def get_serializer(name: SerializerName) -> Serializer:
    """Build a serializer by its settings name.

    Raises:
        ValueError: If name is not a known serializer
    """
    try:
        return _SERIALIZERS[name]()
    except KeyError:
        raise ValueError(f"Unknown serializer {name!r}; expected one of {sorted(_SERIALIZERS)}") from None
