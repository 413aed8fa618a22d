# tests/core/test_serializers.py
"""Tests for snapshot serializers."""

from datetime import UTC, date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from strata.core.serializers import JSONSerializer, YAMLSerializer, get_serializer

SERIALIZERS = [JSONSerializer(), YAMLSerializer()]


@pytest.mark.parametrize("serializer", SERIALIZERS, ids=["json", "yaml"])
class TestRoundTrip:
    def test_snapshot_with_every_attribute_type(self, serializer) -> None:
        snapshot = {
            "id": 7,
            "name": "widget",
            "notes": "multi\nline",
            "weight": 1.5,
            "price": Decimal("19.99"),
            "active": False,
            "released_on": date(2024, 2, 29),
            "updated_at": datetime(2024, 1, 1, 12, 30, tzinfo=UTC),
            "blob": b"\x00\xff",
            "specs": {"size": [1, 2, 3], "nested": {"ok": True}},
            "missing": None,
        }
        assert serializer.load(serializer.dump(snapshot)) == snapshot

    def test_changes_pairs_come_back_as_lists(self, serializer) -> None:
        changes = {"name": ("a", "b")}
        assert serializer.load(serializer.dump(changes)) == {"name": ["a", "b"]}

    def test_offset_datetimes_keep_their_instant(self, serializer) -> None:
        stamp = datetime(2024, 5, 1, 9, 0, tzinfo=timezone(timedelta(hours=2)))
        restored = serializer.load(serializer.dump({"at": stamp}))["at"]
        assert restored == stamp

    def test_naive_datetime_is_stored_as_utc(self, serializer) -> None:
        restored = serializer.load(serializer.dump({"at": datetime(2024, 1, 1)}))["at"]
        assert restored == datetime(2024, 1, 1, tzinfo=UTC)

    def test_user_dict_with_reserved_key_survives(self, serializer) -> None:
        snapshot = {"specs": {"__strata_type__": "datetime", "__strata_value__": "not a date"}}
        assert serializer.load(serializer.dump(snapshot)) == snapshot

    def test_nan_rejected(self, serializer) -> None:
        with pytest.raises(ValueError, match="non-finite"):
            serializer.dump({"weight": float("nan")})

    def test_infinite_decimal_rejected(self, serializer) -> None:
        with pytest.raises(ValueError, match="non-finite"):
            serializer.dump({"price": Decimal("Infinity")})

    def test_unsupported_type_rejected(self, serializer) -> None:
        with pytest.raises(TypeError, match="Cannot serialize"):
            serializer.dump({"value": object()})


class TestJSONSerializer:
    def test_output_is_key_sorted(self) -> None:
        assert JSONSerializer().dump({"b": 1, "a": 2}) == '{"a": 2, "b": 1}'

    def test_unknown_envelope_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown type envelope"):
            JSONSerializer().load('{"__strata_type__": "uuid", "__strata_value__": "x"}')

    def test_non_string_keys_rejected(self) -> None:
        with pytest.raises(TypeError, match="keys must be strings"):
            JSONSerializer().dump({1: "a"})


class TestYAMLSerializer:
    def test_python_tags_are_not_loaded(self) -> None:
        import yaml

        with pytest.raises(yaml.YAMLError):
            YAMLSerializer().load("!!python/object/apply:os.system ['true']")


class TestGetSerializer:
    def test_known_names(self) -> None:
        assert isinstance(get_serializer("json"), JSONSerializer)
        assert isinstance(get_serializer("yaml"), YAMLSerializer)

    def test_unknown_name(self) -> None:
        with pytest.raises(ValueError, match="Unknown serializer"):
            get_serializer("pickle")  # type: ignore[arg-type]
