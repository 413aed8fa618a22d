# tests/versioning/test_record.py
"""Tests for Record dirty tracking and persistence state."""

from decimal import Decimal

import pytest

from tests.fixtures.models import Label, Widget


class TestAttributes:
    def test_unknown_attribute_rejected(self) -> None:
        with pytest.raises(TypeError, match="no attributes"):
            Widget(size=3)

    def test_unset_attributes_are_none(self) -> None:
        widget = Widget(name="a")
        assert widget.color is None
        assert widget.id is None
        assert widget.item_type == "Widget"

    def test_primary_key_follows_schema(self) -> None:
        assert Label(code="x").id == "x"

    def test_records_compare_by_type_and_values(self) -> None:
        assert Widget(name="a") == Widget(name="a")
        assert Widget(name="a") != Widget(name="b")
        assert Widget(name="a") != object()


class TestDirtyTracking:
    def test_first_write_remembers_original(self) -> None:
        widget = Widget(name="a")
        widget.changes_applied()

        widget.name = "b"
        widget.name = "c"

        assert widget.changes() == {"name": ("a", "c")}
        assert widget.attribute_was("name") == "a"
        assert widget.attributes_before_change()["name"] == "a"

    def test_writing_original_back_clears_change(self) -> None:
        widget = Widget(name="a")
        widget.changes_applied()

        widget.name = "b"
        widget.name = "a"

        assert widget.changed() == set()
        assert not widget.attribute_changed("name")

    def test_type_switch_is_a_change(self) -> None:
        widget = Widget(active=True)
        widget.changes_applied()

        widget.active = 1

        assert widget.attribute_changed("active")

    def test_changes_are_in_schema_order(self) -> None:
        widget = Widget()
        widget.changes_applied()
        widget.price = Decimal("1.00")
        widget.name = "a"

        assert list(widget.changes()) == ["name", "price"]

    def test_track_changes_from_saved_values(self) -> None:
        widget = Widget(name="old", color="red")
        widget.changes_applied()

        widget.track_changes_from({"name": "live", "color": "red"})

        assert widget.changes() == {"name": ("live", "old")}


class TestPersistenceState:
    def test_new_record(self) -> None:
        widget = Widget(name="a")
        assert widget.is_new_record()
        assert not widget.is_persisted()

    def test_persisted_then_destroyed(self) -> None:
        widget = Widget(id=1)
        widget.mark_persisted()
        assert widget.is_persisted()
        assert not widget.is_new_record()

        widget.mark_destroyed()
        assert widget.is_destroyed()
        assert not widget.is_persisted()
        assert not widget.is_new_record()
