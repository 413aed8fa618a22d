# tests/core/test_rules.py
"""Tests for ignore/only rules and record snapshots."""

import pytest

from strata.core.rules import (
    Always,
    Conditional,
    RecordSnapshot,
    evaluate_rules,
    parse_rules,
    rule_attributes,
    static_attributes,
    when,
)


class TestRecordSnapshot:
    def test_attribute_and_item_access(self) -> None:
        snapshot = RecordSnapshot("Widget", {"name": "a"})
        assert snapshot.name == "a"
        assert snapshot["name"] == "a"
        assert snapshot.item_type == "Widget"
        assert dict(snapshot) == {"name": "a"}

    def test_is_read_only(self) -> None:
        snapshot = RecordSnapshot("Widget", {"name": "a"})
        with pytest.raises(AttributeError, match="read-only"):
            snapshot.name = "b"

    def test_copies_its_input(self) -> None:
        values = {"name": "a"}
        snapshot = RecordSnapshot("Widget", values)
        values["name"] = "b"
        assert snapshot.name == "a"

    def test_unknown_attribute(self) -> None:
        with pytest.raises(AttributeError, match="no attribute 'color'"):
            _ = RecordSnapshot("Widget", {}).color


class TestParseRules:
    def test_none_and_single_name(self) -> None:
        assert parse_rules(None) == ()
        assert parse_rules("color") == (Always(frozenset({"color"})),)

    def test_names_are_grouped_into_one_rule(self) -> None:
        assert parse_rules(["color", "notes"]) == (Always(frozenset({"color", "notes"})),)

    def test_mapping_becomes_conditional(self) -> None:
        def is_draft(s: RecordSnapshot) -> bool:
            return s.name == "draft"

        rules = parse_rules(["color", {"notes": is_draft}])
        assert rules == (Always(frozenset({"color"})), Conditional("notes", is_draft))

    def test_rule_values_pass_through(self) -> None:
        rule = when("color", lambda s: True)
        assert parse_rules([rule]) == (rule,)

    def test_non_callable_predicate_rejected(self) -> None:
        with pytest.raises(ValueError, match="callable"):
            parse_rules([{"notes": True}])

    def test_unsupported_entry_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unsupported rule"):
            parse_rules([42])


class TestEvaluateRules:
    def test_conditional_follows_its_predicate(self) -> None:
        rules = parse_rules(["color", {"notes": lambda s: s.name == "draft"}])

        assert evaluate_rules(rules, RecordSnapshot("Widget", {"name": "draft"})) == {"color", "notes"}
        assert evaluate_rules(rules, RecordSnapshot("Widget", {"name": "final"})) == {"color"}

    def test_static_and_all_attributes(self) -> None:
        rules = parse_rules(["color", {"notes": lambda s: False}])
        assert static_attributes(rules) == {"color"}
        assert rule_attributes(rules) == {"color", "notes"}

    def test_empty_rules_match_nothing(self) -> None:
        assert evaluate_rules((), RecordSnapshot("Widget", {})) == frozenset()
