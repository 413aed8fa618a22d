# tests/versioning/test_associations.py
"""Tests for relationship snapshots (version_associations)."""

import pytest

from strata.contracts import Attribute, AttributeType, EntitySchema, ManyToMany, UnsupportedOperationError
from strata.core.clock import MockClock
from strata.core.config import StrataSettings
from strata.versioning import PendingAssociationChanges, Record, VersionTracker
from tests.fixtures.models import Comment, Person, Tag, Widget


def _by_name(associations: list, name: str) -> list[str | None]:
    return sorted((a.foreign_key_id for a in associations if a.foreign_key_name == name), key=str)


class TestPendingAssociationChanges:
    def test_stage_and_read_back(self) -> None:
        pending = PendingAssociationChanges()
        widget = Widget(id=1)

        pending.stage_added(widget, "tags", [1, 2])
        pending.stage_removed(widget, "tags", [3])

        assert pending.added(widget, "tags") == {"1", "2"}
        assert pending.removed(widget, "tags") == {"3"}
        assert pending

    def test_opposite_stages_cancel_out(self) -> None:
        pending = PendingAssociationChanges()
        widget = Widget(id=1)

        pending.stage_added(widget, "tags", [1])
        pending.stage_removed(widget, "tags", [1])

        assert pending.added(widget, "tags") == frozenset()
        assert pending.removed(widget, "tags") == frozenset()
        assert not pending

    def test_entries_are_per_record(self) -> None:
        pending = PendingAssociationChanges()
        pending.stage_added(Widget(id=1), "tags", [1])
        assert pending.added(Widget(id=2), "tags") == frozenset()


class TestBelongsTo:
    def test_owner_recorded_with_each_version(self, tracker: VersionTracker) -> None:
        alice = tracker.store.create(Person(name="alice"))
        widget = tracker.store.create(Widget(name="a", owner_id=alice.id))

        create = tracker.versions_for(widget)[0]
        associations = tracker.associations_for(create)

        assert _by_name(associations, "owner_id") == [str(alice.id)]
        owner_rows = [a for a in associations if a.foreign_key_name == "owner_id"]
        assert owner_rows[0].version_id == create.version_id

    def test_unset_owner_recorded_as_none(self, tracker: VersionTracker) -> None:
        widget = tracker.store.create(Widget(name="a"))
        associations = tracker.associations_for(tracker.versions_for(widget)[0])
        assert _by_name(associations, "owner_id") == [None]

    def test_untracked_target_is_not_recorded(self, clock: MockClock) -> None:
        with VersionTracker(clock=clock) as tracker:
            tracker.register(Widget)
            widget = tracker.store.create(Widget(name="a", owner_id=7))
            associations = tracker.associations_for(tracker.versions_for(widget)[0])
            assert _by_name(associations, "owner_id") == []

    def test_association_tracking_switched_off(self, clock: MockClock) -> None:
        with VersionTracker(settings=StrataSettings(track_associations=False), clock=clock) as tracker:
            tracker.register(Person)
            tracker.register(Widget)
            widget = tracker.store.create(Widget(name="a", owner_id=1))
            assert tracker.associations_for(tracker.versions_for(widget)[0]) == []


class TestPolymorphicBelongsTo:
    def test_recorded_when_discriminator_is_tracked(self, tracker: VersionTracker) -> None:
        tracker.register(Comment)
        widget = tracker.store.create(Widget(name="a"))
        comment = tracker.store.create(Comment(body="hi", commentable_id=widget.id, commentable_type="Widget"))

        associations = tracker.associations_for(tracker.versions_for(comment)[0])
        assert _by_name(associations, "commentable_id") == [str(widget.id)]

    def test_skipped_for_untracked_type_or_missing_target(self, tracker: VersionTracker) -> None:
        tracker.register(Comment)
        other = tracker.store.create(Comment(body="x", commentable_id=5, commentable_type="Invoice"))
        orphan = tracker.store.create(Comment(body="y", commentable_type="Widget"))

        for comment in (other, orphan):
            associations = tracker.associations_for(tracker.versions_for(comment)[0])
            assert _by_name(associations, "commentable_id") == []


@pytest.fixture
def tagged(tracker: VersionTracker) -> tuple[Widget, list[Tag]]:
    tags = [tracker.store.create(Tag(label=label)) for label in ("red", "green", "blue")]
    widget = tracker.store.create(Widget(name="a"))
    tracker.store.add_members(widget, "tags", tags[:2])
    return widget, tags


class TestManyToMany:
    def test_membership_before_the_unit_of_work(self, tracker: VersionTracker, tagged: tuple[Widget, list[Tag]]) -> None:
        widget, (red, green, blue) = tagged

        with tracker.store.transaction():
            tracker.store.remove_members(widget, "tags", [red])
            tracker.store.add_members(widget, "tags", [blue])
            widget.name = "b"
            tracker.store.save(widget)

        assert tracker.store.member_ids(widget, "tags") == sorted([str(green.id), str(blue.id)])
        update = tracker.versions_for(widget)[-1]
        associations = tracker.associations_for(update)
        assert _by_name(associations, "tags") == sorted([str(red.id), str(green.id)])
        tag_rows = [a for a in associations if a.foreign_key_name == "tags"]
        assert all(a.transaction_id == update.transaction_id for a in tag_rows)

    def test_snapshot_shared_across_the_transaction(self, tracker: VersionTracker, tagged: tuple[Widget, list[Tag]]) -> None:
        widget, (red, green, _) = tagged
        other = tracker.store.create(Widget(name="other"))

        with tracker.store.transaction():
            widget.name = "b"
            tracker.store.save(widget)
            other.name = "other-b"
            tracker.store.save(other)

        widget_update = tracker.versions_for(widget)[-1]
        other_update = tracker.versions_for(other)[-1]
        assert widget_update.transaction_id == other_update.transaction_id
        # Rows keyed to the shared transaction id are visible from both versions
        assert str(red.id) in _by_name(tracker.associations_for(other_update), "tags")

    def test_not_recorded_for_untracked_target(self, clock: MockClock) -> None:
        with VersionTracker(clock=clock) as tracker:
            tracker.register(Widget)
            tag = tracker.store.create(Tag(label="red"))
            widget = tracker.store.create(Widget(name="a"))
            tracker.store.add_members(widget, "tags", [tag])
            widget.name = "b"
            tracker.store.save(widget)

            assert _by_name(tracker.associations_for(tracker.versions_for(widget)[-1]), "tags") == []

    def test_join_tables_option_records_untracked_target(self, clock: MockClock) -> None:
        with VersionTracker(clock=clock) as tracker:
            tracker.register(Widget, join_tables=["tags"])
            tag = tracker.store.create(Tag(label="red"))
            widget = tracker.store.create(Widget(name="a"))
            tracker.store.add_members(widget, "tags", [tag])
            widget.name = "b"
            tracker.store.save(widget)

            assert _by_name(tracker.associations_for(tracker.versions_for(widget)[-1]), "tags") == [str(tag.id)]

    def test_add_members_requires_persisted_record(self, tracker: VersionTracker) -> None:
        with pytest.raises(UnsupportedOperationError, match="unsaved"):
            tracker.store.add_members(Widget(name="a"), "tags", [1])

    def test_add_members_rejects_unsaved_member(self, tracker: VersionTracker) -> None:
        widget = tracker.store.create(Widget(name="a"))
        with pytest.raises(UnsupportedOperationError, match="unsaved record"):
            tracker.store.add_members(widget, "tags", [Tag(label="new")])

    def test_relation_must_be_many_to_many(self, tracker: VersionTracker) -> None:
        widget = tracker.store.create(Widget(name="a"))
        with pytest.raises(UnsupportedOperationError, match="not a many-to-many"):
            tracker.store.member_ids(widget, "owner")

    def test_track_flag_records_untracked_target(self, clock: MockClock) -> None:
        class Board(Record):
            schema = EntitySchema(
                "Board",
                attributes=[Attribute("id", AttributeType.INTEGER), Attribute("name", AttributeType.STRING)],
                relations=[ManyToMany("members", target="Person", track=True)],
            )

        with VersionTracker(clock=clock) as tracker:
            tracker.register(Board)
            board = tracker.store.create(Board(name="a"))
            tracker.store.add_members(board, "members", [5, 9])
            board.name = "b"
            tracker.store.save(board)

            update = tracker.versions_for(board)[-1]
            assert _by_name(tracker.associations_for(update), "members") == ["5", "9"]
