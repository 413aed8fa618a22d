# tests/versioning/test_correlator.py
"""Tests for transaction correlation ids."""

import pytest

from strata.core.clock import MockClock
from strata.core.config import StrataSettings, VersionTableSettings
from strata.versioning import VersionTracker
from tests.fixtures.models import Widget


class TestTransactionCorrelation:
    def test_versions_in_one_unit_of_work_share_an_id(self, tracker: VersionTracker) -> None:
        first = tracker.store.create(Widget(name="a"))
        second = tracker.store.create(Widget(name="b"))

        with tracker.store.transaction():
            first.name = "a2"
            tracker.store.save(first)
            second.name = "b2"
            tracker.store.save(second)

        third = tracker.store.create(Widget(name="c"))

        update_a = tracker.versions_for(first)[-1]
        update_b = tracker.versions_for(second)[-1]
        create_c = tracker.versions_for(third)[0]

        assert update_a.transaction_id is not None
        assert update_a.transaction_id == update_a.version_id
        assert update_b.transaction_id == update_a.transaction_id
        assert create_c.transaction_id == create_c.version_id
        assert create_c.transaction_id != update_a.transaction_id

    def test_id_is_cleared_when_the_unit_of_work_ends(self, tracker: VersionTracker) -> None:
        with tracker.store.transaction():
            tracker.store.create(Widget(name="a"))
            assert tracker.correlator.transaction_id is not None
        assert tracker.correlator.transaction_id is None

    def test_id_is_cleared_on_failure(self, tracker: VersionTracker) -> None:
        with pytest.raises(RuntimeError), tracker.store.transaction():
            tracker.store.create(Widget(name="a"))
            raise RuntimeError("boom")

        assert tracker.correlator.transaction_id is None
        assert tracker.store.all(Widget) == []
        assert tracker.versions_of("Widget", 1) == []

    def test_builder_outside_a_unit_of_work_does_not_publish(self, tracker: VersionTracker) -> None:
        widget = tracker.store.create(Widget(name="a"))
        widget.name = "b"

        first = tracker.builder.record_update(widget)
        second = tracker.builder.record_update(widget)

        assert first is not None and second is not None
        assert first.transaction_id == first.version_id
        assert second.transaction_id == second.version_id
        assert tracker.correlator.transaction_id is None

    def test_backfill_waits_for_publish(self, tracker: VersionTracker) -> None:
        with tracker.store.transaction():
            widget = tracker.store.create(Widget(name="a"))
            tracker.correlator.clear()
            version = tracker.versions_for(widget)[0]

            backfilled = tracker.correlator.update_transaction_id(version)
            assert backfilled.transaction_id == version.version_id
            assert tracker.correlator.transaction_id is None

            tracker.correlator.publish(backfilled)
            assert tracker.correlator.transaction_id == version.version_id


class TestWithoutTransactionColumn:
    def test_every_method_is_a_no_op(self, clock: MockClock) -> None:
        settings = StrataSettings(versions=VersionTableSettings(transaction_id=False))
        with VersionTracker(settings=settings, clock=clock) as tracker:
            tracker.register(Widget)
            assert not tracker.correlator.enabled

            with tracker.store.transaction():
                widget = tracker.store.create(Widget(name="a"))
                assert tracker.correlator.transaction_id is None

            values: dict[str, object] = {}
            tracker.correlator.add_transaction_id(values)
            assert values == {}
            assert tracker.versions_for(widget)[0].transaction_id is None
