"""Shared fixtures for versioning tests.

Every test gets its own in-memory database and a MockClock, so version
timestamps are deterministic and advance only when a test says so.
"""

import json
import logging
from collections.abc import Iterator
from typing import Any

import pytest

from strata.core.clock import MockClock
from strata.core.logging import configure_logging
from strata.versioning import VersionTracker
from tests.fixtures.logs import LogReader, StartJsonLogs
from tests.fixtures.models import Person, Tag, Widget


@pytest.fixture
def clock() -> MockClock:
    return MockClock()


@pytest.fixture
def tracker(clock: MockClock) -> Iterator[VersionTracker]:
    """Tracker with Person, Tag and Widget registered with default options."""
    with VersionTracker(clock=clock) as tracker:
        tracker.register(Person)
        tracker.register(Tag)
        tracker.register(Widget)
        yield tracker


@pytest.fixture
def json_logs(capsys: pytest.CaptureFixture[str]) -> Iterator[StartJsonLogs]:
    """Call at the start of a test to log JSON to captured stdout.

    The call returns a reader for the events logged so far. Logging is
    configured inside the test body, where stdout is already captured.
    """

    def start() -> LogReader:
        configure_logging(json_output=True)

        def read() -> list[dict[str, Any]]:
            lines = capsys.readouterr().out.splitlines()
            return [json.loads(line) for line in lines if line.startswith("{")]

        return read

    yield start
    # The handler holds the captured stream, which closes with this test
    logging.getLogger().handlers = []
