# src/strata/core/clock.py
"""Clock abstraction for version timestamps.

Version ordering, version_at() and auto timestamps all depend on wall
clock time. Production code uses SystemClock (the default). Tests inject
MockClock to control time advancement.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Abstract wall clock.

    Implementations:
    - SystemClock: Uses datetime.now(UTC) (production)
    - MockClock: Returns controllable times (testing)
    """

    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Production clock using the system's UTC wall time."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock()
        tracker = VersionTracker(clock=clock)

        tracker.store.create(widget)   # Version at t0
        clock.advance(60)
        tracker.store.save(widget)     # Version at t0 + 60s
    """

    def __init__(self, start: datetime | None = None) -> None:
        """Initialize mock clock at a given time.

        Args:
            start: Initial time (default 2024-01-01T00:00:00Z). Naive values
                are taken as UTC.
        """
        if start is None:
            start = datetime(2024, 1, 1, tzinfo=UTC)
        elif start.tzinfo is None:
            start = start.replace(tzinfo=UTC)
        self._current = start

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float) -> datetime:
        """Advance mock time by specified seconds.

        Args:
            seconds: Amount to advance (must be non-negative).

        Returns:
            The new current time.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        self._current += timedelta(seconds=seconds)
        return self._current

    def set(self, value: datetime) -> None:
        """Set mock time to an absolute value.

        Unlike advance(), this can move time backwards.
        """
        self._current = value if value.tzinfo is not None else value.replace(tzinfo=UTC)


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
