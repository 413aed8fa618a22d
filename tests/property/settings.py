# tests/property/settings.py
"""Standardized Hypothesis settings profiles for property tests.

Usage:
    from tests.property.settings import STANDARD_SETTINGS

    @given(snapshot=snapshots)
    @STANDARD_SETTINGS
    def test_something(snapshot):
        ...

Tiers:
- STANDARD_SETTINGS: 100 examples - Regular property tests
- SLOW_SETTINGS: 30 examples - Database-backed tests
- QUICK_SETTINGS: 20 examples - Fast validation tests (simple rejection)
"""

from hypothesis import settings

# Standard property tests - good balance of coverage and speed
STANDARD_SETTINGS = settings(max_examples=100)

# Every example builds a fresh database and a version history
SLOW_SETTINGS = settings(max_examples=30)

# Quick validation tests - simple input rejection
QUICK_SETTINGS = settings(max_examples=20)
