# tests/property/__init__.py
"""Property-based tests for Strata.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific examples we think of. A version history that cannot
give back exactly what it stored is not a history.

Test categories:
- test_serializer_properties: snapshot round trips, non-finite rejection
- test_change_detector_properties: ignore/only/skip/timestamp precedence
- test_navigation_properties: version_at and previous/next navigation
"""
