# tests/property/conftest.py
"""Shared Hypothesis strategies for property-based tests.

Strategy Categories:
- Attribute values of every AttributeType
- Snapshots (attribute name -> value), as stored in versions.object
- Change sets over a fixed attribute pool

Usage:
    from tests.property.conftest import snapshots

    @given(snapshot=snapshots)
    def test_round_trip(snapshot: dict) -> None:
        ...
"""

from __future__ import annotations

from datetime import UTC

from hypothesis import strategies as st

# =============================================================================
# Attribute values
# =============================================================================

# Printable text that YAML and JSON both carry verbatim
safe_text = st.text(
    alphabet=st.characters(min_codepoint=32, max_codepoint=0x2FF, exclude_categories=("Cc", "Cs")),
    max_size=40,
)

json_primitives = st.none() | st.booleans() | st.integers() | st.floats(allow_nan=False, allow_infinity=False) | safe_text

json_documents = st.recursive(
    json_primitives,
    lambda children: st.lists(children, max_size=5) | st.dictionaries(safe_text, children, max_size=5),
    max_leaves=20,
)

attribute_values = (
    json_primitives
    | st.datetimes(timezones=st.just(UTC))
    | st.dates()
    | st.decimals(allow_nan=False, allow_infinity=False)
    | st.binary(max_size=32)
    | json_documents
)

# =============================================================================
# Snapshots
# =============================================================================

attribute_names = st.from_regex(r"[a-z][a-z0-9_]{0,15}", fullmatch=True)

snapshots = st.dictionaries(attribute_names, attribute_values, max_size=12)

# =============================================================================
# Change sets
# =============================================================================

ATTRIBUTE_POOL = ("name", "color", "notes", "quantity", "secret", "updated_at")

attribute_subsets = st.frozensets(st.sampled_from(ATTRIBUTE_POOL))
