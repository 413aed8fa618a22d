# tests/property/test_serializer_properties.py
"""Property-based tests for snapshot serializers.

Whatever a record can hold must come back from storage unchanged:
load(dump(snapshot)) == snapshot for both shipped serializers.
"""

from __future__ import annotations

from typing import Any

import pytest
from hypothesis import given
from hypothesis import strategies as st

from strata.core.serializers import JSONSerializer, YAMLSerializer
from tests.property.conftest import attribute_names, snapshots
from tests.property.settings import QUICK_SETTINGS, STANDARD_SETTINGS

SERIALIZERS = [JSONSerializer(), YAMLSerializer()]


@pytest.mark.parametrize("serializer", SERIALIZERS, ids=["json", "yaml"])
class TestRoundTripProperties:
    @given(snapshot=snapshots)
    @STANDARD_SETTINGS
    def test_snapshot_round_trip(self, serializer: Any, snapshot: dict[str, Any]) -> None:
        assert serializer.load(serializer.dump(snapshot)) == snapshot

    @given(snapshot=snapshots)
    @STANDARD_SETTINGS
    def test_dump_is_deterministic(self, serializer: Any, snapshot: dict[str, Any]) -> None:
        assert serializer.dump(snapshot) == serializer.dump(dict(reversed(list(snapshot.items()))))

    @given(name=attribute_names, value=st.sampled_from([float("nan"), float("inf"), float("-inf")]))
    @QUICK_SETTINGS
    def test_non_finite_floats_rejected(self, serializer: Any, name: str, value: float) -> None:
        with pytest.raises(ValueError, match="non-finite"):
            serializer.dump({name: value})
