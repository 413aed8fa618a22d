"""Transaction correlation: one id shared by every version of a unit of work.

The first version written while no id is published adopts its own
version_id and writes it back onto its row. Once that version has been
recorded in full it is published to the current execution context, and
later versions in the same unit of work pick it up at insert time. Whoever
owns the unit of work calls clear() when it ends, success or failure.

Without a transaction_id column every method is a no-op.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from strata.contracts.records import Version
from strata.core.logging import get_logger
from strata.core.state import VersioningState
from strata.versioning.recorder import VersionRecorder

logger = get_logger(__name__)


class TransactionCorrelator:
    """Assigns and publishes transaction correlation ids."""

    def __init__(self, recorder: VersionRecorder, state: VersioningState) -> None:
        self._recorder = recorder
        self._state = state

    @property
    def enabled(self) -> bool:
        return self._recorder.tracks_transaction_id

    @property
    def transaction_id(self) -> int | None:
        return self._state.transaction_id

    def add_transaction_id(self, values: dict[str, Any]) -> None:
        """Copy the published id (possibly None) into version insert values."""
        if not self.enabled:
            return
        values["transaction_id"] = self._state.transaction_id

    def update_transaction_id(self, version: Version) -> Version:
        """Adopt ``version`` as the correlation root if no id is published.

        Only writes the id onto the version's row; see publish().

        Returns:
            The version, with transaction_id filled in when it was backfilled
        """
        if not self.enabled or self._state.transaction_id is not None:
            return version
        self._recorder.set_transaction_id(version.version_id, version.version_id)
        return replace(version, transaction_id=version.version_id)

    def publish(self, version: Version) -> None:
        """Share a fully recorded root version's id with the rest of the unit of work.

        Outside a unit of work nobody would clear it, so nothing is published.
        """
        if not self.enabled or self._state.transaction_id is not None or version.transaction_id is None:
            return
        if not self._recorder.db.in_transaction:
            return
        self._state.set_transaction_id(version.transaction_id)
        logger.debug("transaction_id_published", transaction_id=version.transaction_id, item_type=version.item_type)

    def clear(self) -> None:
        """Forget the published id. Called when the unit of work ends."""
        self._state.set_transaction_id(None)
