"""Database operation helpers to reduce boilerplate in the recorder and store.

Consolidates the repeated `with self._db.connection() as conn:` pattern
for the version recorder and the record store.
"""

from typing import TYPE_CHECKING, Any

from sqlalchemy import Executable
from sqlalchemy.engine import Row

if TYPE_CHECKING:
    from strata.versioning.database import VersionDB


class DatabaseOps:
    """Helper for common database operations.

    All calls go through VersionDB.connection(), so they join the unit of
    work open in the current context, if any.
    """

    def __init__(self, db: "VersionDB") -> None:
        self._db = db

    def execute_fetchone(self, query: Executable) -> Row[Any] | None:
        """Execute query and return single row or None."""
        with self._db.connection() as conn:
            result = conn.execute(query)
            return result.fetchone()

    def execute_fetchall(self, query: Executable) -> list[Row[Any]]:
        """Execute query and return all rows."""
        with self._db.connection() as conn:
            result = conn.execute(query)
            return list(result.fetchall())

    def execute_insert(self, stmt: Executable) -> Any:
        """Execute insert statement and return the new primary key.

        Raises:
            ValueError: If zero rows are affected
        """
        with self._db.connection() as conn:
            result = conn.execute(stmt)
            if result.rowcount == 0:
                raise ValueError("execute_insert: zero rows affected - write failed (missing parent row or constraint violation)")
            inserted = result.inserted_primary_key
            return inserted[0] if inserted else None

    def execute_update(self, stmt: Executable) -> None:
        """Execute update statement.

        Raises:
            ValueError: If zero rows are affected
        """
        with self._db.connection() as conn:
            result = conn.execute(stmt)
            if result.rowcount == 0:
                raise ValueError("execute_update: zero rows affected - target row does not exist")

    def execute_write(self, stmt: Executable) -> int:
        """Execute an update or delete and return the affected row count.

        For writes where zero rows is a legitimate outcome.
        """
        with self._db.connection() as conn:
            result = conn.execute(stmt)
            return result.rowcount
