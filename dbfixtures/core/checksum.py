"""Per-table content fingerprints used to skip unchanged tables."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any, Optional

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from dbfixtures.exceptions import ChecksumComputationError

logger = logging.getLogger(__name__)

Fingerprint = Callable[[Connection, str], Any]


class ChecksumCache:
    """Remember a fingerprint per table and compare against it.

    A table with no remembered fingerprint, or whose fingerprint cannot be
    computed, is always reported as modified.

    Args:
        fingerprint: Callable returning the current fingerprint of a table,
            or None when the dialect has no way to compute one
    """

    def __init__(self, fingerprint: Optional[Fingerprint]):
        self._fingerprint = fingerprint
        self._checksums: dict[str, Any] = {}

    @property
    def enabled(self) -> bool:
        return self._fingerprint is not None

    def get(self, table: str) -> Optional[Any]:
        return self._checksums.get(table)

    def invalidate(self, tables: Optional[Iterable[str]] = None) -> None:
        """Forget fingerprints for ``tables``, or for every table."""
        if tables is None:
            self._checksums.clear()
            return
        for table in tables:
            self._checksums.pop(table, None)

    def is_modified(self, conn: Connection, table: str) -> bool:
        if self._fingerprint is None or table not in self._checksums:
            return True
        try:
            current = self._fingerprint(conn, table)
        except SQLAlchemyError as e:
            logger.warning("Could not fingerprint %s, reloading it: %s", table, e)
            conn.rollback()
            return True
        return current != self._checksums[table]

    def refresh(self, engine: Engine, tables: Iterable[str]) -> None:
        """Recompute and store fingerprints for ``tables``.

        Raises:
            ChecksumComputationError: If any fingerprint fails; affected
                tables are forgotten so the next load reloads them
        """
        if self._fingerprint is None:
            return
        tables = list(tables)
        computed: dict[str, Any] = {}
        try:
            with engine.connect() as conn:
                for table in tables:
                    computed[table] = self._fingerprint(conn, table)
        except SQLAlchemyError as e:
            self.invalidate(tables)
            raise ChecksumComputationError(f"Failed to compute table checksums: {e}") from e
        self._checksums.update(computed)
        logger.debug("Refreshed checksums for %d tables", len(computed))
