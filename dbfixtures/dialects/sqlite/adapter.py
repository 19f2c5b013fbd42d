"""SQLite adapter.

Foreign keys are deferred to commit time with ``PRAGMA defer_foreign_keys``.
SQLite has no server-side aggregate hash, so table fingerprints are
computed client-side from the rows.
"""

from __future__ import annotations

import hashlib
import logging
import os
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from dbfixtures.core.adapter import DialectAdapter
from dbfixtures.core.integrity import IntegrityGuard, SessionPragmaGuard
from dbfixtures.models.options import LoaderOptions, ParamStyle
from dbfixtures.utils.sql import execute

logger = logging.getLogger(__name__)

TABLES_QUERY = """
    SELECT name
    FROM sqlite_master
    WHERE type = 'table'
      AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\'
    ORDER BY name
"""

AUTOINCREMENT_TABLES_QUERY = """
    SELECT name
    FROM sqlite_master
    WHERE type = 'table'
      AND UPPER(sql) LIKE '%AUTOINCREMENT%'
    ORDER BY name
"""

_MASK_64 = (1 << 64) - 1


class SQLitePragmaGuard(SessionPragmaGuard):
    """Session pragma guard that opens the transaction explicitly.

    pysqlite only begins a transaction implicitly before DML, so the pragma
    would otherwise run in autocommit mode and be switched off again
    before the first DELETE.
    """

    def relax_session(self, conn: Connection) -> None:
        dbapi_connection = conn.connection.dbapi_connection
        if not getattr(dbapi_connection, "in_transaction", True):
            execute(conn, "BEGIN")
        super().relax_session(conn)


class SQLiteAdapter(DialectAdapter):
    """Adapter for SQLite."""

    name = "sqlite"
    default_param_style = ParamStyle.QUESTION
    supports_checksums = True

    def __init__(self, options: Optional[LoaderOptions] = None):
        super().__init__(options)
        self.autoincrement_tables: list[str] = []

    def introspect(self, engine: Engine) -> None:
        with engine.connect() as conn:
            self.autoincrement_tables = [row[0] for row in conn.execute(text(AUTOINCREMENT_TABLES_QUERY))]
        logger.debug("SQLite: %d tables with AUTOINCREMENT", len(self.autoincrement_tables))

    def database_name(self, conn: Connection) -> str:
        """Base name of the main database file (empty for in-memory databases)."""
        for _, name, path in conn.execute(text("PRAGMA database_list")):
            if name == "main":
                return os.path.basename(path or "")
        return ""

    def table_names(self, conn: Connection) -> list[str]:
        return [row[0] for row in conn.execute(text(TABLES_QUERY))]

    def adapt_value(self, value: Any) -> Any:
        # sqlite3's default datetime adapters are deprecated
        if isinstance(value, datetime):
            return value.isoformat(sep=" ")
        if isinstance(value, (date, time)):
            return value.isoformat()
        if isinstance(value, Decimal):
            return str(value)
        return value

    def integrity_guard(self, engine: Engine) -> IntegrityGuard:
        return SQLitePragmaGuard(
            engine,
            enable=["PRAGMA defer_foreign_keys = ON"],
            disable=["PRAGMA defer_foreign_keys = OFF"],
        )

    def table_fingerprint(self, conn: Connection, table: str) -> Any:
        """Row count plus the sum of per-row digests, modulo 2**64."""
        count = 0
        total = 0
        for row in execute(conn, f"SELECT * FROM {self.quote_identifier(table)}"):
            digest = hashlib.sha256(repr(tuple(row)).encode("utf-8")).digest()
            total = (total + int.from_bytes(digest[:8], "big")) & _MASK_64
            count += 1
        return count, total

    def reset_sequences(self, engine: Engine) -> None:
        """Point ``sqlite_sequence`` of every AUTOINCREMENT table at the floor.

        Tables with a plain INTEGER PRIMARY KEY have no counter to reset.
        """
        if not self.autoincrement_tables:
            return
        value = self.options.reset_sequences_to
        with engine.begin() as conn:
            for table in self.autoincrement_tables:
                conn.execute(text("DELETE FROM sqlite_sequence WHERE name = :name"), {"name": table})
                conn.execute(
                    text("INSERT INTO sqlite_sequence (name, seq) VALUES (:name, :seq)"),
                    {"name": table, "seq": value},
                )
        logger.debug("Reset %d AUTOINCREMENT counters to %d", len(self.autoincrement_tables), value)
