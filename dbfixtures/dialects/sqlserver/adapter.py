"""SQL Server adapter.

Constraint checking is suspended for every table with
``ALTER TABLE ... NOCHECK CONSTRAINT ALL`` before the load and re-enabled
(and re-validated) afterwards. Inserts into tables owning an identity
column are wrapped in ``SET IDENTITY_INSERT ... ON/OFF``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from dbfixtures.core.adapter import DialectAdapter
from dbfixtures.core.integrity import ConstraintToggleGuard, IntegrityGuard
from dbfixtures.models.options import LoaderOptions, ParamStyle
from dbfixtures.utils.sql import execute

logger = logging.getLogger(__name__)

TABLES_QUERY = """
    SELECT table_schema + '.' + table_name
    FROM information_schema.tables
    WHERE table_type = 'BASE TABLE'
      AND table_name <> 'spt_values'
    ORDER BY 1
"""

IDENTITY_TABLES_QUERY = """
    SELECT s.name + '.' + t.name
    FROM sys.identity_columns ic
    INNER JOIN sys.tables t ON t.object_id = ic.object_id
    INNER JOIN sys.schemas s ON s.schema_id = t.schema_id
    ORDER BY 1
"""

HAS_IDENTITY_QUERY = "SELECT COUNT(*) FROM sys.identity_columns WHERE object_id = OBJECT_ID(:name)"


class SQLServerAdapter(DialectAdapter):
    """Adapter for Microsoft SQL Server."""

    name = "sqlserver"
    default_param_style = ParamStyle.QUESTION
    quote_open = "["
    quote_close = "]"
    supports_checksums = True

    def __init__(self, options: Optional[LoaderOptions] = None):
        super().__init__(options)
        self.tables: list[str] = []
        self.identity_tables: list[str] = []
        self._identity_cache: dict[str, bool] = {}
        self._identity_lock = threading.Lock()

    def introspect(self, engine: Engine) -> None:
        with engine.connect() as conn:
            self.tables = self.table_names(conn)
            self.identity_tables = [row[0] for row in conn.execute(text(IDENTITY_TABLES_QUERY))]
        logger.debug(
            "SQL Server: %d tables, %d with identity columns", len(self.tables), len(self.identity_tables)
        )

    def database_name(self, conn: Connection) -> str:
        return conn.execute(text("SELECT DB_NAME()")).scalar_one()

    def table_names(self, conn: Connection) -> list[str]:
        return [row[0] for row in conn.execute(text(TABLES_QUERY))]

    def has_identity_column(self, conn: Connection, table: str) -> bool:
        with self._identity_lock:
            if table not in self._identity_cache:
                count = conn.execute(
                    text(HAS_IDENTITY_QUERY), {"name": self.quote_identifier(table)}
                ).scalar_one()
                self._identity_cache[table] = count > 0
            return self._identity_cache[table]

    @contextmanager
    def inserting(self, conn: Connection, table: str) -> Iterator[None]:
        if not self.has_identity_column(conn, table):
            yield
            return
        quoted = self.quote_identifier(table)
        execute(conn, f"SET IDENTITY_INSERT {quoted} ON")
        try:
            yield
        finally:
            execute(conn, f"SET IDENTITY_INSERT {quoted} OFF")

    def integrity_guard(self, engine: Engine) -> IntegrityGuard:
        return ConstraintToggleGuard(
            engine,
            disable=[f"ALTER TABLE {self.quote_identifier(t)} NOCHECK CONSTRAINT ALL" for t in self.tables],
            enable=[
                f"ALTER TABLE {self.quote_identifier(t)} WITH CHECK CHECK CONSTRAINT ALL" for t in self.tables
            ],
        )

    def table_fingerprint(self, conn: Connection, table: str) -> Any:
        row = execute(
            conn,
            f"SELECT COUNT_BIG(*), CHECKSUM_AGG(BINARY_CHECKSUM(*)) FROM {self.quote_identifier(table)}",
        ).one()
        return tuple(row)

    def reset_sequences(self, engine: Engine) -> None:
        if not self.identity_tables:
            return
        value = self.options.reset_sequences_to
        with engine.begin() as conn:
            for table in self.identity_tables:
                quoted = self.quote_identifier(table).replace("'", "''")
                execute(conn, f"DBCC CHECKIDENT ('{quoted}', RESEED, {value})")
        logger.debug("Reseeded %d identity columns to %d", len(self.identity_tables), value)
