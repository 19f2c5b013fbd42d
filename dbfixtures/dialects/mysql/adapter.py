"""MySQL / MariaDB adapter.

Foreign key checks are switched off for the load session with
``SET FOREIGN_KEY_CHECKS = 0`` and back on afterwards. Auto-increment
counters are reset per table with ``ALTER TABLE ... AUTO_INCREMENT``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from dbfixtures.core.adapter import DialectAdapter
from dbfixtures.core.integrity import IntegrityGuard, SessionPragmaGuard
from dbfixtures.models.options import LoaderOptions, ParamStyle
from dbfixtures.utils.sql import execute, execute_script

logger = logging.getLogger(__name__)

TABLES_QUERY = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = :schema
      AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""


class MySQLAdapter(DialectAdapter):
    """Adapter for MySQL and MariaDB."""

    name = "mysql"
    default_param_style = ParamStyle.QUESTION
    quote_open = "`"
    quote_close = "`"
    supports_checksums = True

    def __init__(self, options: Optional[LoaderOptions] = None):
        super().__init__(options)
        self.tables: list[str] = []

    def introspect(self, engine: Engine) -> None:
        with engine.connect() as conn:
            self.tables = self.table_names(conn)
        logger.debug("MySQL: %d tables", len(self.tables))

    def database_name(self, conn: Connection) -> str:
        return conn.execute(text("SELECT DATABASE()")).scalar_one()

    def table_names(self, conn: Connection) -> list[str]:
        schema = self.database_name(conn)
        return [row[0] for row in conn.execute(text(TABLES_QUERY), {"schema": schema})]

    def build_insert_statement(
        self,
        conn: Connection,
        table: str,
        columns: Sequence[str],
        values: Sequence[str],
    ) -> str:
        if not columns:
            return f"INSERT INTO {self.quote_identifier(table)} () VALUES ()"
        return super().build_insert_statement(conn, table, columns, values)

    def integrity_guard(self, engine: Engine) -> IntegrityGuard:
        return SessionPragmaGuard(
            engine,
            enable=["SET FOREIGN_KEY_CHECKS = 0"],
            disable=["SET FOREIGN_KEY_CHECKS = 1"],
        )

    def table_fingerprint(self, conn: Connection, table: str) -> Any:
        row = execute(conn, f"CHECKSUM TABLE {self.quote_identifier(table)}").one()
        return row[1]

    def reset_sequence_statement(self, table: str) -> str:
        return f"ALTER TABLE {self.quote_identifier(table)} AUTO_INCREMENT = {self.options.reset_sequences_to}"

    def reset_sequences(self, engine: Engine) -> None:
        if not self.tables:
            return
        statements = [self.reset_sequence_statement(table) for table in self.tables]
        with engine.begin() as conn:
            if self.options.allow_multiple_statements:
                execute(conn, ";\n".join(statements))
            else:
                execute_script(conn, statements)
        logger.debug("Reset AUTO_INCREMENT of %d tables", len(statements))
