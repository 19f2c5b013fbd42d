"""ClickHouse adapter.

ClickHouse has no foreign keys, so no integrity guard is needed. Tables
are emptied with ``TRUNCATE TABLE``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from dbfixtures.core.adapter import DialectAdapter
from dbfixtures.models.options import LoaderOptions, ParamStyle
from dbfixtures.utils.sql import execute

logger = logging.getLogger(__name__)


class ClickHouseAdapter(DialectAdapter):
    """Adapter for ClickHouse."""

    name = "clickhouse"
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
        logger.debug("ClickHouse: %d tables", len(self.tables))

    def database_name(self, conn: Connection) -> str:
        return conn.execute(text("SELECT DATABASE()")).scalar_one()

    def table_names(self, conn: Connection) -> list[str]:
        database = self.database_name(conn)
        rows = conn.execute(
            text("SELECT name FROM system.tables WHERE database = :database ORDER BY name"),
            {"database": database},
        )
        return [row[0] for row in rows]

    def clean_table_statement(self, table: str) -> str:
        return f"TRUNCATE TABLE {self.quote_identifier(table)}"

    def table_fingerprint(self, conn: Connection, table: str) -> Any:
        # groupBitXor returns UInt64; halved to fit a signed 64-bit integer
        return execute(
            conn,
            f"SELECT toInt64(groupBitXor(cityHash64(*)) / 2) FROM {self.quote_identifier(table)}",
        ).scalar()
