"""Cloud Spanner (GoogleSQL) adapter.

Spanner cannot report a database name, so loads require
``skip_test_database_check``. Foreign keys are dropped before the load and
rebuilt from INFORMATION_SCHEMA afterwards. JSON columns need their
bound text wrapped in ``PARSE_JSON``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from dbfixtures.core.adapter import DialectAdapter
from dbfixtures.core.integrity import ConstraintDescriptor, DropRecreateConstraintsGuard, IntegrityGuard
from dbfixtures.models.options import LoaderOptions, ParamStyle

logger = logging.getLogger(__name__)

FOREIGN_KEYS_QUERY = """
    SELECT
        tc.TABLE_NAME AS table_name,
        tc.CONSTRAINT_NAME AS constraint_name,
        kcu.COLUMN_NAME AS column_name,
        kcu.ORDINAL_POSITION AS position,
        kcu2.TABLE_NAME AS referenced_table,
        kcu2.COLUMN_NAME AS referenced_column
    FROM information_schema.TABLE_CONSTRAINTS tc
    JOIN information_schema.KEY_COLUMN_USAGE kcu
        ON tc.CONSTRAINT_SCHEMA = kcu.CONSTRAINT_SCHEMA
        AND tc.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME
    JOIN information_schema.REFERENTIAL_CONSTRAINTS rc
        ON tc.CONSTRAINT_SCHEMA = rc.CONSTRAINT_SCHEMA
        AND tc.CONSTRAINT_NAME = rc.CONSTRAINT_NAME
    JOIN information_schema.KEY_COLUMN_USAGE kcu2
        ON rc.UNIQUE_CONSTRAINT_SCHEMA = kcu2.CONSTRAINT_SCHEMA
        AND rc.UNIQUE_CONSTRAINT_NAME = kcu2.CONSTRAINT_NAME
        AND kcu.ORDINAL_POSITION = kcu2.ORDINAL_POSITION
    WHERE tc.CONSTRAINT_TYPE = 'FOREIGN KEY'
    ORDER BY tc.TABLE_NAME, tc.CONSTRAINT_NAME, kcu.ORDINAL_POSITION
"""

JSON_COLUMNS_QUERY = """
    SELECT table_name, column_name
    FROM INFORMATION_SCHEMA.COLUMNS
    WHERE table_schema = ''
      AND spanner_type = 'JSON'
"""

TABLES_QUERY = """
    SELECT TABLE_NAME
    FROM INFORMATION_SCHEMA.TABLES
    WHERE TABLE_SCHEMA = ''
    ORDER BY TABLE_NAME
"""


@dataclass(frozen=True)
class SpannerForeignKey:
    """A foreign key reassembled from its key-column rows."""

    table: str
    name: str
    columns: tuple[str, ...]
    referenced_table: str
    referenced_columns: tuple[str, ...]

    def drop_sql(self) -> str:
        return f"ALTER TABLE {self.table} DROP CONSTRAINT {self.name}"

    def create_sql(self) -> str:
        return (
            f"ALTER TABLE {self.table} ADD CONSTRAINT {self.name} "
            f"FOREIGN KEY ({', '.join(self.columns)}) "
            f"REFERENCES {self.referenced_table} ({', '.join(self.referenced_columns)})"
        )


def group_foreign_keys(rows: Sequence[Sequence]) -> list[SpannerForeignKey]:
    """Group (table, name, column, position, ref_table, ref_column) rows by constraint."""
    grouped: dict[str, list[Sequence]] = {}
    for row in rows:
        grouped.setdefault(row[1], []).append(row)

    foreign_keys = []
    for name, key_rows in grouped.items():
        key_rows = sorted(key_rows, key=lambda r: r[3])
        foreign_keys.append(
            SpannerForeignKey(
                table=key_rows[0][0],
                name=name,
                columns=tuple(r[2] for r in key_rows),
                referenced_table=key_rows[0][4],
                referenced_columns=tuple(r[5] for r in key_rows),
            )
        )
    return foreign_keys


class SpannerAdapter(DialectAdapter):
    """Adapter for Cloud Spanner using GoogleSQL."""

    name = "spanner"
    default_param_style = ParamStyle.AT_SIGN
    quote_open = ""
    quote_close = ""

    def __init__(self, options: Optional[LoaderOptions] = None):
        super().__init__(options)
        self.foreign_keys: list[SpannerForeignKey] = []
        self.json_columns: dict[str, set[str]] = {}

    def introspect(self, engine: Engine) -> None:
        # Independent read-only queries, run side by side
        with ThreadPoolExecutor(max_workers=2) as pool:
            foreign_keys = pool.submit(self._load_foreign_keys, engine)
            json_columns = pool.submit(self._load_json_columns, engine)
            self.foreign_keys = foreign_keys.result()
            self.json_columns = json_columns.result()
        logger.debug(
            "Spanner: %d foreign keys, %d tables with JSON columns",
            len(self.foreign_keys),
            len(self.json_columns),
        )

    def _load_foreign_keys(self, engine: Engine) -> list[SpannerForeignKey]:
        with engine.connect() as conn:
            return group_foreign_keys([tuple(row) for row in conn.execute(text(FOREIGN_KEYS_QUERY))])

    def _load_json_columns(self, engine: Engine) -> dict[str, set[str]]:
        columns: dict[str, set[str]] = {}
        with engine.connect() as conn:
            for table, column in conn.execute(text(JSON_COLUMNS_QUERY)):
                columns.setdefault(table, set()).add(column)
        return columns

    def table_names(self, conn: Connection) -> list[str]:
        return [row[0] for row in conn.execute(text(TABLES_QUERY))]

    def clean_table_statement(self, table: str) -> str:
        return f"DELETE FROM {self.quote_identifier(table)} WHERE true"

    def build_insert_statement(
        self,
        conn: Connection,
        table: str,
        columns: Sequence[str],
        values: Sequence[str],
    ) -> str:
        json_columns = self.json_columns.get(table)
        if json_columns:
            values = [
                f"PARSE_JSON({value})" if column in json_columns else value
                for column, value in zip(columns, values)
            ]
        return super().build_insert_statement(conn, table, columns, values)

    def integrity_guard(self, engine: Engine) -> IntegrityGuard:
        return DropRecreateConstraintsGuard(
            engine,
            [
                ConstraintDescriptor(
                    table=fk.table, name=fk.name, drop_sql=fk.drop_sql(), create_sql=fk.create_sql()
                )
                for fk in self.foreign_keys
            ],
        )
