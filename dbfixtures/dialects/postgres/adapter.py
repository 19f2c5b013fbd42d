"""PostgreSQL adapter.

Referential integrity is handled in one of three ways:
    - default: ``ALTER TABLE ... DISABLE TRIGGER ALL`` on every table inside
      the load transaction (requires superuser or table ownership)
    - use_alter_constraint: make foreign keys DEFERRABLE, defer them for
      the load, then make them NOT DEFERRABLE again
    - use_drop_constraint: drop every foreign key and recreate it from
      ``pg_get_constraintdef`` afterwards
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Sequence
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from dbfixtures.core.adapter import DialectAdapter
from dbfixtures.core.integrity import (
    ConstraintDescriptor,
    DeferredConstraintsGuard,
    DropRecreateConstraintsGuard,
    IntegrityGuard,
    TriggerSuspensionGuard,
)
from dbfixtures.dialects.postgres import queries
from dbfixtures.exceptions import SchemaIntrospectionError
from dbfixtures.models.options import LoaderOptions, ParamStyle

logger = logging.getLogger(__name__)

_VERSION_NUMBER = re.compile(r"\d+")


def parse_major_version(version: str) -> int:
    """Extract the major version from ``SELECT version()`` output.

    Raises:
        SchemaIntrospectionError: If the string contains no number
    """
    match = _VERSION_NUMBER.search(version)
    if match is None:
        raise SchemaIntrospectionError(f"Could not parse major version from: {version}")
    return int(match.group())


class PostgresAdapter(DialectAdapter):
    """Adapter for PostgreSQL and TimescaleDB."""

    name = "postgres"
    default_param_style = ParamStyle.DOLLAR
    supports_checksums = True
    supports_constraint_modes = True

    def __init__(self, options: Optional[LoaderOptions] = None):
        super().__init__(options)
        self.tables: list[str] = []
        self.sequences: list[str] = []
        self.non_deferrable_constraints: list[tuple[str, str]] = []
        self.constraints: list[tuple[str, str, str]] = []
        self.version = 0
        self._identity_tables: dict[str, bool] = {}
        self._identity_lock = threading.Lock()

    def introspect(self, engine: Engine) -> None:
        with engine.connect() as conn:
            self.tables = self.table_names(conn)
            self.sequences = [row[0] for row in conn.execute(text(queries.SEQUENCES))]
            self.non_deferrable_constraints = [
                (row[0], row[1]) for row in conn.execute(text(queries.NON_DEFERRABLE_FOREIGN_KEYS))
            ]
            self.constraints = [
                (row[0], row[1], row[2]) for row in conn.execute(text(queries.FOREIGN_KEY_DEFINITIONS))
            ]
            self.version = parse_major_version(conn.execute(text(queries.VERSION)).scalar_one())
        logger.debug(
            "PostgreSQL %d: %d tables, %d sequences, %d foreign keys",
            self.version,
            len(self.tables),
            len(self.sequences),
            len(self.constraints),
        )

    def database_name(self, conn: Connection) -> str:
        return conn.execute(text(queries.DATABASE_NAME)).scalar_one()

    def table_names(self, conn: Connection) -> list[str]:
        return [row[0] for row in conn.execute(text(queries.TABLES))]

    # =========================================================================
    # Inserts
    # =========================================================================

    def has_identity_column(self, conn: Connection, table: str) -> bool:
        """Whether ``table`` has a GENERATED ... AS IDENTITY column (cached)."""
        with self._identity_lock:
            if table not in self._identity_tables:
                schema, _, name = table.rpartition(".")
                count = conn.execute(
                    text(queries.IDENTITY_COLUMN_COUNT),
                    {"table_name": name, "table_schema": schema or None},
                ).scalar_one()
                self._identity_tables[table] = count > 0
            return self._identity_tables[table]

    def build_insert_statement(
        self,
        conn: Connection,
        table: str,
        columns: Sequence[str],
        values: Sequence[str],
    ) -> str:
        if columns and self.version >= 10 and self.has_identity_column(conn, table):
            quoted_columns = ", ".join(self.quote_identifier(column) for column in columns)
            return (
                f"INSERT INTO {self.quote_identifier(table)} ({quoted_columns}) "
                f"OVERRIDING SYSTEM VALUE VALUES ({', '.join(values)})"
            )
        return super().build_insert_statement(conn, table, columns, values)

    # =========================================================================
    # Referential integrity
    # =========================================================================

    def integrity_guard(self, engine: Engine) -> IntegrityGuard:
        if self.options.use_drop_constraint:
            return DropRecreateConstraintsGuard(engine, self.constraint_descriptors())
        if self.options.use_alter_constraint:
            return DeferredConstraintsGuard(
                engine,
                make_deferrable=self._alter_constraints("DEFERRABLE"),
                defer=["SET CONSTRAINTS ALL DEFERRED"],
                make_immediate=self._alter_constraints("NOT DEFERRABLE"),
            )
        return TriggerSuspensionGuard(
            engine,
            disable=[f"ALTER TABLE {self.quote_identifier(t)} DISABLE TRIGGER ALL" for t in self.tables],
            enable=[f"ALTER TABLE {self.quote_identifier(t)} ENABLE TRIGGER ALL" for t in self.tables],
        )

    def _alter_constraints(self, mode: str) -> list[str]:
        return [
            f"ALTER TABLE {self.quote_identifier(table)} ALTER CONSTRAINT {self.quote_part(name)} {mode}"
            for table, name in self.non_deferrable_constraints
        ]

    def constraint_descriptors(self) -> list[ConstraintDescriptor]:
        # regclass text is already a valid, quoted-where-needed table reference
        return [
            ConstraintDescriptor(
                table=table,
                name=name,
                drop_sql=f"ALTER TABLE {table} DROP CONSTRAINT {self.quote_part(name)}",
                create_sql=f"ALTER TABLE {table} ADD CONSTRAINT {self.quote_part(name)} {definition}",
            )
            for table, name, definition in self.constraints
        ]

    # =========================================================================
    # Checksums and sequences
    # =========================================================================

    def table_fingerprint(self, conn: Connection, table: str) -> Any:
        sql = queries.TABLE_CHECKSUM.format(table=self.quote_identifier(table))
        return conn.execute(text(sql)).scalar()

    def reset_sequences(self, engine: Engine) -> None:
        if not self.sequences:
            return
        value = self.options.reset_sequences_to
        with engine.begin() as conn:
            for sequence in self.sequences:
                conn.execute(
                    text(queries.RESET_SEQUENCE),
                    {"sequence": self.quote_identifier(sequence), "value": value},
                )
        logger.debug("Reset %d sequences to %d", len(self.sequences), value)
