"""Oracle adapter.

Identifiers are upper-cased and double-quoted. Enabled foreign keys of the
current user are disabled before the load and enabled again afterwards.
Sequences cannot be moved backwards, so they are dropped and recreated
starting at the floor value.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from dbfixtures.core.adapter import DialectAdapter
from dbfixtures.core.integrity import ConstraintToggleGuard, IntegrityGuard
from dbfixtures.models.options import LoaderOptions, ParamStyle
from dbfixtures.utils.sql import execute

logger = logging.getLogger(__name__)

ENABLED_FOREIGN_KEYS_QUERY = """
    SELECT table_name, constraint_name
    FROM user_constraints
    WHERE constraint_type = 'R'
      AND status = 'ENABLED'
"""


class OracleAdapter(DialectAdapter):
    """Adapter for Oracle Database."""

    name = "oracle"
    default_param_style = ParamStyle.COLON

    def __init__(self, options: Optional[LoaderOptions] = None):
        super().__init__(options)
        self.tables: list[str] = []
        self.sequences: list[str] = []
        self.foreign_keys: list[tuple[str, str]] = []

    def introspect(self, engine: Engine) -> None:
        with engine.connect() as conn:
            self.tables = self.table_names(conn)
            self.sequences = [row[0] for row in conn.execute(text("SELECT sequence_name FROM user_sequences"))]
            self.foreign_keys = [(row[0], row[1]) for row in conn.execute(text(ENABLED_FOREIGN_KEYS_QUERY))]
        logger.debug(
            "Oracle: %d tables, %d sequences, %d foreign keys",
            len(self.tables),
            len(self.sequences),
            len(self.foreign_keys),
        )

    def quote_part(self, part: str) -> str:
        return super().quote_part(part.upper())

    def database_name(self, conn: Connection) -> str:
        return conn.execute(text("SELECT user FROM DUAL")).scalar_one()

    def table_names(self, conn: Connection) -> list[str]:
        return [row[0] for row in conn.execute(text("SELECT table_name FROM user_tables ORDER BY table_name"))]

    def integrity_guard(self, engine: Engine) -> IntegrityGuard:
        return ConstraintToggleGuard(
            engine,
            disable=[
                f"ALTER TABLE {self.quote_identifier(table)} DISABLE CONSTRAINT {self.quote_part(name)}"
                for table, name in self.foreign_keys
            ],
            enable=[
                f"ALTER TABLE {self.quote_identifier(table)} ENABLE CONSTRAINT {self.quote_part(name)}"
                for table, name in self.foreign_keys
            ],
        )

    def reset_sequences(self, engine: Engine) -> None:
        value = self.options.reset_sequences_to
        with engine.begin() as conn:
            for sequence in self.sequences:
                quoted = self.quote_identifier(sequence)
                execute(conn, f"DROP SEQUENCE {quoted}")
                execute(conn, f"CREATE SEQUENCE {quoted} START WITH {value}")
        logger.debug("Recreated %d sequences starting at %d", len(self.sequences), value)
