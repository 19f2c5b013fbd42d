"""CockroachDB adapter.

CockroachDB has no deferrable constraints and no ``DISABLE TRIGGER``, so
foreign keys are always dropped before the load and recreated afterwards
from ``SHOW CONSTRAINTS``. Quoting and sequences work as in PostgreSQL.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from dbfixtures.core.integrity import ConstraintDescriptor, DropRecreateConstraintsGuard, IntegrityGuard
from dbfixtures.dialects.postgres import queries
from dbfixtures.dialects.postgres.adapter import PostgresAdapter
from dbfixtures.models.options import LoaderOptions

logger = logging.getLogger(__name__)

FOREIGN_KEY = "FOREIGN KEY"


class CockroachAdapter(PostgresAdapter):
    """Adapter for CockroachDB."""

    name = "cockroach"
    supports_checksums = False
    supports_constraint_modes = False

    def __init__(self, options: Optional[LoaderOptions] = None):
        super().__init__(options)
        self.foreign_keys: list[ConstraintDescriptor] = []

    def introspect(self, engine: Engine) -> None:
        with engine.connect() as conn:
            self.tables = self.table_names(conn)
            self.sequences = [row[0] for row in conn.execute(text(queries.SEQUENCES))]
            self.foreign_keys = self._foreign_keys(conn)
        logger.debug(
            "CockroachDB: %d tables, %d sequences, %d foreign keys",
            len(self.tables),
            len(self.sequences),
            len(self.foreign_keys),
        )

    def _foreign_keys(self, conn: Connection) -> list[ConstraintDescriptor]:
        descriptors = []
        for table in self.tables:
            quoted = self.quote_identifier(table)
            rows = conn.execute(text(queries.SHOW_CONSTRAINTS.format(table=quoted))).mappings()
            for row in rows:
                if row["constraint_type"] != FOREIGN_KEY:
                    continue
                name = self.quote_part(row["constraint_name"])
                descriptors.append(
                    ConstraintDescriptor(
                        table=table,
                        name=row["constraint_name"],
                        drop_sql=f"ALTER TABLE {quoted} DROP CONSTRAINT {name}",
                        create_sql=f"ALTER TABLE {quoted} ADD CONSTRAINT {name} {row['details']}",
                    )
                )
        return descriptors

    def integrity_guard(self, engine: Engine) -> IntegrityGuard:
        return DropRecreateConstraintsGuard(engine, self.foreign_keys)

    def constraint_descriptors(self) -> list[ConstraintDescriptor]:
        return list(self.foreign_keys)
