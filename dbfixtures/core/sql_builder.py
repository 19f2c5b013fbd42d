"""Compile fixture records into INSERT statements.

One statement per record, so a failure points at exactly one row.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy.engine import Connection

from dbfixtures.core.codec import ValueCodec
from dbfixtures.models.fixture import FixtureRecord, FixtureSet
from dbfixtures.models.options import ParamStyle

if TYPE_CHECKING:
    from dbfixtures.core.adapter import DialectAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledInsert:
    """A ready-to-run INSERT for one fixture record.

    Attributes:
        sql: Statement text with driver-level placeholders
        params: Positional parameters, in placeholder order
        source: Fixture the record came from
        index: Position of the record within its fixture
    """

    sql: str
    params: tuple[Any, ...]
    source: str
    index: int


@dataclass(frozen=True)
class CompiledFixture:
    """All compiled inserts for one fixture table."""

    table: str
    source: str
    inserts: tuple[CompiledInsert, ...]

    def __len__(self) -> int:
        return len(self.inserts)


class SQLBuilder:
    """Build INSERT statements using a dialect adapter's rules.

    Column order follows the record. Table and column names are always
    quoted by the adapter, and placeholders follow its parameter style.

    Examples:
        >>> builder = SQLBuilder(adapter, ValueCodec())
        >>> compiled = builder.compile_record(conn, "posts", {"id": 1}, "posts.yml", 0)
        >>> compiled.sql
        'INSERT INTO "posts" ("id") VALUES ($1)'
    """

    def __init__(self, adapter: DialectAdapter, codec: ValueCodec):
        self.adapter = adapter
        self.codec = codec

    def compile_record(
        self,
        conn: Connection,
        table: str,
        record: FixtureRecord,
        source: str,
        index: int,
    ) -> CompiledInsert:
        """Compile one record.

        Raises:
            ValueEncodingError: If a value cannot be encoded
        """
        columns: list[str] = []
        encoded_values = []
        for column, value in record.items():
            columns.append(column)
            encoded_values.append(self.codec.encode(value))

        has_params = any(not encoded.raw for encoded in encoded_values)
        style = self.adapter.param_style

        values: list[str] = []
        params: list[Any] = []
        for encoded in encoded_values:
            if encoded.raw:
                fragment = encoded.value
                if style is ParamStyle.FORMAT and has_params:
                    fragment = fragment.replace("%", "%%")
                values.append(fragment)
            else:
                params.append(self.adapter.adapt_value(encoded.value))
                values.append(style.placeholder(len(params)))

        sql = self.adapter.build_insert_statement(conn, table, columns, values)
        return CompiledInsert(sql=sql, params=tuple(params), source=source, index=index)

    def compile_fixture(self, conn: Connection, fixture: FixtureSet) -> CompiledFixture:
        """Compile every record of a fixture set, in declaration order."""
        inserts = tuple(
            self.compile_record(conn, fixture.table, record, fixture.source, index)
            for index, record in enumerate(fixture.records)
        )
        logger.debug("Compiled %d inserts for %s", len(inserts), fixture.table)
        return CompiledFixture(table=fixture.table, source=fixture.source, inserts=inserts)

    def compile(self, conn: Connection, fixtures: Sequence[FixtureSet]) -> list[CompiledFixture]:
        return [self.compile_fixture(conn, fixture) for fixture in fixtures]
