"""Base DialectAdapter class.

A DialectAdapter knows everything engine-specific about loading fixtures:
identifier quoting, placeholder style, how to empty a table, how an INSERT
must look, how referential integrity is relaxed, how tables are
fingerprinted and how sequences are reset.

Concrete adapters live in ``dbfixtures.dialects`` and override only what
their engine does differently from the defaults here.
"""

from __future__ import annotations

import logging
from abc import ABC
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any, Optional

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from dbfixtures.core.checksum import ChecksumCache
from dbfixtures.core.integrity import IntegrityGuard, LoadFunction, NoIntegrityGuard
from dbfixtures.exceptions import DatabaseNameUndeterminableError, SchemaIntrospectionError
from dbfixtures.models.options import LoaderOptions, ParamStyle

logger = logging.getLogger(__name__)


class DialectAdapter(ABC):
    """Base class for engine-specific fixture loading behaviour.

    Class attributes:
        name: Canonical dialect identifier
        default_param_style: Placeholder style when neither the options nor
            the driver decide one
        quote_open / quote_close: Identifier quote characters; empty for
            engines without identifier quoting
        supports_checksums: Whether ``table_fingerprint`` is implemented
        supports_constraint_modes: Whether ``use_alter_constraint`` and
            ``use_drop_constraint`` apply

    Examples:
        >>> adapter = PostgresAdapter(LoaderOptions())
        >>> adapter.init(engine)
        >>> adapter.quote_identifier("test_schema.posts_tags")
        '"test_schema"."posts_tags"'
    """

    name: str = "base"
    default_param_style: ParamStyle = ParamStyle.DOLLAR
    quote_open: str = '"'
    quote_close: str = '"'
    supports_checksums: bool = False
    supports_constraint_modes: bool = False

    def __init__(self, options: Optional[LoaderOptions] = None):
        self.options = options or LoaderOptions()
        self._param_style: Optional[ParamStyle] = self.options.param_style
        self.checksums = ChecksumCache(self.table_fingerprint if self.supports_checksums else None)
        self.initialized = False

    # =========================================================================
    # Initialization
    # =========================================================================

    def init(self, engine: Engine) -> None:
        """Collect the schema metadata later steps need.

        Safe to call more than once; only the first call does any work.

        Raises:
            SchemaIntrospectionError: If a metadata query fails
        """
        if self.initialized:
            return
        if self._param_style is None:
            dbapi = getattr(engine.dialect, "dbapi", None)
            self._param_style = ParamStyle.from_dbapi(getattr(dbapi, "paramstyle", None))
        try:
            self.introspect(engine)
        except SQLAlchemyError as e:
            raise SchemaIntrospectionError(
                f"Failed to collect {self.name} schema metadata: {e}"
            ) from e
        self.initialized = True
        logger.debug("Initialized %s adapter (param style %s)", self.name, self.param_style.name)

    def introspect(self, engine: Engine) -> None:
        """Query tables, sequences and constraints. Override per engine."""

    @property
    def param_style(self) -> ParamStyle:
        return self._param_style or self.default_param_style

    # =========================================================================
    # SQL rendering
    # =========================================================================

    def quote_part(self, part: str) -> str:
        if not self.quote_open:
            return part
        escaped = part.replace(self.quote_close, self.quote_close * 2)
        return f"{self.quote_open}{escaped}{self.quote_close}"

    def quote_identifier(self, name: str) -> str:
        """Quote a possibly schema-qualified identifier, part by part."""
        return ".".join(self.quote_part(part) for part in name.split("."))

    def clean_table_statement(self, table: str) -> str:
        return f"DELETE FROM {self.quote_identifier(table)}"

    def build_insert_statement(
        self,
        conn: Connection,
        table: str,
        columns: Sequence[str],
        values: Sequence[str],
    ) -> str:
        """Render an INSERT.

        Args:
            conn: Connection for engines that look up column metadata
            table: Unquoted table name
            columns: Unquoted column names
            values: Placeholders or raw SQL fragments, one per column

        Returns:
            ``INSERT INTO t (cols) VALUES (vals)``
        """
        if not columns:
            return f"INSERT INTO {self.quote_identifier(table)} DEFAULT VALUES"
        quoted_columns = ", ".join(self.quote_identifier(column) for column in columns)
        return (
            f"INSERT INTO {self.quote_identifier(table)} ({quoted_columns}) "
            f"VALUES ({', '.join(values)})"
        )

    def adapt_value(self, value: Any) -> Any:
        """Convert an encoded value into what the driver binds."""
        return value

    @contextmanager
    def inserting(self, conn: Connection, table: str) -> Iterator[None]:
        """Wrap the inserts of one table (e.g. to allow explicit identity values)."""
        yield

    # =========================================================================
    # Referential integrity
    # =========================================================================

    def integrity_guard(self, engine: Engine) -> IntegrityGuard:
        """Build the guard for one load."""
        return NoIntegrityGuard(engine)

    def disable_referential_integrity(self, engine: Engine, load_fn: LoadFunction) -> IntegrityGuard:
        """Run ``load_fn`` in one transaction with integrity relaxed.

        Returns:
            The guard, in its final state
        """
        guard = self.integrity_guard(engine)
        guard.run(load_fn)
        return guard

    # =========================================================================
    # Introspection
    # =========================================================================

    def database_name(self, conn: Connection) -> str:
        """Name of the connected database, used by the test database check.

        Raises:
            DatabaseNameUndeterminableError: If the engine cannot report one
        """
        raise DatabaseNameUndeterminableError(
            f"Could not determine the {self.name} database name; "
            "skip the test database check to load anyway"
        )

    def table_names(self, conn: Connection) -> list[str]:
        return []

    # =========================================================================
    # Checksums
    # =========================================================================

    def table_fingerprint(self, conn: Connection, table: str) -> Any:
        """Order-insensitive fingerprint of a table's current rows."""
        raise NotImplementedError(f"{self.name} does not support table checksums")

    def is_table_modified(self, conn: Connection, table: str) -> bool:
        return self.checksums.is_modified(conn, table)

    def compute_checksums(self, engine: Engine, tables: Iterable[str]) -> None:
        """Remember fingerprints for ``tables``.

        Raises:
            ChecksumComputationError: If a fingerprint query fails
        """
        self.checksums.refresh(engine, tables)

    # =========================================================================
    # Sequences
    # =========================================================================

    def reset_sequences(self, engine: Engine) -> None:
        """Reset sequences and identity counters to ``options.reset_sequences_to``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(param_style={self.param_style.name})"
