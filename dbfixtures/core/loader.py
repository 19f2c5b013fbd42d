"""Fixture loader.

The Loader replaces the contents of fixture tables with the declared
fixture rows.

Load steps:
    1. Refuse to run unless the database name contains "test"
    2. Ask the adapter which fixture tables changed since the last load
    3. Inside the adapter's integrity guard, delete every changed table,
       then insert each changed table's rows in declaration order
    4. Reset sequences and refresh table checksums

Examples:
    >>> from sqlalchemy import create_engine
    >>> from dbfixtures import FixtureSet, Loader
    >>> engine = create_engine("postgresql+psycopg2://localhost/app_test")
    >>> loader = Loader(
    ...     engine,
    ...     "postgres",
    ...     [FixtureSet.from_file("fixtures/posts.yml")],
    ...     use_alter_constraint=True,
    ... )
    >>> result = loader.load()
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from dbfixtures.core.adapter import DialectAdapter
from dbfixtures.core.codec import ValueCodec
from dbfixtures.core.sql_builder import CompiledFixture, SQLBuilder
from dbfixtures.exceptions import (
    ChecksumComputationError,
    ConfigurationError,
    FixturesError,
    InsertError,
    NotATestDatabaseError,
    SchemaIntrospectionError,
    SequenceResetError,
)
from dbfixtures.models.fixture import FixtureSet
from dbfixtures.models.options import LoaderOptions
from dbfixtures.models.results import LoadResult
from dbfixtures.utils.sql import execute

logger = logging.getLogger(__name__)

TEST_DATABASE_PATTERN = re.compile("test", re.IGNORECASE | re.ASCII)

FixtureSource = Union[FixtureSet, str, Path]


def _resolve_options(options: Optional[LoaderOptions], overrides: dict[str, Any]) -> LoaderOptions:
    try:
        if options is None:
            return LoaderOptions(**overrides)
        if overrides:
            return LoaderOptions(**{**options.model_dump(exclude_unset=True), **overrides})
        return options
    except ValidationError as e:
        raise ConfigurationError(f"Invalid loader options: {e}") from e


def _resolve_fixtures(fixtures: Sequence[FixtureSource]) -> list[FixtureSet]:
    resolved: list[FixtureSet] = []
    seen: dict[str, str] = {}
    for fixture in fixtures:
        if not isinstance(fixture, FixtureSet):
            fixture = FixtureSet.from_file(fixture)
        if fixture.table in seen:
            raise ConfigurationError(
                f"Table {fixture.table!r} is declared by both {seen[fixture.table]} "
                f"and {fixture.source}"
            )
        seen[fixture.table] = fixture.source
        resolved.append(fixture)
    return resolved


class Loader:
    """Load fixture tables into a test database.

    Fixtures are compiled to INSERT statements once, at construction, and
    replayed by every ``load()`` call. A Loader is not safe for concurrent
    ``load()`` calls; use one Loader per database.

    Args:
        engine: SQLAlchemy engine for the target database
        dialect: Dialect identifier (see ``dbfixtures.dialects``) or an
            adapter class
        fixtures: FixtureSets, or paths of single-table fixture files
        options: Loader options
        **overrides: Individual option values, applied on top of ``options``

    Raises:
        ConfigurationError: Missing engine or dialect, unknown dialect,
            invalid options or a table declared twice
        SchemaIntrospectionError: If the adapter could not read schema metadata
        ValueEncodingError: If a fixture value cannot be encoded
        FixtureFormatError: If a fixture file cannot be read
    """

    def __init__(
        self,
        engine: Engine,
        dialect: Union[str, type[DialectAdapter]],
        fixtures: Sequence[FixtureSource] = (),
        options: Optional[LoaderOptions] = None,
        **overrides: Any,
    ):
        if engine is None:
            raise ConfigurationError("A database engine is required")
        if not isinstance(engine, Engine):
            raise ConfigurationError(
                f"Expected a SQLAlchemy Engine, got {type(engine).__name__}"
            )
        if not dialect:
            raise ConfigurationError("A dialect is required")

        self.engine = engine
        self.options = _resolve_options(options, overrides)
        self.adapter = self._create_adapter(dialect)
        self.fixtures = _resolve_fixtures(fixtures)

        self.adapter.init(engine)

        builder = SQLBuilder(self.adapter, ValueCodec(self.options.location))
        try:
            with engine.connect() as conn:
                self.compiled: list[CompiledFixture] = builder.compile(conn, self.fixtures)
        except SQLAlchemyError as e:
            raise SchemaIntrospectionError(f"Failed to compile fixtures: {e}") from e

        logger.debug(
            "Loader ready: %d fixture tables for %s",
            len(self.compiled),
            self.adapter.name,
        )

    def _create_adapter(self, dialect: Union[str, type[DialectAdapter]]) -> DialectAdapter:
        from dbfixtures.dialects import resolve_dialect

        if isinstance(dialect, str):
            adapter_class = resolve_dialect(dialect)
        elif isinstance(dialect, type) and issubclass(dialect, DialectAdapter):
            adapter_class = dialect
        else:
            raise ConfigurationError(f"Unsupported dialect: {dialect!r}")

        uses_constraint_mode = self.options.use_alter_constraint or self.options.use_drop_constraint
        if uses_constraint_mode and not adapter_class.supports_constraint_modes:
            raise ConfigurationError(
                "use_alter_constraint and use_drop_constraint are only supported by PostgreSQL"
            )
        return adapter_class(self.options)

    # =========================================================================
    # Public API
    # =========================================================================

    def ensure_test_database(self) -> str:
        """Check the database name contains "test".

        Returns:
            The database name

        Raises:
            NotATestDatabaseError: If it does not, or cannot be determined
        """
        with self.engine.connect() as conn:
            name = self.adapter.database_name(conn)
        if not TEST_DATABASE_PATTERN.search(name):
            raise NotATestDatabaseError(
                f'Loading aborted because the database name "{name}" does not look like '
                'a test database (it must contain "test")'
            )
        return name

    def modified_tables(self) -> tuple[list[CompiledFixture], list[CompiledFixture]]:
        """Split fixture tables into (modified, unmodified)."""
        modified: list[CompiledFixture] = []
        unmodified: list[CompiledFixture] = []
        with self.engine.connect() as conn:
            for fixture in self.compiled:
                if self.adapter.is_table_modified(conn, fixture.table):
                    modified.append(fixture)
                else:
                    unmodified.append(fixture)
        return modified, unmodified

    def load(self) -> LoadResult:
        """Replace the contents of every modified fixture table.

        Returns:
            LoadResult describing what was loaded and skipped

        Raises:
            NotATestDatabaseError: If the safety check fails; nothing is changed
            InsertError: If a record could not be inserted; the data is rolled back
            IntegrityGuardError: If referential integrity could not be relaxed
                or restored
            SequenceResetError: If sequences could not be reset after loading
            ChecksumComputationError: If checksums could not be refreshed
        """
        started_at = datetime.now()

        if not self.options.skip_test_database_check:
            self.ensure_test_database()

        modified, unmodified = self.modified_tables()
        for fixture in unmodified:
            logger.debug("Skipping unchanged table %s", fixture.table)

        result = LoadResult(
            tables_skipped=[fixture.table for fixture in unmodified],
            started_at=started_at,
        )

        if modified:
            self.adapter.checksums.invalidate(fixture.table for fixture in modified)
            self.adapter.disable_referential_integrity(
                self.engine, lambda conn: self._load_tables(conn, modified, result)
            )

        advisory_errors: list[FixturesError] = []

        if not self.options.skip_reset_sequences:
            try:
                self.reset_sequences()
            except SequenceResetError as e:
                logger.error("%s", e)
                advisory_errors.append(e)

        if not self.options.skip_table_checksum_computation and modified:
            try:
                self.adapter.compute_checksums(self.engine, (fixture.table for fixture in modified))
            except ChecksumComputationError as e:
                logger.warning("%s", e)
                advisory_errors.append(e)

        if advisory_errors:
            raise advisory_errors[0]

        result.completed_at = datetime.now()
        result.duration_seconds = (result.completed_at - started_at).total_seconds()
        logger.info(
            "Loaded %d tables (%d records), skipped %d unchanged in %.3fs",
            len(result.tables_loaded),
            result.records_inserted,
            len(result.tables_skipped),
            result.duration_seconds,
        )
        return result

    # =========================================================================
    # Internals
    # =========================================================================

    def reset_sequences(self) -> None:
        """Reset sequences and identity counters to the configured floor.

        Raises:
            SequenceResetError: If the reset failed
        """
        try:
            self.adapter.reset_sequences(self.engine)
        except SQLAlchemyError as e:
            raise SequenceResetError(f"Failed to reset sequences: {e}") from e

    def _load_tables(
        self,
        conn: Connection,
        modified: Sequence[CompiledFixture],
        result: LoadResult,
    ) -> None:
        if not self.options.skip_cleanup_fixture_tables:
            for fixture in modified:
                execute(conn, self.adapter.clean_table_statement(fixture.table))
                result.records_deleted_tables.append(fixture.table)

        for fixture in modified:
            with self.adapter.inserting(conn, fixture.table):
                for insert in fixture.inserts:
                    try:
                        execute(conn, insert.sql, insert.params)
                    except SQLAlchemyError as e:
                        raise InsertError(
                            e, insert.source, insert.index, insert.sql, insert.params
                        ) from e
                    result.records_inserted += 1
            result.tables_loaded.append(fixture.table)
