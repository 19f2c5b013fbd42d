"""dbfixtures exception hierarchy."""

from __future__ import annotations

from typing import Any, Optional, Sequence


class FixturesError(Exception):
    """Base exception for all dbfixtures errors."""

    pass


class ConfigurationError(FixturesError):
    """Raised when loader configuration is invalid or incomplete."""

    pass


class FixtureFormatError(FixturesError):
    """Raised when a fixture source cannot be decoded into records."""

    pass


class NotATestDatabaseError(FixturesError):
    """Raised when the target database name does not look like a test database."""

    pass


class DatabaseNameUndeterminableError(NotATestDatabaseError):
    """Raised when an engine cannot report its database name.

    Callers must skip the test database check explicitly for such engines.
    """

    pass


class SchemaIntrospectionError(FixturesError):
    """Raised when metadata collection fails during adapter initialization."""

    pass


class ChecksumComputationError(FixturesError):
    """Raised when table fingerprints could not be refreshed after a load."""

    pass


class SequenceResetError(FixturesError):
    """Raised when sequences or identity counters could not be reset."""

    pass


class ValueEncodingError(FixturesError):
    """Raised when a fixture value cannot be converted to a bindable form."""

    pass


class IntegrityGuardError(FixturesError):
    """Raised when relaxing or restoring referential integrity fails.

    When the load itself also failed, the original load error is kept in
    ``load_error`` so neither failure is lost.
    """

    def __init__(self, message: str, load_error: Optional[BaseException] = None):
        if load_error is not None:
            message = f"{message} (load also failed: {load_error})"
        super().__init__(message)
        self.load_error = load_error


class ConstraintsNotRestoredError(IntegrityGuardError):
    """Raised when dropped constraints could not be recreated.

    The database is left without the foreign keys that were dropped and
    needs manual repair.
    """

    def __init__(
        self,
        message: str,
        constraints: Sequence[str] = (),
        load_error: Optional[BaseException] = None,
    ):
        super().__init__(message, load_error=load_error)
        self.constraints = list(constraints)


class InsertError(FixturesError):
    """Raised when inserting a single fixture record fails.

    Carries the fixture source, the record index within it, the rendered
    SQL and the bound parameters.
    """

    def __init__(
        self,
        error: BaseException,
        file: str,
        index: int,
        sql: str,
        params: Sequence[Any],
    ):
        self.error = error
        self.file = file
        self.index = index
        self.sql = sql
        self.params = list(params)
        super().__init__(
            f"error inserting record: {error}, on file: {file}, index: {index}, "
            f"sql: {sql}, params: {self.params}"
        )
