"""Referential integrity guards.

A guard wraps the delete+insert transaction of one load. It relaxes
integrity before the load, runs the load in a single transaction and
always tries to restore integrity afterwards, even when the load failed.

State machine:
    IDLE -> INTEGRITY_RELAXED -> LOAD_RUNNING -> LOAD_COMMITTED | LOAD_ROLLED_BACK
         -> INTEGRITY_RESTORED -> DONE | FAILED

Guards only execute SQL; dialect adapters decide what that SQL is.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from dbfixtures.exceptions import ConstraintsNotRestoredError, IntegrityGuardError
from dbfixtures.utils.sql import execute, execute_script

logger = logging.getLogger(__name__)

LoadFunction = Callable[[Connection], None]


class GuardState(str, Enum):
    IDLE = "idle"
    INTEGRITY_RELAXED = "integrity_relaxed"
    LOAD_RUNNING = "load_running"
    LOAD_COMMITTED = "load_committed"
    LOAD_ROLLED_BACK = "load_rolled_back"
    INTEGRITY_RESTORED = "integrity_restored"
    DONE = "done"
    FAILED = "failed"


class IntegrityGuard:
    """Run a load function inside one transaction with no integrity changes.

    Subclasses override the four hooks:
        relax: before the transaction, on its own connection
        relax_session: first thing inside the transaction
        restore_session: on the load connection, after commit or rollback
        restore: after the transaction, on its own connection

    A guard instance runs exactly once.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.state = GuardState.IDLE
        self.history: list[GuardState] = [GuardState.IDLE]
        self._session_restore_error: Optional[BaseException] = None

    def relax(self) -> None:
        pass

    def relax_session(self, conn: Connection) -> None:
        pass

    def restore_session(self, conn: Connection) -> None:
        pass

    def restore(self) -> None:
        pass

    def _transition(self, state: GuardState) -> None:
        logger.debug("%s: %s -> %s", type(self).__name__, self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def run(self, load_fn: LoadFunction) -> None:
        """Relax integrity, run ``load_fn`` in a transaction, restore integrity.

        Raises:
            IntegrityGuardError: If relaxing or restoring failed. When the load
                failed as well, it is available as ``load_error``.
            Exception: Whatever ``load_fn`` raised, when restoring succeeded

        Interrupts such as KeyboardInterrupt still restore integrity and are
        then re-raised unchanged.
        """
        if self.state is not GuardState.IDLE:
            raise IntegrityGuardError(f"{type(self).__name__} has already run")

        try:
            self.relax()
        except SQLAlchemyError as e:
            self._transition(GuardState.FAILED)
            restore_error = self._try_restore()
            message = f"Failed to relax referential integrity: {e}"
            if restore_error is not None:
                raise self._restore_failure(restore_error, None) from e
            raise IntegrityGuardError(message) from e
        except BaseException:
            self._restore_after_interrupt()
            raise
        self._transition(GuardState.INTEGRITY_RELAXED)

        load_error: Optional[Exception] = None
        try:
            self._load(load_fn)
        except Exception as e:
            load_error = e
        except BaseException:
            self._restore_after_interrupt()
            raise

        restore_error = self._try_restore()
        if restore_error is not None:
            self._transition(GuardState.FAILED)
            raise self._restore_failure(restore_error, load_error) from restore_error
        self._transition(GuardState.INTEGRITY_RESTORED)

        if load_error is not None:
            self._transition(GuardState.FAILED)
            raise load_error
        self._transition(GuardState.DONE)

    def _load(self, load_fn: LoadFunction) -> None:
        with self.engine.connect() as conn:
            try:
                with conn.begin():
                    self.relax_session(conn)
                    self._transition(GuardState.LOAD_RUNNING)
                    load_fn(conn)
                self._transition(GuardState.LOAD_COMMITTED)
            except BaseException:
                self._rollback_driver(conn)
                self._transition(GuardState.LOAD_ROLLED_BACK)
                raise
            finally:
                try:
                    self.restore_session(conn)
                except SQLAlchemyError as e:
                    self._session_restore_error = e

    @staticmethod
    def _rollback_driver(conn: Connection) -> None:
        # A rejected COMMIT (SQLite deferred foreign keys) leaves the DBAPI
        # transaction open although SQLAlchemy has already discarded its own.
        # restore_session would otherwise commit the rejected data.
        try:
            conn.connection.rollback()
        except Exception as e:
            logger.warning("Driver-level rollback after a failed load also failed: %s", e)

    def _restore_after_interrupt(self) -> None:
        if self._try_restore() is None:
            self._transition(GuardState.INTEGRITY_RESTORED)
        self._transition(GuardState.FAILED)

    def _try_restore(self) -> Optional[BaseException]:
        try:
            self.restore()
        except SQLAlchemyError as e:
            logger.error("Failed to restore referential integrity: %s", e)
            return e
        if self._session_restore_error is not None:
            logger.error(
                "Failed to restore session integrity settings: %s", self._session_restore_error
            )
            return self._session_restore_error
        return None

    def _restore_failure(
        self, error: BaseException, load_error: Optional[BaseException]
    ) -> IntegrityGuardError:
        return IntegrityGuardError(
            f"Failed to restore referential integrity: {error}", load_error=load_error
        )


class NoIntegrityGuard(IntegrityGuard):
    """For engines without foreign keys: the load runs as is."""


def _execute_each(engine: Engine, statements: Sequence[str]) -> None:
    if not statements:
        return
    with engine.begin() as conn:
        execute_script(conn, statements)


class StatementGuard(IntegrityGuard):
    """Guard driven by fixed lists of SQL statements.

    Args:
        engine: Target engine
        relax: DDL run before the load transaction
        relax_session: Statements run inside the load transaction before loading
        restore_session: Statements run on the load connection afterwards
        restore: DDL run after the load transaction
    """

    def __init__(
        self,
        engine: Engine,
        relax: Sequence[str] = (),
        relax_session: Sequence[str] = (),
        restore_session: Sequence[str] = (),
        restore: Sequence[str] = (),
    ):
        super().__init__(engine)
        self.relax_statements = list(relax)
        self.relax_session_statements = list(relax_session)
        self.restore_session_statements = list(restore_session)
        self.restore_statements = list(restore)

    def relax(self) -> None:
        _execute_each(self.engine, self.relax_statements)

    def relax_session(self, conn: Connection) -> None:
        execute_script(conn, self.relax_session_statements)

    def restore_session(self, conn: Connection) -> None:
        if not self.restore_session_statements:
            return
        execute_script(conn, self.restore_session_statements)
        conn.commit()

    def restore(self) -> None:
        _execute_each(self.engine, self.restore_statements)


class TriggerSuspensionGuard(StatementGuard):
    """Disable all triggers inside the transaction and re-enable them after."""

    def __init__(self, engine: Engine, disable: Sequence[str], enable: Sequence[str]):
        super().__init__(engine, relax_session=disable, restore=enable)


class DeferredConstraintsGuard(StatementGuard):
    """Make foreign keys deferrable, defer them for the load, then revert."""

    def __init__(
        self,
        engine: Engine,
        make_deferrable: Sequence[str],
        defer: Sequence[str],
        make_immediate: Sequence[str],
    ):
        super().__init__(engine, relax=make_deferrable, relax_session=defer, restore=make_immediate)


class SessionPragmaGuard(StatementGuard):
    """Switch a per-session "defer foreign key checks" setting around the load."""

    def __init__(self, engine: Engine, enable: Sequence[str], disable: Sequence[str]):
        super().__init__(engine, relax_session=enable, restore_session=disable)


class ConstraintToggleGuard(StatementGuard):
    """Disable constraint checking with DDL before the load and re-enable it after."""

    def __init__(self, engine: Engine, disable: Sequence[str], enable: Sequence[str]):
        super().__init__(engine, relax=disable, restore=enable)


@dataclass(frozen=True)
class ConstraintDescriptor:
    """A foreign key that can be dropped and recreated.

    Attributes:
        table: Owning table
        name: Constraint name
        drop_sql: Statement dropping the constraint
        create_sql: Statement recreating it from its captured definition
    """

    table: str
    name: str
    drop_sql: str
    create_sql: str

    @property
    def qualified_name(self) -> str:
        return f"{self.table}.{self.name}"


class DropRecreateConstraintsGuard(IntegrityGuard):
    """Drop foreign keys before the load and recreate them afterwards.

    DDL runs outside the data transaction, so a failed recreate leaves the
    database without those constraints. That case raises
    ConstraintsNotRestoredError listing what is missing.
    """

    def __init__(self, engine: Engine, constraints: Sequence[ConstraintDescriptor]):
        super().__init__(engine)
        self.constraints = list(constraints)
        self.dropped: list[ConstraintDescriptor] = []

    def relax(self) -> None:
        for constraint in self.constraints:
            with self.engine.begin() as conn:
                execute(conn, constraint.drop_sql)
            self.dropped.append(constraint)
            logger.debug("Dropped constraint %s", constraint.qualified_name)

    def restore(self) -> None:
        remaining: list[ConstraintDescriptor] = []
        first_error: Optional[SQLAlchemyError] = None
        for constraint in self.dropped:
            try:
                with self.engine.begin() as conn:
                    execute(conn, constraint.create_sql)
            except SQLAlchemyError as e:
                remaining.append(constraint)
                first_error = first_error or e
                continue
            logger.debug("Recreated constraint %s", constraint.qualified_name)
        self.dropped = remaining
        if first_error is not None:
            raise first_error

    def _restore_failure(
        self, error: BaseException, load_error: Optional[BaseException]
    ) -> IntegrityGuardError:
        missing = [constraint.qualified_name for constraint in self.dropped]
        logger.critical(
            "Foreign keys were dropped and could not be recreated, database is unprotected: %s",
            ", ".join(missing),
        )
        return ConstraintsNotRestoredError(
            f"Failed to recreate dropped constraints {missing}: {error}",
            constraints=missing,
            load_error=load_error,
        )
