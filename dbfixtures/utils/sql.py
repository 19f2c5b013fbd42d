"""Driver-level statement execution helpers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy.engine import Connection, CursorResult


def execute(conn: Connection, sql: str, params: Sequence[Any] = ()) -> CursorResult:
    """Run driver-level SQL, binding positional ``params`` when there are any.

    Without parameters the statement reaches the cursor untouched, so a
    literal ``%`` needs no escaping for format-style drivers.
    """
    if params:
        return conn.exec_driver_sql(sql, tuple(params))
    return conn.exec_driver_sql(sql, execution_options={"no_parameters": True})


def execute_script(conn: Connection, statements: Sequence[str]) -> None:
    """Run each statement in order on ``conn``."""
    for statement in statements:
        execute(conn, statement)
