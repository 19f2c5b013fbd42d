"""Dialect adapters and the identifier registry.

Each identifier maps to the adapter class implementing that engine. A
fully qualified ``module.ClassName`` path may be given instead of an
identifier to use a custom adapter.
"""

from __future__ import annotations

import importlib
from typing import Optional

from dbfixtures.core.adapter import DialectAdapter
from dbfixtures.exceptions import ConfigurationError
from dbfixtures.models.options import LoaderOptions

# Maps dialect identifiers to adapter classes
DEFAULT_DIALECTS = {
    "postgres": "dbfixtures.dialects.postgres.adapter.PostgresAdapter",
    "postgresql": "dbfixtures.dialects.postgres.adapter.PostgresAdapter",
    "pgx": "dbfixtures.dialects.postgres.adapter.PostgresAdapter",
    "timescaledb": "dbfixtures.dialects.postgres.adapter.PostgresAdapter",
    "cockroach": "dbfixtures.dialects.cockroach.adapter.CockroachAdapter",
    "cockroachdb": "dbfixtures.dialects.cockroach.adapter.CockroachAdapter",
    "mysql": "dbfixtures.dialects.mysql.adapter.MySQLAdapter",
    "mariadb": "dbfixtures.dialects.mysql.adapter.MySQLAdapter",
    "sqlite": "dbfixtures.dialects.sqlite.adapter.SQLiteAdapter",
    "sqlite3": "dbfixtures.dialects.sqlite.adapter.SQLiteAdapter",
    "sqlserver": "dbfixtures.dialects.sqlserver.adapter.SQLServerAdapter",
    "mssql": "dbfixtures.dialects.sqlserver.adapter.SQLServerAdapter",
    "clickhouse": "dbfixtures.dialects.clickhouse.adapter.ClickHouseAdapter",
    "spanner": "dbfixtures.dialects.spanner.adapter.SpannerAdapter",
    "googlesql": "dbfixtures.dialects.spanner.adapter.SpannerAdapter",
    "oracle": "dbfixtures.dialects.oracle.adapter.OracleAdapter",
}


def _load_class(full_path: str) -> type:
    module_path, _, class_name = full_path.rpartition(".")
    try:
        module = importlib.import_module(module_path)
        return getattr(module, class_name)
    except ImportError as e:
        raise ConfigurationError(
            f"Failed to import dialect module '{module_path}'.\n"
            f"Error: {e}"
        ) from e
    except AttributeError as e:
        raise ConfigurationError(
            f"Class '{class_name}' not found in module '{module_path}'."
        ) from e


def resolve_dialect(dialect: str) -> type[DialectAdapter]:
    """Resolve a dialect identifier to its adapter class.

    Args:
        dialect: Identifier such as "postgres" or "mssql" (case-insensitive),
            or a ``module.ClassName`` path

    Raises:
        ConfigurationError: If the identifier is unknown or the class is not
            a DialectAdapter
    """
    key = dialect.strip().lower()
    if key in DEFAULT_DIALECTS:
        adapter_class = _load_class(DEFAULT_DIALECTS[key])
    elif "." in dialect:
        adapter_class = _load_class(dialect)
    else:
        raise ConfigurationError(
            f"Unknown dialect '{dialect}'. "
            f"Available dialects: {', '.join(sorted(DEFAULT_DIALECTS))}"
        )

    if not (isinstance(adapter_class, type) and issubclass(adapter_class, DialectAdapter)):
        raise ConfigurationError(f"'{dialect}' does not resolve to a DialectAdapter")
    return adapter_class


def create_adapter(dialect: str, options: Optional[LoaderOptions] = None) -> DialectAdapter:
    """Instantiate the adapter for ``dialect``."""
    return resolve_dialect(dialect)(options)


__all__ = ["DEFAULT_DIALECTS", "create_adapter", "resolve_dialect"]
