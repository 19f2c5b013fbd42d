"""PostgreSQL dialect for dbfixtures.

Also used for TimescaleDB, whose internal schemas are excluded from
introspection.
"""

from dbfixtures.dialects.postgres.adapter import PostgresAdapter, parse_major_version

__all__ = ["PostgresAdapter", "parse_major_version"]
