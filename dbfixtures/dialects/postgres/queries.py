"""Catalog queries shared by the PostgreSQL-compatible adapters."""

TABLES = r"""
    SELECT pg_namespace.nspname || '.' || pg_class.relname
    FROM pg_class
    INNER JOIN pg_namespace ON pg_namespace.oid = pg_class.relnamespace
    WHERE pg_class.relkind = 'r'
      AND pg_namespace.nspname NOT IN ('pg_catalog', 'information_schema', 'crdb_internal')
      AND pg_namespace.nspname NOT LIKE 'pg\_toast%'
      AND pg_namespace.nspname NOT LIKE 'crdb\_internal%'
      AND pg_namespace.nspname NOT LIKE '\_timescaledb%'
    ORDER BY 1
"""

SEQUENCES = r"""
    SELECT pg_namespace.nspname || '.' || pg_class.relname
    FROM pg_class
    INNER JOIN pg_namespace ON pg_namespace.oid = pg_class.relnamespace
    WHERE pg_class.relkind = 'S'
      AND pg_namespace.nspname NOT LIKE '\_timescaledb%'
    ORDER BY 1
"""

NON_DEFERRABLE_FOREIGN_KEYS = r"""
    SELECT table_schema || '.' || table_name, constraint_name
    FROM information_schema.table_constraints
    WHERE constraint_type = 'FOREIGN KEY'
      AND is_deferrable = 'NO'
      AND table_schema <> 'crdb_internal'
      AND table_schema NOT LIKE '\_timescaledb%'
"""

FOREIGN_KEY_DEFINITIONS = r"""
    SELECT conrelid::regclass::text, conname, pg_get_constraintdef(pg_constraint.oid)
    FROM pg_constraint
    INNER JOIN pg_namespace ON pg_namespace.oid = pg_constraint.connamespace
    WHERE contype = 'f'
      AND pg_namespace.nspname NOT IN ('pg_catalog', 'information_schema', 'crdb_internal')
      AND pg_namespace.nspname NOT LIKE 'pg\_toast%'
      AND pg_namespace.nspname NOT LIKE '\_timescaledb%'
"""

IDENTITY_COLUMN_COUNT = """
    SELECT COUNT(*)
    FROM information_schema.columns
    WHERE table_name = :table_name
      AND (CAST(:table_schema AS text) IS NULL OR table_schema = :table_schema)
      AND is_identity = 'YES'
"""

VERSION = "SELECT version()"

DATABASE_NAME = "SELECT current_database()"

RESET_SEQUENCE = "SELECT setval(CAST(:sequence AS regclass), :value)"

# Order-insensitive digest of every row's text representation.
TABLE_CHECKSUM = """
    SELECT md5(string_agg(md5(CAST(t AS text)), '' ORDER BY md5(CAST(t AS text))))
    FROM {table} AS t
"""

SHOW_CONSTRAINTS = "SHOW CONSTRAINTS FROM {table}"
