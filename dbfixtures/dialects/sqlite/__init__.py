"""SQLite dialect for dbfixtures."""

from dbfixtures.dialects.sqlite.adapter import SQLiteAdapter, SQLitePragmaGuard

__all__ = ["SQLiteAdapter", "SQLitePragmaGuard"]
