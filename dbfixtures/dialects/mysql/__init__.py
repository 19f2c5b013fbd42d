"""MySQL and MariaDB dialect for dbfixtures."""

from dbfixtures.dialects.mysql.adapter import MySQLAdapter

__all__ = ["MySQLAdapter"]
