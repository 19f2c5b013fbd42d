"""Microsoft SQL Server dialect for dbfixtures."""

from dbfixtures.dialects.sqlserver.adapter import SQLServerAdapter

__all__ = ["SQLServerAdapter"]
