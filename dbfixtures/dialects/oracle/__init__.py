"""Oracle dialect for dbfixtures."""

from dbfixtures.dialects.oracle.adapter import OracleAdapter

__all__ = ["OracleAdapter"]
