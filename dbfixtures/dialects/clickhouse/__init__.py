"""ClickHouse dialect for dbfixtures."""

from dbfixtures.dialects.clickhouse.adapter import ClickHouseAdapter

__all__ = ["ClickHouseAdapter"]
