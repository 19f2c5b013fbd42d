"""CockroachDB dialect for dbfixtures."""

from dbfixtures.dialects.cockroach.adapter import CockroachAdapter

__all__ = ["CockroachAdapter"]
