"""Fixture models.

A fixture describes the rows one table should contain. Records keep the
column order they were declared in, and values are either plain YAML
scalars, nested lists/maps (stored as JSON) or a ``RawSQL`` fragment that
is written into the statement verbatim.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from dbfixtures.exceptions import FixtureFormatError

RAW_PREFIX = "RAW="


@dataclass(frozen=True)
class RawSQL:
    """A SQL expression emitted unescaped instead of being bound.

    Written in fixtures as a string with the ``RAW=`` prefix:

        created_at: RAW=NOW()
    """

    expression: str

    @classmethod
    def from_marked(cls, value: str) -> RawSQL:
        """Build from a ``RAW=``-prefixed string."""
        return cls(value[len(RAW_PREFIX):])


def tag_value(value: Any) -> Any:
    """Turn ``RAW=``-prefixed strings into RawSQL, leave everything else as is."""
    if isinstance(value, str) and value.startswith(RAW_PREFIX):
        return RawSQL.from_marked(value)
    return value


class FixtureRecord(Mapping[str, Any]):
    """One row of a fixture: column name -> value, in declaration order.

    Records are immutable once built.

    Examples:
        >>> record = FixtureRecord({"id": 1, "created_at": "RAW=NOW()"})
        >>> record.columns
        ['id', 'created_at']
        >>> record["created_at"]
        RawSQL(expression='NOW()')
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[Any, Any]):
        values: dict[str, Any] = {}
        for key, value in data.items():
            if not isinstance(key, str):
                raise FixtureFormatError(
                    f"Column names must be strings, got {key!r} ({type(key).__name__})"
                )
            values[key] = tag_value(value)
        self._data = values

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"FixtureRecord({self._data!r})"

    @property
    def columns(self) -> list[str]:
        return list(self._data)


def _coerce_records(content: Any, source: str) -> list[FixtureRecord]:
    """Decode a sequence of records or a mapping of keys to records."""
    if content is None:
        return []

    if isinstance(content, Mapping):
        entries: Iterable[Any] = content.values()
    elif isinstance(content, list):
        entries = content
    else:
        raise FixtureFormatError(
            f"{source}: expected a list of records or a mapping of records, "
            f"got {type(content).__name__}"
        )

    records = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise FixtureFormatError(
                f"{source}: record {index} is not a mapping of columns to values"
            )
        try:
            records.append(FixtureRecord(entry))
        except FixtureFormatError as e:
            raise FixtureFormatError(f"{source}: record {index}: {e}") from e
    return records


@dataclass(frozen=True)
class FixtureSet:
    """All fixture rows for one table.

    Attributes:
        table: Target table, optionally schema-qualified ("schema.table")
        records: Rows in declaration order
        source: Where the rows came from, used when reporting insert errors
    """

    table: str
    records: tuple[FixtureRecord, ...] = ()
    source: str = field(default="")

    def __post_init__(self):
        if not self.table:
            raise FixtureFormatError("Fixture table name cannot be empty")
        if not self.source:
            object.__setattr__(self, "source", self.table)

    def __len__(self) -> int:
        return len(self.records)

    @classmethod
    def from_records(
        cls,
        table: str,
        records: Iterable[Mapping[str, Any]],
        source: Optional[str] = None,
    ) -> FixtureSet:
        """Build a fixture set from in-memory rows."""
        source = source or table
        return cls(table=table, records=tuple(_coerce_records(list(records), source)), source=source)

    @classmethod
    def from_content(cls, table: str, content: Any, source: Optional[str] = None) -> FixtureSet:
        """Build a fixture set from decoded YAML content for a single table."""
        source = source or table
        return cls(table=table, records=tuple(_coerce_records(content, source)), source=source)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> FixtureSet:
        """Load a single-table fixture file.

        The table name is the file name without its extension, so
        ``fixtures/posts.yml`` loads into ``posts``.
        """
        from dbfixtures.utils.yaml_parser import load_yaml

        path = Path(path)
        return cls.from_content(path.stem, load_yaml(path), source=path.name)

    @classmethod
    def from_multi_table_file(cls, path: Union[str, Path]) -> list[FixtureSet]:
        """Load a fixture file whose top-level keys are table names."""
        from dbfixtures.utils.yaml_parser import load_yaml

        path = Path(path)
        return cls.from_multi_table_content(load_yaml(path), source=path.name)

    @classmethod
    def from_multi_table_content(cls, content: Any, source: str) -> list[FixtureSet]:
        """Split decoded multi-table content into one fixture set per table."""
        if content is None:
            return []
        if not isinstance(content, Mapping):
            raise FixtureFormatError(
                f"{source}: expected a mapping of table names to records, "
                f"got {type(content).__name__}"
            )
        sets = []
        for table, table_content in content.items():
            if not isinstance(table, str):
                raise FixtureFormatError(f"{source}: table names must be strings, got {table!r}")
            sets.append(cls.from_content(table, table_content, source=source))
        return sets
