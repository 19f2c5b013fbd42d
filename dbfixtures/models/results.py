"""Load result models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field as PydanticField


class LoadResult(BaseModel):
    """Summary of one ``Loader.load()`` call.

    Attributes:
        tables_loaded: Tables whose contents were replaced (the "modified" set)
        tables_skipped: Tables left untouched because their fingerprint matched
        records_inserted: Number of rows inserted
        records_deleted_tables: Tables emptied before inserting
        started_at: When the load started
        completed_at: When the load finished
        duration_seconds: Wall-clock duration of the load
    """

    tables_loaded: list[str] = PydanticField(default_factory=list)
    tables_skipped: list[str] = PydanticField(default_factory=list)
    records_inserted: int = 0
    records_deleted_tables: list[str] = PydanticField(default_factory=list)

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    @property
    def modified_count(self) -> int:
        return len(self.tables_loaded)

    def __str__(self) -> str:
        return (
            f"LoadResult(loaded={len(self.tables_loaded)}, "
            f"skipped={len(self.tables_skipped)}, "
            f"records={self.records_inserted}, "
            f"duration={self.duration_seconds}s)"
        )
