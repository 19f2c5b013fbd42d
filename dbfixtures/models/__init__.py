"""dbfixtures data models."""

from dbfixtures.models.fixture import FixtureRecord, FixtureSet, RawSQL
from dbfixtures.models.options import LoaderOptions, ParamStyle
from dbfixtures.models.results import LoadResult

__all__ = [
    "FixtureRecord",
    "FixtureSet",
    "RawSQL",
    "LoaderOptions",
    "ParamStyle",
    "LoadResult",
]
