"""dbfixtures - load declarative fixture data into test databases."""

__version__ = "0.1.0"

# Re-export models
from dbfixtures.models import (
    FixtureRecord,
    FixtureSet,
    LoaderOptions,
    LoadResult,
    ParamStyle,
    RawSQL,
)

# Re-export the loader and adapter base for custom dialects
from dbfixtures.core.adapter import DialectAdapter
from dbfixtures.core.loader import Loader
from dbfixtures.dialects import create_adapter, resolve_dialect

from dbfixtures.exceptions import (
    ChecksumComputationError,
    ConfigurationError,
    ConstraintsNotRestoredError,
    DatabaseNameUndeterminableError,
    FixtureFormatError,
    FixturesError,
    InsertError,
    IntegrityGuardError,
    NotATestDatabaseError,
    SchemaIntrospectionError,
    SequenceResetError,
    ValueEncodingError,
)
from dbfixtures.utils.logging import configure_logging

__all__ = [
    # Version
    "__version__",
    # Models
    "FixtureRecord",
    "FixtureSet",
    "LoaderOptions",
    "LoadResult",
    "ParamStyle",
    "RawSQL",
    # Loading
    "DialectAdapter",
    "Loader",
    "create_adapter",
    "resolve_dialect",
    "configure_logging",
    # Errors
    "ChecksumComputationError",
    "ConfigurationError",
    "ConstraintsNotRestoredError",
    "DatabaseNameUndeterminableError",
    "FixtureFormatError",
    "FixturesError",
    "InsertError",
    "IntegrityGuardError",
    "NotATestDatabaseError",
    "SchemaIntrospectionError",
    "SequenceResetError",
    "ValueEncodingError",
]
