"""Loader option models.

``LoaderOptions`` is the user-facing configuration of a ``Loader``. All
options are optional; defaults give the safe behaviour (test database
check on, cleanup on, checksums on, sequences reset to 10000).
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field as PydanticField, field_validator, model_validator

from dbfixtures.core.config import config


class ParamStyle(str, Enum):
    """How the Nth bound parameter is written in generated SQL."""

    DOLLAR = "$"  # $1, $2, ...
    QUESTION = "?"  # ?, ?, ...
    AT_SIGN = "@"  # @p1, @p2, ...
    FORMAT = "%s"  # %s, %s, ... (psycopg, PyMySQL)
    COLON = ":"  # :1, :2, ... (oracledb)

    def placeholder(self, position: int) -> str:
        """Render the placeholder for a 1-based parameter position."""
        if self is ParamStyle.DOLLAR:
            return f"${position}"
        if self is ParamStyle.AT_SIGN:
            return f"@p{position}"
        if self is ParamStyle.COLON:
            return f":{position}"
        return self.value

    @classmethod
    def from_dbapi(cls, paramstyle: Optional[str]) -> Optional[ParamStyle]:
        """Map a DB-API ``paramstyle`` string to a ParamStyle, if supported."""
        return {
            "qmark": cls.QUESTION,
            "format": cls.FORMAT,
            "pyformat": cls.FORMAT,
            "numeric": cls.COLON,
            "named": cls.COLON,
            "numeric_dollar": cls.DOLLAR,
        }.get(paramstyle or "")


class LoaderOptions(BaseModel):
    """Options controlling how fixtures are loaded.

    Examples:
        >>> LoaderOptions(skip_test_database_check=True)
        >>> LoaderOptions(use_alter_constraint=True, reset_sequences_to=500)
    """

    skip_test_database_check: bool = PydanticField(
        False,
        description="Load even if the database name does not contain 'test'. Use with caution.",
    )

    skip_cleanup_fixture_tables: bool = PydanticField(
        False,
        description="Do not delete existing rows of fixture tables before inserting",
    )

    skip_table_checksum_computation: bool = PydanticField(
        False,
        description="Do not fingerprint tables after a load; every table reloads on every call",
    )

    skip_reset_sequences: bool = PydanticField(
        False,
        description="Do not reset sequences and identity counters after a load",
    )

    reset_sequences_to: int = PydanticField(
        default_factory=lambda: config.reset_sequences_to,
        description="Value sequences and identity counters are reset to",
        ge=1,
    )

    param_style: Optional[ParamStyle] = PydanticField(
        None,
        description="Override the placeholder style detected from the driver",
    )

    use_alter_constraint: bool = PydanticField(
        False,
        description="PostgreSQL: make foreign keys DEFERRABLE during the load instead of disabling triggers",
    )

    use_drop_constraint: bool = PydanticField(
        False,
        description="PostgreSQL: drop foreign keys during the load and recreate them afterwards",
    )

    allow_multiple_statements: bool = PydanticField(
        False,
        description="MySQL: send all sequence resets as one multi-statement query",
    )

    location: Optional[str] = PydanticField(
        None,
        description="IANA time zone applied to fixture timestamps without an offset",
    )

    model_config = {"extra": "forbid"}

    @field_validator("param_style", mode="before")
    @classmethod
    def validate_param_style(cls, v):
        """Accept enum members, their values or their names."""
        if isinstance(v, str) and not isinstance(v, ParamStyle):
            try:
                return ParamStyle(v)
            except ValueError:
                try:
                    return ParamStyle[v.upper()]
                except KeyError:
                    raise ValueError(
                        f"Unsupported param style: {v}. "
                        f"Must be one of: {', '.join(p.value for p in ParamStyle)}"
                    )
        return v

    @field_validator("location")
    @classmethod
    def validate_location(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown time zone: {v}")
        return v

    @model_validator(mode="after")
    def validate_constraint_mode(self) -> LoaderOptions:
        if self.use_alter_constraint and self.use_drop_constraint:
            raise ValueError(
                "use_alter_constraint and use_drop_constraint are mutually exclusive"
            )
        return self
