"""dbfixtures process configuration.

This module centralizes configuration read from environment variables
and provides sensible defaults. Per-loader settings live in
``dbfixtures.models.options.LoaderOptions``; the values here only supply
process-wide defaults.

Environment Variables:
    DBFIXTURES_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
                          Default: INFO

    DBFIXTURES_LOG_FORMAT: Log output format (text, json)
                           Default: text

    DBFIXTURES_RESET_SEQUENCES_TO: Value sequences and identity counters are
                                   reset to after a load
                                   Default: 10000
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_RESET_SEQUENCES_TO = 10000


def _get_int(key: str, default: int) -> int:
    """Get integer from environment variable."""
    value = os.environ.get(key, "")
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_str(key: str, default: str) -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default)


@dataclass
class FixturesConfig:
    """dbfixtures configuration container.

    Usage:
        from dbfixtures.core.config import config

        level = config.log_level
    """

    # Logging Configuration
    log_level: str = field(default_factory=lambda: _get_str("DBFIXTURES_LOG_LEVEL", "INFO").upper())
    log_format: str = field(default_factory=lambda: _get_str("DBFIXTURES_LOG_FORMAT", "text"))

    # Load defaults
    reset_sequences_to: int = field(
        default_factory=lambda: _get_int("DBFIXTURES_RESET_SEQUENCES_TO", DEFAULT_RESET_SEQUENCES_TO)
    )

    def __post_init__(self):
        """Validate configuration after initialization."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.log_level not in valid_levels:
            raise ValueError(
                f"Invalid DBFIXTURES_LOG_LEVEL: {self.log_level}. "
                f"Must be one of: {valid_levels}"
            )

        valid_formats = {"text", "json"}
        if self.log_format not in valid_formats:
            raise ValueError(
                f"Invalid DBFIXTURES_LOG_FORMAT: {self.log_format}. "
                f"Must be one of: {valid_formats}"
            )

        if self.reset_sequences_to < 1:
            raise ValueError(
                f"DBFIXTURES_RESET_SEQUENCES_TO must be >= 1, got {self.reset_sequences_to}"
            )

    def as_dict(self) -> dict:
        """Export configuration as dictionary."""
        return {
            "log_level": self.log_level,
            "log_format": self.log_format,
            "reset_sequences_to": self.reset_sequences_to,
        }


def load_config() -> FixturesConfig:
    """Load configuration from environment.

    Call this to refresh config if the environment has changed.

    Returns:
        New FixturesConfig instance
    """
    return FixturesConfig()


# Global configuration instance - loaded once at import time
config = load_config()
