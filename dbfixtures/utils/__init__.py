"""dbfixtures utilities package.

YAML parsing, logging setup and driver-level SQL helpers.
"""

from dbfixtures.utils.logging import JsonFormatter, configure_logging
from dbfixtures.utils.sql import execute, execute_script
from dbfixtures.utils.yaml_parser import load_yaml, parse_yaml

__all__ = [
    "JsonFormatter",
    "configure_logging",
    "execute",
    "execute_script",
    "load_yaml",
    "parse_yaml",
]
