"""YAML parsing utilities for dbfixtures.

This module reads fixture files into plain Python structures; turning them
into records is the job of ``dbfixtures.models.fixture``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Union

import yaml

from dbfixtures.exceptions import FixtureFormatError


def parse_yaml(content: Union[str, bytes], source: str = "<string>") -> Any:
    """Parse YAML text.

    Args:
        content: YAML document
        source: Name used in error messages

    Returns:
        Decoded content, or None for an empty document

    Raises:
        FixtureFormatError: If the content is not valid YAML
    """
    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise FixtureFormatError(f"Invalid YAML in {source}: {e}") from e


def load_yaml(path: Path) -> Any:
    """Load a YAML fixture file.

    An empty fixture file is valid: it decodes to None, which means the
    table should be emptied.

    Args:
        path: Path to YAML file

    Returns:
        Decoded content, or None for an empty file

    Raises:
        FixtureFormatError: If the file cannot be read or parsed
    """
    try:
        with open(path, "rb") as f:
            content = f.read()
    except OSError as e:
        raise FixtureFormatError(f"Failed to read fixture file {path}: {e}") from e
    return parse_yaml(content, source=str(path))
