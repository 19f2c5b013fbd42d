"""Fixture value encoding.

This module converts loosely-typed fixture values into something a DB-API
driver can bind, or into a SQL fragment emitted as-is.

Precedence:
    1. RawSQL (``RAW=`` strings) -> SQL fragment, never bound
    2. ``0x``-prefixed hex strings -> bytes
    3. Strings matching a date/time layout -> datetime
    4. Lists and maps -> JSON text
    5. Other scalars -> bound unchanged
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone, tzinfo
from decimal import Decimal
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

from dbfixtures.exceptions import ValueEncodingError
from dbfixtures.models.fixture import RawSQL, tag_value

# Layouts tried in order; the first one that parses wins.
TIME_LAYOUTS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y%m%d",
    "%Y%m%d %H:%M",
    "%Y%m%d %H:%M:%S",
    "%d/%m/%Y",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y %H:%M:%S",
    # With offset ("Z", "+07:00" or "+0700")
    "%Y-%m-%dT%H:%M%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%d %H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S.%f%z",
)

_DATE_SHAPE = re.compile(r"^(\d{4}-\d{2}-\d{2}|\d{8}|\d{2}/\d{2}/\d{4})([ T]\d{2}:\d{2}|$)")
_HOUR_ONLY_OFFSET = re.compile(r"^(.*\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?)([+-]\d{2})$")
_ZONE_ABBREVIATION = re.compile(r"^(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}) ([A-Z]{3,5})$")
_HEX_STRING = re.compile(r"^0x((?:[0-9a-fA-F]{2})*)$")

_SCALAR_TYPES = (str, bool, int, float, Decimal, bytes, datetime, date, time)


@dataclass(frozen=True)
class EncodedValue:
    """Result of encoding one fixture value.

    Attributes:
        value: Bindable value, or the SQL text when ``raw`` is set
        raw: Emit ``value`` into the statement instead of binding it
        is_json: ``value`` is JSON text produced from a list or map
    """

    value: Any
    raw: bool = False
    is_json: bool = False


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, bytes):
        return value.hex()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class ValueCodec:
    """Encode fixture values for binding.

    Args:
        location: Time zone (IANA name or tzinfo) for timestamps without an
            offset. When omitted those timestamps stay naive.

    Examples:
        >>> codec = ValueCodec()
        >>> codec.encode("RAW=NOW()")
        EncodedValue(value='NOW()', raw=True, is_json=False)
        >>> codec.encode("2016-01-01").value
        datetime.datetime(2016, 1, 1, 0, 0)
        >>> codec.encode([1, 2]).value
        '[1, 2]'
    """

    def __init__(self, location: Optional[Union[str, tzinfo]] = None):
        if isinstance(location, str):
            location = ZoneInfo(location)
        self.location: Optional[tzinfo] = location

    def encode(self, value: Any) -> EncodedValue:
        """Encode a single fixture value.

        Raises:
            ValueEncodingError: If the value has no bindable representation
        """
        value = tag_value(value)

        if isinstance(value, RawSQL):
            return EncodedValue(value.expression, raw=True)

        if value is None:
            return EncodedValue(None)

        if isinstance(value, str):
            decoded = self.decode_hex(value)
            if decoded is not None:
                return EncodedValue(decoded)
            parsed = self.parse_time(value)
            if parsed is not None:
                return EncodedValue(parsed)
            return EncodedValue(value)

        if isinstance(value, (list, tuple, dict)):
            try:
                return EncodedValue(json.dumps(value, default=_json_default), is_json=True)
            except (TypeError, ValueError) as e:
                raise ValueEncodingError(f"Cannot serialize {type(value).__name__} value to JSON: {e}") from e

        if isinstance(value, _SCALAR_TYPES):
            return EncodedValue(value)

        raise ValueEncodingError(
            f"Unsupported fixture value type: {type(value).__name__} ({value!r})"
        )

    @staticmethod
    def decode_hex(value: str) -> Optional[bytes]:
        """Decode ``0x``-prefixed hex text, or return None if it is not hex."""
        match = _HEX_STRING.match(value)
        if match is None:
            return None
        return bytes.fromhex(match.group(1))

    def parse_time(self, value: str) -> Optional[datetime]:
        """Parse ``value`` against the known layouts.

        Returns:
            The parsed datetime, or None if no layout matches
        """
        if not _DATE_SHAPE.match(value):
            return None

        candidate = value
        hour_offset = _HOUR_ONLY_OFFSET.match(value)
        if hour_offset:
            candidate = f"{hour_offset.group(1)}{hour_offset.group(2)}:00"

        for layout in TIME_LAYOUTS:
            try:
                parsed = datetime.strptime(candidate, layout)
            except ValueError:
                continue
            return self._localize(parsed)

        abbreviated = _ZONE_ABBREVIATION.match(value)
        if abbreviated:
            return self._parse_abbreviated(abbreviated.group(1), abbreviated.group(2))
        return None

    def _localize(self, parsed: datetime) -> datetime:
        if parsed.tzinfo is None and self.location is not None:
            return parsed.replace(tzinfo=self.location)
        return parsed

    def _parse_abbreviated(self, stamp: str, abbreviation: str) -> datetime:
        # Abbreviations are ambiguous; only the configured location and UTC
        # are recognised, anything else is read as a zero offset.
        parsed = datetime.strptime(stamp, "%Y-%m-%d %H:%M:%S")
        if self.location is not None:
            local = parsed.replace(tzinfo=self.location)
            if local.tzname() == abbreviation:
                return local
        return parsed.replace(tzinfo=timezone.utc)
