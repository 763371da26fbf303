"""T-SQL identifier quoting and literal formatting.

Identifiers use SQL Server bracket quoting. Literal values are rendered
directly into statement text, so every quoted value has its embedded single
quotes doubled and binary values are written as hexadecimal literals.
"""

import math
import uuid
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

import numpy as np
import pandas as pd

QUOTE_PREFIX = "["
QUOTE_SUFFIX = "]"

# Runtime types whose literal must be wrapped in single quotes
QUOTED_TYPES = (str, timedelta, datetime, date, time, uuid.UUID)


def quote_identifier(name: str) -> str:
    """Wrap an identifier in brackets, doubling any embedded closing bracket.

    A name that already starts with ``[`` and ends with ``]`` is returned
    unchanged.

    Example:
        >>> quote_identifier("Name")
        '[Name]'
        >>> quote_identifier("Nam]e")
        '[Nam]]e]'
    """
    if name.startswith(QUOTE_PREFIX) and name.endswith(QUOTE_SUFFIX):
        return name

    return QUOTE_PREFIX + name.replace(QUOTE_SUFFIX, QUOTE_SUFFIX * 2) + QUOTE_SUFFIX


def table_identifier(name: str) -> str:
    """Quote every segment of a dotted name (``dbo.User`` -> ``[dbo].[User]``)."""
    return ".".join(quote_identifier(part) for part in name.split("."))


def parse_identifier(name: str) -> str:
    """Strip one layer of surrounding brackets, if present on both ends."""
    if name.startswith(QUOTE_PREFIX) and name.endswith(QUOTE_SUFFIX):
        return name[1:-1]

    return name


def is_missing(value: Any) -> bool:
    """True for None, NaN, ``pd.NA`` and ``pd.NaT``."""
    if value is None:
        return True
    if isinstance(value, float):
        return math.isnan(value)
    return bool(pd.api.types.is_scalar(value) and pd.isna(value))


def needs_quote(value_type: type) -> bool:
    """Whether literals of ``value_type`` are written as quoted strings."""
    return isinstance(value_type, type) and issubclass(value_type, QUOTED_TYPES)


def to_python(value: Any) -> Any:
    """Convert numpy/pandas scalars to the equivalent Python objects."""
    if isinstance(value, np.datetime64):
        return pd.Timestamp(value).to_pydatetime()
    if isinstance(value, np.timedelta64):
        return pd.Timedelta(value).to_pytimedelta()
    if isinstance(value, np.generic):
        return value.item()
    return value


def _format_timedelta(value: timedelta) -> str:
    sign = "-" if value < timedelta(0) else ""
    value = abs(value)

    hours, remainder = divmod(value.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    text = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    if value.days:
        text = f"{value.days}.{text}"
    if value.microseconds:
        text = f"{text}.{value.microseconds:06d}"
    return sign + text


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "0x" + bytes(value).hex().upper()
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.isoformat(sep=" ", timespec="microseconds")
        return value.strftime("%Y-%m-%d %H:%M:%S.") + f"{value.microsecond // 1000:03d}"
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S.%f")
    if isinstance(value, timedelta):
        return _format_timedelta(value)
    return str(value)


def format_literal(value: Any, value_type: Optional[type] = None) -> str:
    """Render a value as a T-SQL literal.

    Args:
        value: The value to render.
        value_type: Runtime type deciding whether the literal is quoted;
            defaults to ``type(value)``.

    Returns:
        ``NULL`` for missing values, ``0``/``1`` for booleans, ``0x..`` for
        binary data, a quoted and escaped string for text, temporal and
        unique-identifier values, and the plain text form otherwise.
    """
    if is_missing(value):
        return "NULL"

    value = to_python(value)
    if not isinstance(value_type, type) or issubclass(value_type, np.generic):
        value_type = type(value)

    text = _to_text(value)
    if needs_quote(value_type):
        return "'" + text.replace("'", "''") + "'"
    return text
