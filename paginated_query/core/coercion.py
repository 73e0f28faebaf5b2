"""Text-to-typed argument conversion for dialects that bind typed values.

Filter values arrive as text. SQLite and MySQL compare them against typed
columns on their own; drivers such as asyncpg require the Python type that
matches the column. When the allowlist knows a column's type, values are
converted here. A value that does not parse stays text and the driver
reports the mismatch.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Optional
from uuid import UUID

_TRUE_VALUES = frozenset({"true", "t", "1", "yes", "y", "on"})
_FALSE_VALUES = frozenset({"false", "f", "0", "no", "n", "off"})


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 date or timestamp and normalize it to UTC.

    Naive values are taken as UTC. Returns `None` for anything unparsable.
    """

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _to_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {text!r}")


def _to_datetime(text: str) -> datetime:
    parsed = parse_timestamp(text)
    if parsed is None:
        raise ValueError(f"not a timestamp: {text!r}")
    return parsed


def _to_decimal(text: str) -> Decimal:
    try:
        return Decimal(text.strip())
    except InvalidOperation as exc:
        raise ValueError(f"not a decimal: {text!r}") from exc


_CONVERTERS: Dict[type, Callable[[str], Any]] = {
    bool: _to_bool,
    int: lambda text: int(text.strip()),
    float: lambda text: float(text.strip()),
    Decimal: _to_decimal,
    UUID: lambda text: UUID(text.strip()),
    datetime: _to_datetime,
    date: lambda text: date.fromisoformat(text.strip()),
    time: lambda text: time.fromisoformat(text.strip()),
}


def coerce_text(value: Any, python_type: Optional[type]) -> Any:
    """Convert one text value to `python_type`, or return it unchanged."""

    if python_type is None or not isinstance(value, str):
        return value
    if issubclass(python_type, Enum):
        return value
    converter = _CONVERTERS.get(python_type)
    if converter is None:
        return value
    try:
        return converter(value)
    except ValueError:
        return value
