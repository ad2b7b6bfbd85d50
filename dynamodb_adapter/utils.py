"""
Helpers shared by the coercion, collection and query layers.

- timezone handling (UTC normalization, conversion to a user timezone)
- conversion between Python values and what boto3's resource layer accepts
  and returns (float <-> Decimal, stream/Binary <-> bytes)
- projection expressions with placeholder attribute names
"""

import io
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from boto3.dynamodb.types import Binary


# =============================================================================
# Timezones
# =============================================================================

def to_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Return ``dt`` in UTC, reading naive values as UTC wall time.

    >>> to_utc(datetime(2024, 1, 1, 10, 0, tzinfo=ZoneInfo('Europe/Rome')))  # 09:00 UTC
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def ensure_timezone_aware(dt: Optional[datetime], assumed_tz: str = "UTC") -> Optional[datetime]:
    """Attach ``assumed_tz`` to a naive datetime; aware values pass through."""
    if dt is None or dt.tzinfo is not None:
        return dt
    tz = timezone.utc if assumed_tz == "UTC" else ZoneInfo(assumed_tz)
    return dt.replace(tzinfo=tz)


def to_user_timezone(dt: Optional[datetime], user_tz: Optional[str] = None) -> Optional[datetime]:
    # No user timezone configured: keep what storage gave us (UTC)
    if dt is None or not user_tz:
        return dt
    return dt.astimezone(ZoneInfo(user_tz))


# =============================================================================
# Wire Normalization
# =============================================================================

def to_dynamodb_value(value: Any) -> Any:
    """Convert a coerced Python value into something boto3 can serialize.

    boto3 rejects ``float`` (it wants ``Decimal``) and has no notion of
    stream objects, so floats become ``Decimal(str(f))`` and readable streams
    become their bytes. Containers are converted recursively.

    Examples:
        >>> to_dynamodb_value(1.5)
        Decimal('1.5')
        >>> to_dynamodb_value({'scores': [1.5, 2]})
        {'scores': [Decimal('1.5'), 2]}
    """
    if isinstance(value, bool):
        return value
    elif isinstance(value, float):
        return Decimal(str(value))
    elif isinstance(value, dict):
        return {k: to_dynamodb_value(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [to_dynamodb_value(v) for v in value]
    elif isinstance(value, (set, frozenset)):
        return {to_dynamodb_value(v) for v in value}
    elif isinstance(value, io.BytesIO):
        return value.getvalue()
    elif hasattr(value, 'read') and hasattr(value, 'seek'):
        # Generic seekable stream: read everything, keep caller's position
        position = value.tell()
        value.seek(0)
        data = value.read()
        value.seek(position)
        return data.encode('utf-8') if isinstance(data, str) else data
    else:
        return value


def _narrow_decimal(value: Decimal) -> Any:
    if value == value.to_integral_value():
        return int(value)
    as_float = float(value)
    # Only narrow when the float reads back as the same number
    if Decimal(repr(as_float)) == value:
        return as_float
    return value


def from_dynamodb_value(value: Any) -> Any:
    """Convert a value returned by boto3 into plain Python types.

    Integral ``Decimal`` values become ``int`` and ``Binary`` becomes
    ``bytes``. Other ``Decimal`` values become ``float`` only when no digits
    are lost; the rest stay ``Decimal``. Containers are converted recursively.

    Examples:
        >>> from_dynamodb_value(Decimal('3'))
        3
        >>> from_dynamodb_value(Decimal('2.25'))
        2.25
        >>> from_dynamodb_value(Decimal('12345678901234567.89'))
        Decimal('12345678901234567.89')
    """
    if isinstance(value, Decimal):
        return _narrow_decimal(value)
    elif isinstance(value, Binary):
        return value.value
    elif isinstance(value, dict):
        return {k: from_dynamodb_value(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [from_dynamodb_value(v) for v in value]
    elif isinstance(value, (set, frozenset)):
        return {from_dynamodb_value(v) for v in value}
    else:
        return value


def is_blank(value: Any) -> bool:
    """Return True for key components that can never match an item (None or empty)."""
    if isinstance(value, Binary):
        value = value.value
    if isinstance(value, (bytes, bytearray)):
        return len(value) == 0
    return value is None or str(value) == ""


# =============================================================================
# Query Building Utilities
# =============================================================================

def build_projection_expression(fields: Optional[List[str]]) -> Tuple[Optional[str], Optional[Dict[str, str]]]:
    """Turn attribute names into a ProjectionExpression and its placeholder map.

    Every name goes through a ``#pN`` placeholder, so reserved words such as
    ``name`` or ``status`` can be projected.

    Example:
        >>> build_projection_expression(['id', 'name'])
        ('#p0, #p1', {'#p0': 'id', '#p1': 'name'})

    Returns:
        ``(None, None)`` when no fields are given
    """
    if not fields:
        return None, None

    names = {f"#p{position}": field for position, field in enumerate(fields)}
    return ", ".join(names), names


__all__ = [
    # Timezone Utilities
    "to_utc",
    "ensure_timezone_aware",
    "to_user_timezone",

    # Wire Normalization
    "to_dynamodb_value",
    "from_dynamodb_value",
    "is_blank",

    # Query Building
    "build_projection_expression",
]
