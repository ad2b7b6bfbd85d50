"""
Attribute Coercers

Per-column codecs converting application values into storage-ready
primitives (``dump``) and back (``load``). Every kind maps ``None`` to
``None`` in both directions.

Storage representations:
- boolean:  1 / 0 small integers
- time:     float epoch seconds, loaded as a UTC-aware datetime
- date:     float epoch seconds of midnight UTC, loaded as a date
- datetime: float epoch seconds, loaded as an aware datetime in the user timezone
- io:       raw bytes, loaded as a seekable BytesIO

A ``Coercer`` is built once per collection from its attribute mapping and
validates every kind up front, so a typo in a mapping fails when the adapter
is built rather than on the first write.
"""

import io
import logging
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from boto3.dynamodb.types import Binary

from ..exceptions import CoercionError
from ..utils import ensure_timezone_aware, to_user_timezone, to_utc

logger = logging.getLogger(__name__)

Codec = Tuple[Callable[[Any], Any], Callable[[Any], Any]]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


# =============================================================================
# Binary stream
# =============================================================================

def dump_io(value: Any) -> Any:
    return value


def load_io(value: Any) -> Any:
    if value is None:
        return None
    if hasattr(value, 'read'):
        return value
    if isinstance(value, Binary):
        value = value.value
    if isinstance(value, str):
        value = value.encode('utf-8')
    return io.BytesIO(bytes(value))


# =============================================================================
# Boolean
# =============================================================================

def dump_boolean(value: Any) -> Optional[int]:
    if value is None:
        return None
    return 1 if value else 0


def load_boolean(value: Any) -> Optional[bool]:
    if value is None:
        return None
    return int(value) == 1


# =============================================================================
# Timestamps
# =============================================================================

def dump_time(value: Any) -> Optional[float]:
    if value is None:
        return None
    if _is_number(value):
        return float(value)
    return to_utc(value).timestamp()


def load_time(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def dump_date(value: Any) -> Optional[float]:
    """Dump a date as the epoch seconds of its midnight in UTC."""
    if value is None:
        return None
    if _is_number(value):
        return float(value)
    if isinstance(value, datetime):
        value = to_utc(value).date()
    return datetime.combine(value, time.min, tzinfo=timezone.utc).timestamp()


def load_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromtimestamp(float(value), tz=timezone.utc).date()


def dump_datetime(value: Any) -> Optional[float]:
    # Already-numeric values pass through so re-dumping is a no-op
    if value is None:
        return None
    if _is_number(value):
        return float(value)
    return ensure_timezone_aware(value).timestamp()


def make_load_datetime(user_timezone: Optional[str] = None) -> Callable[[Any], Any]:
    """Build a datetime loader converting into ``user_timezone`` (UTC when None)."""

    def load_datetime(value: Any) -> Optional[datetime]:
        if value is None:
            return None
        if isinstance(value, datetime):
            return to_user_timezone(ensure_timezone_aware(value), user_timezone)
        loaded = datetime.fromtimestamp(float(value), tz=timezone.utc)
        return to_user_timezone(loaded, user_timezone)

    return load_datetime


# =============================================================================
# Simple casts
# =============================================================================

def _nullable(cast: Callable[[Any], Any]) -> Callable[[Any], Any]:
    def coerce(value: Any) -> Any:
        if value is None:
            return None
        return cast(value)
    coerce.__name__ = f"coerce_{getattr(cast, '__name__', 'value')}"
    return coerce


def _identity(value: Any) -> Any:
    return value


def _to_set(value: Any) -> Any:
    if value is None:
        return None
    return set(value)


def _to_list(value: Any) -> Any:
    if value is None:
        return None
    return list(value)


def _to_dict(value: Any) -> Any:
    if value is None:
        return None
    return dict(value)


KIND_ALIASES: Dict[Any, str] = {
    str: 'string',
    int: 'integer',
    float: 'float',
    Decimal: 'decimal',
    bool: 'boolean',
    bytes: 'io',
    datetime: 'datetime',
    date: 'date',
    set: 'set',
    list: 'list',
    dict: 'map',
}


def build_codec(kind: Union[str, type], user_timezone: Optional[str] = None) -> Codec:
    """Return the (dump, load) pair for a coercion kind.

    Raises:
        CoercionError: If the kind is unknown
    """
    name = KIND_ALIASES.get(kind, kind)

    if name == 'string':
        return _nullable(str), _nullable(str)
    elif name == 'integer':
        return _nullable(int), _nullable(int)
    elif name == 'float':
        return _nullable(float), _nullable(float)
    elif name == 'decimal':
        return _nullable(lambda v: Decimal(str(v))), _nullable(lambda v: Decimal(str(v)))
    elif name == 'boolean':
        return dump_boolean, load_boolean
    elif name == 'io':
        return dump_io, load_io
    elif name == 'time':
        return dump_time, load_time
    elif name == 'date':
        return dump_date, load_date
    elif name == 'datetime':
        return dump_datetime, make_load_datetime(user_timezone)
    elif name == 'set':
        return _to_set, _to_set
    elif name == 'list':
        return _to_list, _to_list
    elif name == 'map':
        return _to_dict, _to_dict
    elif name == 'raw':
        return _identity, _identity

    raise CoercionError(f"Unknown coercion kind: {kind!r}")


class Coercer:
    """
    Registry of per-attribute codecs for one collection.

    Example:
        coercer = Coercer({'id': 'string', 'active': 'boolean', 'created_at': 'datetime'})
        coercer.dump('active', True)  # -> 1
        coercer.load('active', 0)     # -> False
    """

    def __init__(self, attributes: Mapping[str, Union[str, type]], user_timezone: Optional[str] = None):
        """Build the registry, validating every kind.

        Args:
            attributes: Mapping of attribute name to coercion kind
            user_timezone: Timezone datetime attributes are loaded into

        Raises:
            CoercionError: If any attribute has an unknown kind
        """
        self._codecs: Dict[str, Codec] = {}
        for attribute, kind in attributes.items():
            try:
                self._codecs[str(attribute)] = build_codec(kind, user_timezone)
            except CoercionError as e:
                raise CoercionError(
                    f"Unknown coercion kind {kind!r} for attribute '{attribute}'",
                    attribute=str(attribute)
                ) from e

    @property
    def attributes(self) -> Tuple[str, ...]:
        return tuple(self._codecs)

    def __contains__(self, attribute: str) -> bool:
        return attribute in self._codecs

    def _codec(self, attribute: str) -> Codec:
        try:
            return self._codecs[attribute]
        except KeyError:
            raise CoercionError(
                f"No coercion registered for attribute '{attribute}'",
                attribute=attribute
            ) from None

    def dump(self, attribute: str, value: Any) -> Any:
        """Convert an application value into its storage value."""
        dump, _ = self._codec(attribute)
        try:
            return dump(value)
        except (TypeError, ValueError, AttributeError, ArithmeticError) as e:
            raise CoercionError(
                f"Cannot dump {value!r} for attribute '{attribute}': {e}",
                attribute=attribute,
                original_error=e
            ) from e

    def load(self, attribute: str, value: Any) -> Any:
        """Convert a storage value back into its application value."""
        _, load = self._codec(attribute)
        try:
            return load(value)
        except (TypeError, ValueError, AttributeError, ArithmeticError, OverflowError) as e:
            raise CoercionError(
                f"Cannot load {value!r} for attribute '{attribute}': {e}",
                attribute=attribute,
                original_error=e
            ) from e

    def dump_record(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        return {name: self.dump(name, value) for name, value in record.items()}

    def load_record(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Load a storage record, ignoring attributes the mapping does not know."""
        loaded = {}
        for name, value in record.items():
            if name not in self._codecs:
                logger.debug(f"Skipping unmapped attribute '{name}'")
                continue
            loaded[name] = self.load(name, value)
        return loaded
