"""Best-effort value coercion to declared Python types."""

import datetime
import decimal
import logging
import types
import typing
import uuid
from typing import Any, Callable, Dict, Optional, Tuple

import pandas as pd

from .errors import ConversionError
from .mappings import false_strings, true_strings

logger = logging.getLogger(__name__)

_NONE_TYPE = type(None)


def unwrap_optional(annotation: Any) -> Tuple[Any, bool]:
    """Split Optional[T] / T | None into (T, True); other annotations into (annotation, False)."""
    origin = typing.get_origin(annotation)
    union_type = getattr(types, 'UnionType', None)
    if origin is typing.Union or (union_type is not None and origin is union_type):
        args = [a for a in typing.get_args(annotation) if a is not _NONE_TYPE]
        if len(args) < len(typing.get_args(annotation)):
            if len(args) == 1:
                return args[0], True
            return typing.Union[tuple(args)], True
    return annotation, False


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        value = pd.to_numeric(value.strip(), errors='raise')
    if isinstance(value, (float, decimal.Decimal)) and value != int(value):
        raise ValueError('value has a fractional part')
    return int(value)


def _to_float(value: Any) -> float:
    if isinstance(value, str):
        return float(pd.to_numeric(value.strip(), errors='raise'))
    return float(value)


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        text = value.strip().lower()
        if text in true_strings:
            return True
        if text in false_strings:
            return False
        raise ValueError('not a boolean literal')
    if isinstance(value, (int, float, decimal.Decimal)):
        if value in (0, 1):
            return bool(value)
        raise ValueError('only 0 and 1 map to booleans')
    raise ValueError(f'unsupported source type {type(value).__name__}')


def _to_decimal(value: Any) -> decimal.Decimal:
    try:
        return decimal.Decimal(str(value).strip() if isinstance(value, str) else str(value))
    except decimal.InvalidOperation as e:
        raise ValueError('not a decimal literal') from e


def _to_datetime(value: Any) -> datetime.datetime:
    ts = pd.to_datetime(value, errors='raise')
    if pd.isna(ts):
        raise ValueError('not a timestamp')
    return ts.to_pydatetime()


def _to_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    return _to_datetime(value).date()


def _to_time(value: Any) -> datetime.time:
    if isinstance(value, datetime.datetime):
        return value.time()
    if isinstance(value, str):
        return datetime.time.fromisoformat(value.strip())
    raise ValueError(f'unsupported source type {type(value).__name__}')


def _to_uuid(value: Any) -> uuid.UUID:
    if isinstance(value, bytes) and len(value) == 16:
        return uuid.UUID(bytes=value)
    return uuid.UUID(str(value).strip())


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode('utf-8')
    return bytes(value)


# Target type -> coercer
coercers: Dict[type, Callable[[Any], Any]] = {
    bool: _to_bool,
    int: _to_int,
    float: _to_float,
    decimal.Decimal: _to_decimal,
    str: str,
    datetime.datetime: _to_datetime,
    datetime.date: _to_date,
    datetime.time: _to_time,
    uuid.UUID: _to_uuid,
    bytes: _to_bytes,
}


def coerce_value(value: Any, target: Any, column: Optional[str] = None) -> Any:
    """Coerce value to target, raising ConversionError when it cannot."""
    target, _ = unwrap_optional(target)
    if target is Any or target is object or value is None:
        return value
    if typing.get_origin(target) is not None or not isinstance(target, type):
        origin = typing.get_origin(target)
        if isinstance(origin, type) and isinstance(value, origin):
            return value
        raise ConversionError(value, target, column, 'unsupported target annotation')
    # bool is an int subclass; exact match avoids passing True through as an int
    if isinstance(value, target) and not (target is int and isinstance(value, bool)):
        if not (target is datetime.date and isinstance(value, datetime.datetime)):
            return value
    coercer = coercers.get(target)
    try:
        return coercer(value) if coercer else target(value)
    except Exception as e:
        logger.debug(f'Coerce {column or "?"}={value!r} ({target.__name__}): {e}')
        raise ConversionError(value, target, column, str(e)) from e
