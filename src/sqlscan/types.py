"""
Type handling for record fields.

This module provides:
- TypeConverter: Convert Python values to driver-compatible parameters
- decode_value: Convert a result column value to a record field type
- SQLite converters for date/datetime columns
"""
import datetime
import decimal
import enum
import json
import logging
import math
from collections.abc import Callable
from typing import Any

import dateutil.parser
import numpy as np
import pandas as pd
from sqlscan.exceptions import DecodeError

logger = logging.getLogger(__name__)

NUMPY_FLOAT_TYPES = (np.floating,)
NUMPY_INT_TYPES = (np.integer, np.unsignedinteger)


# Type Converter - Python -> database parameter

def _convert_numpy_value(val: Any) -> float | int | datetime.datetime | None:
    """Convert NumPy value to Python type."""
    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64) and np.isnat(val):
        return None

    if isinstance(val, (np.floating, np.integer, np.bool_)):
        return val.item()

    if isinstance(val, np.datetime64):
        return pd.Timestamp(val).to_pydatetime()

    return val


class TypeConverter:
    """Conversion of record values into bind parameters.

    Handles NumPy and Pandas scalars, NA markers, enums and JSON containers.
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to a database-compatible format."""
        if value is None:
            return None

        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None

        if isinstance(value, (*NUMPY_FLOAT_TYPES, *NUMPY_INT_TYPES, np.bool_, np.datetime64)):
            return _convert_numpy_value(value)

        if isinstance(value, type(pd.NaT)):
            return None

        if isinstance(value, pd.Timestamp):
            return value.to_pydatetime()

        if isinstance(value, enum.Enum):
            return value.value

        if isinstance(value, (dict, list)):
            return json.dumps(value)

        if value is pd.NA:
            return None

        return value

    @staticmethod
    def convert_params(params: Any) -> Any:
        """Convert a collection of parameters for database operations."""
        if params is None:
            return None

        if isinstance(params, dict):
            return {k: TypeConverter.convert_value(v) for k, v in params.items()}

        if isinstance(params, list | tuple):
            return type(params)(TypeConverter.convert_value(v) for v in params)

        return TypeConverter.convert_value(params)


convert_param = TypeConverter.convert_value


# Column decoding - database value -> field type

_TRUE_STRINGS = {'t', 'true', 'y', 'yes', '1', 'on'}
_FALSE_STRINGS = {'f', 'false', 'n', 'no', '0', 'off'}


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode()
    if isinstance(value, str):
        return value
    raise TypeError(f'expected text, got {type(value).__name__}')


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return int(value)
    if isinstance(value, (float, decimal.Decimal)):
        if value != int(value):
            raise ValueError(f'{value!r} is not integral')
        return int(value)
    return int(_text(value).strip())


def _to_float(value: Any) -> float:
    if isinstance(value, (int, float, decimal.Decimal)):
        return float(value)
    return float(_text(value).strip())


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value not in {0, 1}:
            raise ValueError(f'{value!r} is not a boolean')
        return bool(value)
    text = _text(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError(f'{value!r} is not a boolean')


def _to_str(value: Any) -> str:
    if isinstance(value, (int, float, decimal.Decimal)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    return _text(value)


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode()
    raise TypeError(f'expected bytes, got {type(value).__name__}')


def _to_decimal(value: Any) -> decimal.Decimal:
    if isinstance(value, decimal.Decimal):
        return value
    if isinstance(value, float):
        return decimal.Decimal(str(value))
    if isinstance(value, int):
        return decimal.Decimal(value)
    return decimal.Decimal(_text(value).strip())


def _to_datetime(value: Any) -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)
    return dateutil.parser.isoparse(_text(value).strip())


def _to_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    return dateutil.parser.isoparse(_text(value).strip()).date()


def _to_time(value: Any) -> datetime.time:
    if isinstance(value, datetime.datetime):
        return value.time()
    if isinstance(value, datetime.time):
        return value
    return datetime.time.fromisoformat(_text(value).strip())


def _json_decoder(target: type) -> Callable[[Any], Any]:
    def decode(value: Any) -> Any:
        if isinstance(value, target):
            return value
        loaded = json.loads(_text(value))
        if not isinstance(loaded, target):
            raise TypeError(f'JSON value is {type(loaded).__name__}, not {target.__name__}')
        return loaded
    return decode


_DECODERS: dict[type, Callable[[Any], Any]] = {
    int: _to_int,
    float: _to_float,
    bool: _to_bool,
    str: _to_str,
    bytes: _to_bytes,
    decimal.Decimal: _to_decimal,
    datetime.datetime: _to_datetime,
    datetime.date: _to_date,
    datetime.time: _to_time,
    dict: _json_decoder(dict),
    list: _json_decoder(list),
}


def _fallback_decoder(target: type) -> Callable[[Any], Any]:
    def decode(value: Any) -> Any:
        if isinstance(value, target):
            return value
        return target(value)
    return decode


def get_decoder(target: type | None) -> Callable[[Any], Any] | None:
    """Return the converter for a field type, None for untyped fields.
    """
    if target is None:
        return None
    if target in _DECODERS:
        return _DECODERS[target]
    if isinstance(target, type) and issubclass(target, enum.Enum):
        return target
    return _fallback_decoder(target)


def decode_value(value: Any, target: type | None, optional: bool = True,
                 column: str | None = None) -> Any:
    """Convert a column value to the field's declared type.

    Raises DecodeError when the value cannot be represented by the type,
    including NULL into a non-optional field.
    """
    label = f'column {column}' if column else 'value'
    if value is None:
        if optional:
            return None
        raise DecodeError(f'cannot convert NULL {label} to {target.__name__}')

    decoder = get_decoder(target)
    if decoder is None:
        return value

    try:
        return decoder(value)
    except (TypeError, ValueError, ArithmeticError, OverflowError) as err:
        raise DecodeError(
            f'cannot convert {label} value {value!r} ({type(value).__name__}) '
            f'to {target.__name__}: {err}') from err


# SQLite converters - registered on sqlite connections

def convert_date(val: bytes) -> datetime.date:
    """Convert ISO 8601 date string to date object."""
    return dateutil.parser.isoparse(val.decode()).date()


def convert_datetime(val: bytes) -> datetime.datetime:
    """Convert ISO 8601 datetime string to datetime object."""
    return dateutil.parser.isoparse(val.decode())
