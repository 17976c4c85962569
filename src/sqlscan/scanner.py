"""
Scan result rows into records.

Result columns bind positionally to the record's mapped fields, in the same
order used to build SELECT column lists. Cursors are DB-API cursors that have
already executed their query; both scanners close the cursor before returning.
"""
import dataclasses
import logging
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from sqlscan.exceptions import DecodeError, MappingError, NotFound
from sqlscan.metadata import RecordInfo, record_info, require_mutable
from sqlscan.types import decode_value

__all__ = ['scan_row', 'scan_all', 'iter_rows']

logger = logging.getLogger(__name__)

FETCH_SIZE = 500


def iter_rows(cursor: Any, size: int = FETCH_SIZE) -> Iterator[Sequence]:
    """Iterate through cursor results in chunks."""
    while True:
        chunk = cursor.fetchmany(size)
        if not chunk:
            break
        yield from chunk


def _row_values(row: Any) -> tuple:
    if isinstance(row, Mapping):
        return tuple(row.values())
    return tuple(row)


def _decode_row(row: Any, info: RecordInfo) -> dict[str, Any]:
    """Decode one row into {attribute: value} for the leading fields.
    """
    values = _row_values(row)
    if len(values) > len(info.fields):
        raise MappingError(
            f'result has {len(values)} columns but {info.model.__name__} '
            f'maps only {len(info.fields)} fields')
    return {
        f.name: decode_value(value, f.pytype, f.optional, f.column)
        for f, value in zip(info.fields, values)
    }


def _construct(model: type, values: dict[str, Any]) -> Any:
    """Build a new record from decoded values.

    Unbound fields keep their dataclass default, or None without one.
    """
    kwargs = {}
    late = {}
    for f in dataclasses.fields(model):
        if f.name in values:
            value = values[f.name]
        elif f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING:
            continue
        elif f.init:
            value = None
        else:
            continue
        if f.init:
            kwargs[f.name] = value
        else:
            late[f.name] = value

    try:
        obj = model(**kwargs)
    except (TypeError, ValueError) as err:
        raise DecodeError(f'cannot build {model.__name__} from row: {err}') from err
    for name, value in late.items():
        object.__setattr__(obj, name, value)
    return obj


def scan_row(cursor: Any, dst: Any) -> Any:
    """Scan a single row into `dst`.

    `dst` is a record instance, populated in place, or a record class, from
    which a new instance is built. Raises NotFound when the cursor has no row;
    `dst` is left untouched on every failure.

    Returns
        The populated record
    """
    try:
        info = record_info(dst)
        if not isinstance(dst, type):
            require_mutable(dst, 'scan into it; pass the class to build a new record')
        row = cursor.fetchone()
        if row is None:
            raise NotFound('no rows in result set')
        values = _decode_row(row, info)
    finally:
        cursor.close()

    if isinstance(dst, type):
        return _construct(info.model, values)
    for name, value in values.items():
        setattr(dst, name, value)
    return dst


def scan_all(cursor: Any, model: Any) -> list[Any]:
    """Scan every remaining row into new records of `model`.

    Zero rows is an empty list, never NotFound.
    """
    try:
        info = record_info(model)
        results = [_construct(info.model, _decode_row(row, info)) for row in iter_rows(cursor)]
    finally:
        cursor.close()
    logger.debug(f'Scanned {len(results)} {info.model.__name__} rows')
    return results
