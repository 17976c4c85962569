"""
Single-table CRUD over a database handle.

A handle is anything with `exec`, `query` and `query_row` (see `Handle`);
`ConnectionWrapper` and `Transaction` both qualify. Each operation builds its
statement from the record's field metadata, runs it through the handle and
scans results back into records:

    user = User(name='a')
    insert(cn, 'users', user)          # user.id now holds the generated key
    load(cn, 'users', user.id, User)   # -> new User
    user.name = 'b'
    update(cn, 'users', user)

Driver exceptions are re-raised as DriverError naming the operation and the
handle call; sqlscan errors keep their class so `except NotFound` still works.
"""
import logging
from collections.abc import Callable
from contextlib import contextmanager
from functools import wraps
from typing import Any, Protocol, TypeVar

from sqlscan.dialect import Dialect, get_default_dialect, get_dialect
from sqlscan.exceptions import DRIVER_ERRORS, DriverError, SqlScanError
from sqlscan.exceptions import MappingError, ValidationError
from sqlscan.metadata import primary_key, record_info, require_mutable
from sqlscan.metadata import set_primary_key
from sqlscan.scanner import scan_all, scan_row
from sqlscan.sql import build_insert_sql, build_select_sql, build_update_sql
from sqlscan.sql import save_values
from sqlscan.types import convert_param

__all__ = [
    'Handle',
    'CrudMixin',
    'load',
    'insert',
    'update',
    'save',
    'query_row',
    'query_all',
]

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ExecResultLike(Protocol):
    rowcount: int
    lastrowid: int | None


class RowLike(Protocol):
    def scan(self) -> tuple: ...


class Handle(Protocol):
    """Database capability consumed by the CRUD operations.
    """

    def exec(self, sql: str, *args: Any) -> ExecResultLike: ...

    def query(self, sql: str, *args: Any) -> Any: ...

    def query_row(self, sql: str, *args: Any) -> RowLike: ...


def operation(op: str) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Label sqlscan errors escaping `func` with the operation name.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def inner(*args: Any, **kwargs: Any) -> T:
            try:
                return func(*args, **kwargs)
            except SqlScanError as err:
                if err.op is None:
                    err.op = op
                raise
        return inner
    return decorator


@contextmanager
def driver_call(op: str, call: str):
    """Translate driver exceptions raised inside the block into DriverError.
    """
    try:
        yield
    except DRIVER_ERRORS as err:
        logger.debug(f'{op}: driver error in {call}: {err}')
        raise DriverError(op, call, err) from err


def resolve_dialect(handle: Any, dialect: 'str | Dialect | None' = None) -> Dialect:
    """Explicit dialect, else the handle's dialect, else the process default.
    """
    if dialect is not None:
        return get_dialect(dialect)
    handle_dialect = getattr(handle, 'dialect', None)
    if isinstance(handle_dialect, Dialect):
        return handle_dialect
    return get_default_dialect()


def _is_unset(pk_value: Any) -> bool:
    return pk_value is None or pk_value == 0


def _require_instance(obj: Any) -> None:
    if isinstance(obj, type):
        raise MappingError(f'expected a {obj.__name__} instance, not the class')


@operation('load')
def load(handle: Handle, table: str, pk: int, dst: T, *,
         dialect: 'str | Dialect | None' = None) -> T:
    """Load the row of `table` whose primary key is `pk` into `dst`.

    `dst` is a record instance (filled in place) or a record class (a new
    instance is returned). Raises NotFound if there is no such row.
    """
    info = record_info(dst)
    if info.pk is None:
        raise ValidationError(f'no primary key field found in {info.model.__name__}')

    sql = build_select_sql(table, dst, resolve_dialect(handle, dialect))
    with driver_call('load', 'query'):
        cursor = handle.query(sql, pk)
    with driver_call('load', 'scan'):
        return scan_row(cursor, dst)


@operation('insert')
def insert(handle: Handle, table: str, src: T, *,
           dialect: 'str | Dialect | None' = None) -> T:
    """INSERT `src` into `table`.

    A primary key field must be zero (or None); it is set to the key the
    database generated once the insert succeeds.
    """
    _require_instance(src)
    pk_name, pk_value = primary_key(src)
    if pk_name is not None and not _is_unset(pk_value):
        raise ValidationError('primary key must be zero')
    if pk_name is not None:
        require_mutable(src, 'set the generated primary key')

    dialect = resolve_dialect(handle, dialect)
    sql = build_insert_sql(table, src, dialect)
    values = save_values(False, src)

    if pk_name is None:
        with driver_call('insert', 'exec'):
            handle.exec(sql, *values)
        return src

    if dialect.returning:
        with driver_call('insert', 'query_row'):
            new_pk = handle.query_row(sql, *values).scan()[0]
    else:
        with driver_call('insert', 'exec'):
            result = handle.exec(sql, *values)
        new_pk = result.lastrowid
        if new_pk is None:
            raise DriverError('insert', 'lastrowid',
                              message='driver did not report the new primary key')

    set_primary_key(new_pk, src)
    logger.debug(f'Inserted {type(src).__name__} into {table} with {pk_name}={new_pk}')
    return src


@operation('update')
def update(handle: Handle, table: str, src: T, *,
           dialect: 'str | Dialect | None' = None) -> T:
    """UPDATE the row of `table` selected by the primary key of `src`.

    The key must be an integer > 0. A key that matches no row is not an error.
    """
    _require_instance(src)
    pk_name, pk_value = primary_key(src)
    if pk_name is None:
        raise ValidationError('no primary key field')
    if pk_value is None or pk_value < 1:
        raise ValidationError('primary key must be an integer > 0')

    sql = build_update_sql(table, src, resolve_dialect(handle, dialect))
    values = save_values(False, src)
    values.append(convert_param(pk_value))

    with driver_call('update', 'exec'):
        result = handle.exec(sql, *values)
    if not getattr(result, 'rowcount', None):
        logger.debug(f'Update of {table} {pk_name}={pk_value} matched no rows')
    return src


@operation('save')
def save(handle: Handle, table: str, src: T, *,
         dialect: 'str | Dialect | None' = None) -> T:
    """UPDATE when `src` has a non-zero primary key, INSERT otherwise.
    """
    _require_instance(src)
    pk_name, pk_value = primary_key(src)
    if pk_name is not None and not _is_unset(pk_value):
        return update(handle, table, src, dialect=dialect)
    return insert(handle, table, src, dialect=dialect)


@operation('query_row')
def query_row(handle: Handle, dst: T, sql: str, *args: Any) -> T:
    """Run `sql` and scan its first row into `dst`.

    Raises NotFound when the query returns no rows.
    """
    with driver_call('query_row', 'query'):
        cursor = handle.query(sql, *args)
    with driver_call('query_row', 'scan'):
        return scan_row(cursor, dst)


@operation('query_all')
def query_all(handle: Handle, model: type[T], sql: str, *args: Any,
              into: list | None = None) -> list[T]:
    """Run `sql` and scan every row into a new `model` record.

    With `into`, the records are appended to that list, only once every row
    has been scanned. A query with no rows yields an empty list.
    """
    with driver_call('query_all', 'query'):
        cursor = handle.query(sql, *args)
    with driver_call('query_all', 'scan'):
        results = scan_all(cursor, model)
    if into is None:
        return results
    into.extend(results)
    return into


class CrudMixin:
    """Method-style access to the CRUD operations for handle classes.

    `query_row` and `query_all` are exposed as `select_row` and `select_all`;
    a handle's own `query_row` is the raw call returning a `Row`.
    """

    def load(self, table: str, pk: int, dst: T, **kwargs: Any) -> T:
        return load(self, table, pk, dst, **kwargs)

    def insert(self, table: str, src: T, **kwargs: Any) -> T:
        return insert(self, table, src, **kwargs)

    def update(self, table: str, src: T, **kwargs: Any) -> T:
        return update(self, table, src, **kwargs)

    def save(self, table: str, src: T, **kwargs: Any) -> T:
        return save(self, table, src, **kwargs)

    def select_row(self, dst: T, sql: str, *args: Any) -> T:
        return query_row(self, dst, sql, *args)

    def select_all(self, model: type[T], sql: str, *args: Any, **kwargs: Any) -> list[T]:
        return query_all(self, model, sql, *args, **kwargs)
