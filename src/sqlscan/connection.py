"""
SQLAlchemy-backed database handle.

`connect()` returns a `ConnectionWrapper`: a handle with `exec`, `query` and
`query_row` that also carries the record operations (`cn.load(...)`,
`cn.insert(...)`, ...). Engines are shared per URL and created without a
pool; each wrapper owns one DB-API connection.

Statements are written in the connection's SQL dialect (e.g. `$1` placeholders
for postgresql) and translated to the driver's paramstyle before execution.
"""
import atexit
import datetime
import decimal
import json
import logging
import sqlite3
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, fields
from functools import wraps
from typing import Any, Self

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlscan.crud import CrudMixin
from sqlscan.dialect import Dialect, get_dialect
from sqlscan.exceptions import NotFound
from sqlscan.options import DatabaseOptions
from sqlscan.sql import convert_placeholders
from sqlscan.transaction import Transaction
from sqlscan.types import TypeConverter, convert_date, convert_datetime

__all__ = [
    'ConnectionWrapper',
    'ExecResult',
    'Row',
    'connect',
    'create_url_from_options',
    'get_engine_for_options',
    'dispose_all_engines',
    'get_dialect_name',
]

logger = logging.getLogger(__name__)

# drivername -> SQLAlchemy driver URL scheme
DRIVER_URLS = {
    'postgresql': 'postgresql+psycopg',
    'sqlite': 'sqlite',
}

# drivername -> engine keyword arguments
ENGINE_ARGS: dict[str, dict[str, Any]] = {
    'sqlite': {'connect_args': {'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES}},
}

_engines: dict[str, Engine] = {}
_engines_lock = threading.RLock()


def create_url_from_options(options: DatabaseOptions,
                            url_creator: Callable[..., sa.URL] = sa.URL.create) -> sa.URL:
    """SQLAlchemy URL for a set of connection options.
    """
    if options.drivername not in DRIVER_URLS:
        raise ValueError(f'Unsupported database type: {options.drivername}')

    if options.drivername == 'sqlite':
        return url_creator(DRIVER_URLS['sqlite'], database=options.database)

    query = {'application_name': options.appname}
    if options.timeout:
        query['connect_timeout'] = str(options.timeout)
    return url_creator(DRIVER_URLS[options.drivername], username=options.username,
                       password=options.password, host=options.hostname,
                       port=options.port, database=options.database, query=query)


def get_engine_for_options(options: DatabaseOptions,
                           engine_factory: Callable[..., Engine] = sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Shared engine for the options' URL, created on first request.
    """
    url = create_url_from_options(options)
    key = url.render_as_string(hide_password=False)

    with _engines_lock:
        engine = _engines.get(key)
        if engine is None:
            engine_kwargs = {'poolclass': NullPool, **ENGINE_ARGS.get(options.drivername, {}), **kwargs}
            engine = _engines[key] = engine_factory(url, **engine_kwargs)
            logger.debug(f'Created engine for {url.render_as_string()}')
        return engine


def dispose_all_engines() -> None:
    """Dispose and forget every shared engine.
    """
    with _engines_lock:
        while _engines:
            _, engine = _engines.popitem()
            engine.dispose()
    logger.debug('Disposed all engines')


atexit.register(dispose_all_engines)


def get_dialect_name(obj: Any) -> str:
    """Get dialect name for a SQLAlchemy connection or engine.
    """
    if hasattr(obj, 'dialect') and hasattr(obj.dialect, 'name'):
        return str(obj.dialect.name).lower()

    if hasattr(obj, 'engine') and hasattr(obj.engine, 'dialect'):
        return str(obj.engine.dialect.name).lower()

    raise AttributeError(f'Cannot determine dialect for {type(obj)}')


def get_paramstyle(sa_connection: Any) -> str:
    """DB-API paramstyle of the driver behind a SQLAlchemy connection.
    """
    sa_dialect = sa_connection.dialect
    dbapi = getattr(sa_dialect, 'loaded_dbapi', None) or getattr(sa_dialect, 'dbapi', None)
    return getattr(dbapi, 'paramstyle', None) or sa_dialect.paramstyle


def dumpsql(func):
    """Decorator for logging SQL statements, arguments and timing."""
    @wraps(func)
    def wrapper(self, sql: str, *args: Any):
        start = time.time()
        logger.debug(f'SQL:\n{sql}\nargs: {args}')
        try:
            return func(self, sql, *args)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{sql}\nargs: {args}')
            raise
        finally:
            elapsed = time.time() - start
            self.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


@dataclass(frozen=True, slots=True)
class ExecResult:
    """Outcome of a statement run with `exec`."""
    rowcount: int
    lastrowid: int | None = None


class Row:
    """Single-row result of `query_row`.

    The row is fetched eagerly; `scan()` raises NotFound when there was none.
    """

    def __init__(self, values: tuple | None) -> None:
        self._values = values

    def scan(self) -> tuple:
        if self._values is None:
            raise NotFound('no rows in result set')
        return self._values


class ConnectionWrapper(CrudMixin):
    """Database handle over one SQLAlchemy connection.

    Statements run on raw DB-API cursors after placeholder translation. Each
    statement is committed on its own unless a Transaction is active, and a
    failed statement outside a transaction is rolled back. `calls` and `time`
    accumulate per-statement statistics.
    """

    def __init__(self, sa_connection: sa.engine.Connection,
                 options: DatabaseOptions | None = None,
                 dialect: 'str | Dialect | None' = None) -> None:
        self.sa_connection = sa_connection
        self.engine = sa_connection.engine
        self.options = options
        self.dbapi_connection = sa_connection.connection
        if dialect is not None:
            self._dialect = get_dialect(dialect)
        elif options is not None:
            self._dialect = options.sql_dialect()
        else:
            self._dialect = get_dialect(get_dialect_name(sa_connection))
        self.paramstyle = get_paramstyle(sa_connection)
        self.calls = 0
        self.time = 0
        self.in_transaction = False

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    @property
    def dialect(self) -> Dialect:
        """SQL dialect statements for this connection are written in."""
        return self._dialect

    @property
    def closed(self) -> bool:
        return bool(getattr(self.sa_connection, 'closed', False))

    def addcall(self, elapsed: float) -> None:
        self.time += elapsed
        self.calls += 1

    def cursor(self) -> Any:
        """Raw DB-API cursor on the underlying connection.
        """
        return self.dbapi_connection.cursor()

    def commit(self) -> None:
        self.dbapi_connection.commit()

    def rollback(self) -> None:
        self.dbapi_connection.rollback()

    def close(self) -> None:
        """Commit outside a transaction, then release the connection.
        """
        if self.closed:
            return
        if not self.in_transaction:
            self.commit()
        self.sa_connection.close()
        logger.debug(f'Closed connection after {self.calls} statements in {self.time:.3f}s')

    def _prepare(self, sql: str, args: tuple) -> tuple[str, tuple | None]:
        """Translate placeholders and convert parameters for the driver.
        """
        sql, args = convert_placeholders(sql, args, self._dialect.placeholder, self.paramstyle)
        return sql, (TypeConverter.convert_params(args) if args else None)

    def _run(self, sql: str, args: tuple) -> Any:
        """Execute on a fresh cursor, rolling back on failure outside transactions.
        """
        processed_sql, processed_args = self._prepare(sql, args)
        cursor = self.cursor()
        try:
            if processed_args is None:
                cursor.execute(processed_sql)
            else:
                cursor.execute(processed_sql, processed_args)
        except Exception:
            cursor.close()
            if not self.in_transaction:
                self.rollback()
            raise
        return cursor

    def _finish(self) -> None:
        if not self.in_transaction:
            self.commit()

    @dumpsql
    def exec(self, sql: str, *args: Any) -> ExecResult:
        """Execute a statement and return its row count and generated id.
        """
        cursor = self._run(sql, args)
        try:
            result = ExecResult(rowcount=cursor.rowcount,
                                lastrowid=getattr(cursor, 'lastrowid', None))
        finally:
            cursor.close()
        self._finish()
        logger.debug(f'Executed statement affecting {result.rowcount} rows')
        return result

    @dumpsql
    def query(self, sql: str, *args: Any) -> Any:
        """Execute a query and return its open cursor.

        The caller owns the cursor and must close it.
        """
        cursor = self._run(sql, args)
        self._finish()
        return cursor

    @dumpsql
    def query_row(self, sql: str, *args: Any) -> Row:
        """Execute a query and fetch its first row.
        """
        cursor = self._run(sql, args)
        try:
            values = cursor.fetchone()
        finally:
            cursor.close()
        self._finish()
        return Row(tuple(values) if values is not None else None)

    def transaction(self) -> Transaction:
        """Start a Transaction on this connection.
        """
        return Transaction(self)


def configure_connection(sa_connection: sa.engine.Connection) -> None:
    """Register driver-specific adapters and converters.
    """
    if get_dialect_name(sa_connection) == 'sqlite':
        sqlite3.register_adapter(dict, json.dumps)
        sqlite3.register_adapter(list, json.dumps)
        sqlite3.register_adapter(datetime.date, datetime.date.isoformat)
        sqlite3.register_adapter(datetime.datetime, datetime.datetime.isoformat)
        sqlite3.register_adapter(decimal.Decimal, str)
        sqlite3.register_converter('date', convert_date)
        sqlite3.register_converter('datetime', convert_datetime)


def connect(options: DatabaseOptions | dict[str, Any] | None = None,
            **kw: Any) -> ConnectionWrapper:
    """Connect to a database using SQLAlchemy for connection management

    Args:
        options: Can be:
                - DatabaseOptions object
                - Dictionary of options
                - None, with options specified as keyword arguments
        **kw: Additional keyword arguments to override options

    Returns
        ConnectionWrapper object for the database
    """
    if isinstance(options, DatabaseOptions):
        overrides = {f.name: kw.pop(f.name) for f in fields(options) if f.name in kw}
        if overrides:
            options = DatabaseOptions(**{**options.__dict__, **overrides})
    else:
        options = DatabaseOptions(**{**(options or {}), **kw})

    engine = get_engine_for_options(options)

    sa_connection = engine.connect()
    configure_connection(sa_connection)

    return ConnectionWrapper(sa_connection, options)
