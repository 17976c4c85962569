"""
Record mapping for SQL databases: CRUD over dataclass records and row scanning.

All record operations can be called either as:
- Module functions: sqlscan.insert(cn, 'users', user)
- Handle methods: cn.insert('users', user)

Any object with `exec`, `query` and `query_row` is a handle; `connect()`
returns one backed by SQLAlchemy.
"""
__version__ = '0.1.0'

from typing import Any

from sqlscan.connection import ConnectionWrapper, ExecResult, Row, connect
from sqlscan.crud import Handle, insert, load, query_all, query_row, save
from sqlscan.crud import update
from sqlscan.dialect import Dialect, configure, get_default_dialect, get_dialect
from sqlscan.dialect import register_dialect
from sqlscan.exceptions import DbConnectionError, DecodeError, DriverError
from sqlscan.exceptions import IntegrityError, MappingError, NotFound
from sqlscan.exceptions import OperationalError, ProgrammingError
from sqlscan.exceptions import SqlScanError, ValidationError
from sqlscan.metadata import column, columns, primary_key, record, record_info
from sqlscan.metadata import set_primary_key
from sqlscan.options import DatabaseOptions
from sqlscan.scanner import scan_all, scan_row
from sqlscan.sql import columns_quoted, quote_identifier, save_placeholders
from sqlscan.sql import save_placeholders_string, save_values
from sqlscan.transaction import Transaction as transaction


def execute(cn: Handle, sql: str, *args: Any) -> ExecResult:
    """Execute a statement on a handle and return its ExecResult.
    """
    return cn.exec(sql, *args)


__all__ = [
    # Connection
    'connect',
    'ConnectionWrapper',
    'DatabaseOptions',
    'ExecResult',
    'Row',
    'Handle',
    'transaction',
    'execute',
    # Record operations
    'load',
    'insert',
    'update',
    'save',
    'query_row',
    'query_all',
    'scan_row',
    'scan_all',
    # Metadata
    'column',
    'record',
    'record_info',
    'columns',
    'primary_key',
    'set_primary_key',
    # SQL fragments
    'quote_identifier',
    'columns_quoted',
    'save_placeholders',
    'save_placeholders_string',
    'save_values',
    # Dialects
    'Dialect',
    'configure',
    'get_dialect',
    'get_default_dialect',
    'register_dialect',
    # Exceptions
    'SqlScanError',
    'NotFound',
    'MappingError',
    'ValidationError',
    'DecodeError',
    'DriverError',
    'DbConnectionError',
    'IntegrityError',
    'OperationalError',
    'ProgrammingError',
]
