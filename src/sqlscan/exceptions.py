"""
Exception classes for record mapping and database access.
"""
import sqlite3

import psycopg
import sqlalchemy.exc


class SqlScanError(Exception):
    """Base class for all sqlscan errors.

    `op` names the public operation (`load`, `insert`, ...) that surfaced the
    error; it is filled in by the orchestrator and prefixed to the message.
    """

    def __init__(self, message: str = '', op: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.op = op

    def __str__(self) -> str:
        if self.op:
            return f'sqlscan.{self.op}: {self.message}'
        return self.message


class NotFound(SqlScanError, LookupError):
    """A single-row lookup matched zero rows.
    """


class MappingError(SqlScanError, TypeError):
    """A record type or value does not have the shape the mapper requires.
    """


class ValidationError(SqlScanError, ValueError):
    """A caller precondition was violated.
    """


class DecodeError(SqlScanError, ValueError):
    """A result column could not be converted to its field type.
    """


class DriverError(SqlScanError):
    """Failure surfaced by the underlying database handle.

    The original exception is kept on `cause` and chained as `__cause__`.
    """

    def __init__(self, op: str, call: str, cause: BaseException | None = None,
                 message: str | None = None) -> None:
        self.call = call
        self.cause = cause
        super().__init__(message or f'DB error in {call}: {cause}', op=op)


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    )

IntegrityError = (
    psycopg.IntegrityError,
    sqlite3.IntegrityError,
    )

ProgrammingError = (
    psycopg.ProgrammingError,
    sqlite3.ProgrammingError,
    )

OperationalError = (
    psycopg.OperationalError,
    sqlite3.OperationalError,
    )

# Everything a handle call may raise that originates below the mapper.
DRIVER_ERRORS = (
    psycopg.Error,
    sqlite3.Error,
    sqlalchemy.exc.SQLAlchemyError,
    )
