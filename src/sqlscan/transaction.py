"""
Transaction handling for database operations.
"""
import logging
import threading
from typing import Any

from sqlscan.crud import CrudMixin
from sqlscan.dialect import Dialect

logger = logging.getLogger(__name__)


_local = threading.local()


class Transaction(CrudMixin):
    """Context manager for running multiple commands in a transaction.

    This implementation uses thread-local storage to track transaction state,
    making it safe to use in multi-threaded environments. Nested transactions
    on the same connection within one thread are not supported.

    A Transaction is itself a handle, so the record operations run inside it:

    Examples
        with Transaction(cn) as tx:
            tx.insert('users', user)
            tx.exec('delete from audit where user_id = $1', user.id)
    """

    def __init__(self, cn: Any) -> None:
        self.cn = cn

        if not hasattr(_local, 'active_transactions'):
            _local.active_transactions = {}

        if id(cn) in _local.active_transactions:
            raise RuntimeError('Nested transactions are not supported')

    @property
    def dialect(self) -> Dialect:
        return self.cn.dialect

    def __enter__(self) -> 'Transaction':
        if id(self.cn) in _local.active_transactions:
            raise RuntimeError('Nested transactions are not supported')
        _local.active_transactions[id(self.cn)] = True
        self.cn.in_transaction = True
        logger.debug(f'Started transaction for connection {id(self.cn)}')
        return self

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        try:
            if exc_type is not None:
                self.cn.rollback()
                logger.warning('Rolling back the current transaction')
            else:
                self.cn.commit()
                logger.debug(f'Committed transaction for connection {id(self.cn)}')
        finally:
            _local.active_transactions.pop(id(self.cn), None)
            self.cn.in_transaction = False
            logger.debug(f'Transaction cleanup complete for connection {id(self.cn)}')

    def exec(self, sql: str, *args: Any) -> Any:
        """Execute a statement within the transaction"""
        return self.cn.exec(sql, *args)

    def query(self, sql: str, *args: Any) -> Any:
        """Execute a query within the transaction and return its cursor"""
        return self.cn.query(sql, *args)

    def query_row(self, sql: str, *args: Any) -> Any:
        """Execute a query within the transaction and return its first row"""
        return self.cn.query_row(sql, *args)
