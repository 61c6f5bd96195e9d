"""
Transaction handling for connections opened in autocommit mode.
"""
import logging
import threading
from typing import TYPE_CHECKING, Any

from rowcodec.exceptions import ValidationError

if TYPE_CHECKING:
    from rowcodec.connection import ConnectionWrapper

logger = logging.getLogger(__name__)

__all__ = ['Transaction']


_local = threading.local()


class Transaction:
    """Context manager for running multiple commands in a transaction.

    Uses thread-local storage to track transaction state. Nested
    transactions on the same connection within one thread are not
    supported.

    Examples
        with Transaction(cn) as tx:
            tx.execute('delete from ...')
            tx.prepare('insert into ...').perform()
    """

    def __init__(self, cn: 'ConnectionWrapper', mode: str = 'DEFERRED') -> None:
        self.connection = cn
        self.mode = mode.upper()
        if self.mode not in {'DEFERRED', 'IMMEDIATE', 'EXCLUSIVE'}:
            raise ValueError(f'Unknown transaction mode: {mode}')

        if not hasattr(_local, 'active_transactions'):
            _local.active_transactions = {}

        if id(cn) in _local.active_transactions:
            raise ValidationError('Nested transactions are not supported')

    def __enter__(self):
        _local.active_transactions[id(self.connection)] = True
        try:
            self.connection.begin(self.mode)
        except Exception:
            _local.active_transactions.pop(id(self.connection), None)
            raise
        logger.debug(f'Started transaction for connection {id(self.connection)}')
        return self

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        try:
            if exc_type is not None:
                self.connection.rollback()
                logger.warning('Rolling back the current transaction')
            else:
                self.connection.commit()
                logger.debug(f'Committed transaction for connection {id(self.connection)}')
        finally:
            _local.active_transactions.pop(id(self.connection), None)
            logger.debug(f'Transaction cleanup complete for connection {id(self.connection)}')

    def execute(self, sql: str, *args: Any) -> int:
        """Execute SQL within transaction context"""
        return self.connection.execute(sql, *args)

    def prepare(self, sql: str):
        """Prepare a statement within transaction context"""
        return self.connection.prepare(sql)
