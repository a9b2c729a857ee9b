"""
Transaction handling for caller-owned connections.
"""
import logging
import re
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from rowbind.dialect import get_dialect, get_raw_connection

__all__ = ['Transaction', 'Transactional', 'savepoint']

logger = logging.getLogger(__name__)

T = TypeVar('T')

_local = threading.local()

_SAVEPOINT_NAME = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


class Transaction:
    """Context manager for running multiple statements in a transaction.

    Commits when the block completes, rolls back when it raises. Auto-commit
    is switched off for the duration of the block and restored afterwards.
    Nested transactions on the same connection within one thread are not
    supported; use `savepoint` inside a transaction instead.

    Examples
        with Transaction(cn):
            INSERT_BOOK.on_record(book, BOOK_DCTOR).execute_insert(cn)
            UPDATE_STOCK.on(isbn=book.isbn).execute_update(cn)
    """

    def __init__(self, cn: Any, dialect: str | None = None) -> None:
        self.connection = cn
        self.raw_connection = get_raw_connection(cn)
        self.dialect = get_dialect(cn, dialect)
        self._previous = None

        if not hasattr(_local, 'active_transactions'):
            _local.active_transactions = set()

        if id(self.raw_connection) in _local.active_transactions:
            raise RuntimeError('Nested transactions are not supported')

    def __enter__(self) -> Any:
        _local.active_transactions.add(id(self.raw_connection))
        self._previous = self.dialect.disable_autocommit(self.raw_connection)
        logger.debug(f'Started transaction for connection {id(self.raw_connection)}')
        return self.connection

    def __exit__(self, exc_type: type | None, value: BaseException | None, traceback: Any | None) -> None:
        try:
            if exc_type is not None:
                self.raw_connection.rollback()
                logger.warning('Rolling back the current transaction')
            else:
                self.raw_connection.commit()
                logger.debug(f'Committed transaction for connection {id(self.raw_connection)}')
        finally:
            _local.active_transactions.discard(id(self.raw_connection))
            self.dialect.restore_autocommit(self.raw_connection, self._previous)


@contextmanager
def savepoint(cn: Any, name: str = 'rowbind_sp') -> Iterator[Any]:
    """Roll back to a savepoint if the block raises, release it otherwise.

    The exception is re-raised after rolling back; statements before the
    savepoint stay part of the enclosing transaction.
    """
    if not _SAVEPOINT_NAME.match(name):
        raise ValueError(f'Invalid savepoint name: {name!r}')
    cursor = get_raw_connection(cn).cursor()
    try:
        cursor.execute(f'SAVEPOINT {name}')
        try:
            yield cn
        except BaseException:
            logger.warning(f'Rolling back to savepoint {name}')
            cursor.execute(f'ROLLBACK TO SAVEPOINT {name}')
            cursor.execute(f'RELEASE SAVEPOINT {name}')
            raise
        cursor.execute(f'RELEASE SAVEPOINT {name}')
    finally:
        cursor.close()


class Transactional:
    """Runs units of work in a transaction on a fresh connection.

    `connect` is any zero-argument callable returning a DB-API (or
    SQLAlchemy) connection. The connection is closed after each unit.

    Examples
        tx = Transactional(lambda: sqlite3.connect('library.db'))
        books = tx.run(lambda cn: BOOKS.fetch(BOOK_PARSER.list(), cn))
    """

    def __init__(self, connect: Callable[[], Any], dialect: str | None = None) -> None:
        if not callable(connect):
            raise TypeError('connect must be callable')
        self.connect = connect
        self.dialect = dialect

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        cn = self.connect()
        try:
            with Transaction(cn, self.dialect):
                yield cn
        finally:
            cn.close()

    def run(self, work: Callable[[Any], T]) -> T:
        """Call `work(cn)` inside a transaction and return its result."""
        with self.transaction() as cn:
            return work(cn)
