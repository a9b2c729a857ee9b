import sqlite3
import threading

import pytest
from library import AUTHOR_DCTOR, INSERT_AUTHOR, Author
from rowbind import Query, Transactional, savepoint, transaction
from rowbind.parser import scalar, string

COUNT_AUTHORS = Query.of('SELECT count(*) FROM author')
AUTHOR_NAMES = Query.of('SELECT name FROM author ORDER BY name')


def insert(cn, name):
    INSERT_AUTHOR.on_record(Author(name), AUTHOR_DCTOR).execute_insert(cn)


def count_in_new_connection(path):
    cn = sqlite3.connect(path)
    try:
        return COUNT_AUTHORS.fetch(scalar().single(), cn)
    finally:
        cn.close()


def test_transaction_commit(sqlite_file_db):
    cn = sqlite3.connect(sqlite_file_db)
    with transaction(cn) as tx:
        assert tx is cn
        insert(cn, 'Alice')
        insert(cn, 'Bob')
    cn.close()

    assert count_in_new_connection(sqlite_file_db) == 2


def test_transaction_rollback(sqlite_file_db):
    cn = sqlite3.connect(sqlite_file_db)
    with pytest.raises(ValueError, match='abort'), transaction(cn):
        insert(cn, 'Alice')
        raise ValueError('abort')
    cn.close()

    assert count_in_new_connection(sqlite_file_db) == 0


def test_nested_transaction_rejected(library_conn):
    with transaction(library_conn):
        with pytest.raises(RuntimeError, match='Nested transactions'):
            transaction(library_conn)


def test_transactions_in_threads(sqlite_file_db):
    errors = []

    def work(name):
        cn = sqlite3.connect(sqlite_file_db, timeout=10)
        try:
            with transaction(cn):
                insert(cn, name)
        except Exception as e:
            errors.append(e)
        finally:
            cn.close()

    threads = [threading.Thread(target=work, args=(f'author {i}',)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert count_in_new_connection(sqlite_file_db) == 4


def test_autocommit_connection_restored(sqlite_file_db):
    cn = sqlite3.connect(sqlite_file_db, isolation_level=None)
    with pytest.raises(ValueError), transaction(cn):
        insert(cn, 'Alice')
        raise ValueError
    assert cn.isolation_level is None
    cn.close()

    assert count_in_new_connection(sqlite_file_db) == 0


def test_savepoint_rollback_keeps_earlier_work(sqlite_file_db):
    cn = sqlite3.connect(sqlite_file_db)
    with transaction(cn):
        insert(cn, 'Alice')
        with pytest.raises(ValueError), savepoint(cn, 'before_bob'):
            insert(cn, 'Bob')
            raise ValueError('undo bob')
        insert(cn, 'Carol')
    cn.close()

    cn = sqlite3.connect(sqlite_file_db)
    assert AUTHOR_NAMES.fetch(string('name').list(), cn) == ['Alice', 'Carol']
    cn.close()


def test_savepoint_release(library_conn):
    insert(library_conn, 'Alice')
    with savepoint(library_conn):
        insert(library_conn, 'Bob')
    assert COUNT_AUTHORS.fetch(scalar().single(), library_conn) == 2


def test_savepoint_name_validated(library_conn):
    with pytest.raises(ValueError, match='Invalid savepoint name'), savepoint(library_conn, 'x; DROP TABLE author'):
        pass


def test_transactional_runs_unit_of_work(sqlite_file_db):
    tx = Transactional(lambda: sqlite3.connect(sqlite_file_db))

    assert tx.run(lambda cn: insert(cn, 'Alice') or COUNT_AUTHORS.fetch(scalar().single(), cn)) == 1
    assert count_in_new_connection(sqlite_file_db) == 1


def test_transactional_rolls_back_and_closes(sqlite_file_db):
    opened = []

    def connect():
        cn = sqlite3.connect(sqlite_file_db)
        opened.append(cn)
        return cn

    tx = Transactional(connect)
    with pytest.raises(RuntimeError), tx.transaction() as cn:
        insert(cn, 'Alice')
        raise RuntimeError('fail')

    assert count_in_new_connection(sqlite_file_db) == 0
    with pytest.raises(sqlite3.ProgrammingError):
        opened[0].cursor()


def test_transactional_requires_callable():
    with pytest.raises(TypeError):
        Transactional('library.db')
