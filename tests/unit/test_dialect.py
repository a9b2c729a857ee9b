"""Unit tests for dialect detection and driver adaptation."""
import sqlite3

import pytest
from rowbind.dialect import Dialect, PostgresDialect, SQLiteDialect, get_available_dialects
from rowbind.dialect import get_dialect, get_dialect_name, get_raw_connection
from rowbind.dialect import is_supported_dialect
from rowbind.exceptions import UnsupportedDialectError
from sqlalchemy import create_engine


class TestDetection:

    @pytest.mark.parametrize(('connection_type', 'expected'), [
        ('postgresql', 'postgresql'),
        ('sqlite', 'sqlite'),
    ])
    def test_from_driver_module(self, create_simple_mock_connection, connection_type, expected):
        assert get_dialect_name(create_simple_mock_connection(connection_type)) == expected

    def test_unknown_driver(self, create_simple_mock_connection):
        with pytest.raises(UnsupportedDialectError, match='Cannot determine dialect'):
            get_dialect_name(create_simple_mock_connection('unknown'))

    def test_real_sqlite_connection(self):
        conn = sqlite3.connect(':memory:')
        try:
            assert get_dialect_name(conn) == 'sqlite'
            assert isinstance(get_dialect(conn), SQLiteDialect)
        finally:
            conn.close()

    def test_sqlalchemy_connection(self):
        engine = create_engine('sqlite://')
        with engine.connect() as conn:
            assert get_dialect_name(conn) == 'sqlite'
            assert isinstance(get_raw_connection(conn), sqlite3.Connection)
        engine.dispose()

    def test_sqlalchemy_engine(self):
        engine = create_engine('sqlite://')
        assert get_dialect_name(engine) == 'sqlite'
        engine.dispose()

    def test_explicit_name_wins(self, create_simple_mock_connection):
        cn = create_simple_mock_connection('sqlite')
        assert isinstance(get_dialect(cn, 'postgresql'), PostgresDialect)

    def test_unsupported_name(self):
        with pytest.raises(UnsupportedDialectError, match='Unsupported dialect: oracle'):
            get_dialect(name='oracle')


class TestRegistry:

    def test_available(self):
        assert set(get_available_dialects()) >= {'sqlite', 'postgresql'}
        assert is_supported_dialect('sqlite')
        assert not is_supported_dialect('mssql')

    def test_instances_are_cached(self):
        assert get_dialect(name='sqlite') is get_dialect(name='sqlite')

    def test_markers(self):
        assert get_dialect(name='sqlite').marker == '?'
        assert get_dialect(name='postgresql').marker == '%s'
        assert get_dialect(name='postgresql').escape_percent

    def test_raw_connection_passthrough(self):
        marker = object()
        assert get_raw_connection(marker) is marker


class TestAutocommit:

    def test_sqlite_isolation_level(self):
        conn = sqlite3.connect(':memory:', isolation_level=None)
        dialect = SQLiteDialect()
        previous = dialect.disable_autocommit(conn)
        assert previous is None
        assert conn.isolation_level == 'DEFERRED'
        dialect.restore_autocommit(conn, previous)
        assert conn.isolation_level is None
        conn.close()

    def test_autocommit_attribute(self, create_recording_connection):
        cn = create_recording_connection('postgresql')
        cn.autocommit = True
        dialect = PostgresDialect()
        previous = dialect.disable_autocommit(cn)
        assert previous is True
        assert cn.autocommit is False
        dialect.restore_autocommit(cn, previous)
        assert cn.autocommit is True

    def test_base_adapt_is_identity(self):
        class PassThrough(Dialect):
            name = 'pass'

        value = object()
        assert PassThrough().adapt_value(value) is value
