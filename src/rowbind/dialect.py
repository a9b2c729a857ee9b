"""
Dialect registry for driver-specific binding behavior.

A dialect decides how named placeholders are rendered for the driver
(`?` for sqlite3, `%s` for psycopg) and how bound values are adapted
before they reach the driver. Connections are never created here; the
dialect is detected from the connection object the caller passes in.
"""
import datetime
import decimal
import json
import logging
from abc import ABC
from functools import lru_cache
from typing import Any

from psycopg.types.json import Json

from rowbind.exceptions import UnsupportedDialectError

__all__ = [
    'Dialect',
    'PostgresDialect',
    'SQLiteDialect',
    'register_dialect',
    'get_dialect',
    'get_dialect_name',
    'get_raw_connection',
    'get_available_dialects',
    'is_supported_dialect',
]

logger = logging.getLogger(__name__)

_DIALECT_REGISTRY: dict[str, type['Dialect']] = {}


def register_dialect(name: str):
    """Decorator to register a dialect class under a name.

    Usage:
        @register_dialect('sqlite')
        class SQLiteDialect(Dialect):
            ...
    """
    def decorator(cls: type['Dialect']) -> type['Dialect']:
        _DIALECT_REGISTRY[name] = cls
        return cls
    return decorator


class Dialect(ABC):
    """Base class for driver-specific binding behavior.
    """
    name: str = ''
    marker: str = '?'
    escape_percent: bool = False

    def adapt_value(self, value: Any) -> Any:
        """Adapt a converted Python value for the driver."""
        return value

    def disable_autocommit(self, raw_conn: Any) -> Any:
        """Leave auto-commit mode, returning the previous setting.
        """
        previous = raw_conn.autocommit
        if previous:
            raw_conn.autocommit = False
        return previous

    def restore_autocommit(self, raw_conn: Any, previous: Any) -> None:
        if raw_conn.autocommit != previous:
            raw_conn.autocommit = previous

    def __repr__(self) -> str:
        return f'{type(self).__name__}()'


@register_dialect('sqlite')
class SQLiteDialect(Dialect):
    """sqlite3 binding (qmark paramstyle).

    sqlite3 has no native date, JSON or decimal storage, so these are bound
    as text. The default adapters of the standard library are deprecated,
    hence the explicit ISO formatting.
    """
    name = 'sqlite'
    marker = '?'

    def adapt_value(self, value: Any) -> Any:
        if isinstance(value, datetime.datetime):
            return value.isoformat(sep=' ')
        if isinstance(value, (datetime.date, datetime.time)):
            return value.isoformat()
        if isinstance(value, decimal.Decimal):
            return str(value)
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return value

    def disable_autocommit(self, raw_conn: Any) -> Any:
        """Switch an isolation_level=None connection to deferred transactions.
        """
        previous = raw_conn.isolation_level
        if previous is None:
            raw_conn.isolation_level = 'DEFERRED'
        return previous

    def restore_autocommit(self, raw_conn: Any, previous: Any) -> None:
        raw_conn.isolation_level = previous


@register_dialect('postgresql')
class PostgresDialect(Dialect):
    """psycopg binding (format paramstyle).

    Literal percent signs must be doubled once parameters are passed.
    """
    name = 'postgresql'
    marker = '%s'
    escape_percent = True

    def adapt_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return Json(value)
        return value


def get_dialect_name(obj: Any) -> str:
    """Get dialect name for a database connection.

    Works with raw DB-API connections (sqlite3, psycopg) and SQLAlchemy
    connections or engines.
    """
    if hasattr(obj, 'dialect'):
        dialect = obj.dialect
        if isinstance(dialect, str):
            return dialect.lower()
        return str(dialect.name).lower()

    if hasattr(obj, 'engine') and hasattr(obj.engine, 'dialect'):
        return str(obj.engine.dialect.name).lower()

    type_name = f'{type(obj).__module__}.{type(obj).__name__}'
    if 'psycopg' in type_name:
        return 'postgresql'
    if 'sqlite3' in type_name:
        return 'sqlite'

    raise UnsupportedDialectError(f'Cannot determine dialect for {type(obj)}')


def get_raw_connection(connection: Any) -> Any:
    """Extract the raw DB-API connection from a wrapper.

    A SQLAlchemy `Connection` exposes the driver connection through its
    pool proxy; anything else is returned unchanged.
    """
    if hasattr(connection, 'driver_connection'):
        return connection.driver_connection
    proxy = getattr(connection, 'connection', None)
    if proxy is not None and hasattr(proxy, 'driver_connection'):
        return proxy.driver_connection
    return connection


@lru_cache(maxsize=8)
def _get_dialect(name: str) -> Dialect:
    """Get cached dialect instance for a name."""
    if name not in _DIALECT_REGISTRY:
        available = list(_DIALECT_REGISTRY.keys())
        raise UnsupportedDialectError(f'Unsupported dialect: {name}. Available: {available}')
    return _DIALECT_REGISTRY[name]()


def get_dialect(cn: Any = None, name: str | None = None) -> Dialect:
    """Get the dialect for a connection, or by explicit name.

    An explicit name wins over detection.
    """
    if name is None:
        name = get_dialect_name(cn)
    return _get_dialect(name)


def get_available_dialects() -> list[str]:
    """Return list of registered dialect names."""
    return list(_DIALECT_REGISTRY.keys())


def is_supported_dialect(name: str) -> bool:
    """Check if a dialect is supported."""
    return name in _DIALECT_REGISTRY
