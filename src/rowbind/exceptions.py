"""
Mapping errors and database driver exception groups.

The library's own errors derive from `MappingError`. Driver errors are never
wrapped; the tuples below group the driver classes so callers can catch them
without importing every driver.
"""
import sqlite3

import psycopg


class MappingError(Exception):
    """Base class for all rowbind errors.
    """


class BindingError(MappingError):
    """A placeholder has no value, or a supplied name matches no placeholder.
    """


class CardinalityError(MappingError):
    """The result set has the wrong number of rows.
    """


class ColumnNotFoundError(MappingError, KeyError):
    """The requested column is not part of the result row.
    """

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ''


class UnsupportedDialectError(MappingError, ValueError):
    """The connection's dialect cannot be determined or is not registered.
    """


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

UniqueViolation = (
    psycopg.errors.UniqueViolation,
    sqlite3.IntegrityError,
    )

DriverError = (
    psycopg.Error,
    sqlite3.Error,
    )


def is_driver_error(exc: BaseException) -> bool:
    """Check if an exception was raised by a database driver.

    >>> is_driver_error(sqlite3.OperationalError('no such table: book'))
    True
    >>> is_driver_error(BindingError('missing :id'))
    False
    """
    return isinstance(exc, DriverError)
