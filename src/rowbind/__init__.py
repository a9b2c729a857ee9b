"""
Named-parameter queries, row parsers and record deconstructors over DB-API
connections (sqlite3, psycopg, SQLAlchemy).

Queries can be built and executed either as:
- Query objects: Query.of(sql).on(id=1).fetch(parser.single(), cn)
- Module functions: rowbind.select(cn, sql, parser, id=1)

The module functions are shortcuts for one-off statements.
"""
__version__ = '0.1.0'

from typing import Any

from rowbind.batch import Batch
from rowbind.convert import ConverterChain, EnumValueMapper, SqlTypeMapper
from rowbind.convert import to_nullable
from rowbind.dctor import Dctor, Field, derived_field, field, field_value
from rowbind.dialect import Dialect, get_dialect, register_dialect
from rowbind.exceptions import BindingError, CardinalityError
from rowbind.exceptions import ColumnNotFoundError, DbConnectionError
from rowbind.exceptions import DriverError, IntegrityError, MappingError
from rowbind.exceptions import OperationalError, ProgrammingError
from rowbind.exceptions import UniqueViolation, UnsupportedDialectError
from rowbind.options import MappingOptions, mapping_options
from rowbind.params import MultiParam, Param, lazy, value, values
from rowbind.parser import ResultSetParser, RowParser, RowStream, row_attrdict
from rowbind.query import Query
from rowbind.records import record_dctor, record_parser
from rowbind.row import Row
from rowbind.transaction import Transaction as transaction
from rowbind.transaction import Transactional, savepoint


def execute(cn: Any, sql: str, *params: Any, **named: Any) -> int:
    """Execute a statement and return the affected row count.
    """
    return Query.of(sql).on(*params, **named).execute_update(cn)


delete = execute
update = execute


def insert(cn: Any, sql: str, *params: Any, **named: Any) -> Any:
    """Execute an INSERT and return the generated key, if any.
    """
    return Query.of(sql).on(*params, **named).execute_insert(cn)


def select(cn: Any, sql: str, *params: Any, parser: RowParser[Any] | None = None,
           **named: Any) -> list[Any]:
    """Execute a query and parse every row, as attribute dicts by default.
    """
    parser = parser or row_attrdict()
    return Query.of(sql).on(*params, **named).fetch(parser.list(), cn)


def select_one(cn: Any, sql: str, *params: Any, parser: RowParser[Any] | None = None,
               **named: Any) -> Any | None:
    """Execute a query expected to return at most one row.

    Raises CardinalityError if the query returns more than one row.
    """
    parser = parser or row_attrdict()
    return Query.of(sql).on(*params, **named).fetch(parser.single_null(), cn)


__all__ = [
    'Query',
    'Batch',
    'Row',
    'RowParser',
    'ResultSetParser',
    'RowStream',
    'Dctor',
    'Field',
    'field',
    'derived_field',
    'field_value',
    'Param',
    'MultiParam',
    'value',
    'values',
    'lazy',
    'record_parser',
    'record_dctor',
    'MappingOptions',
    'mapping_options',
    'ConverterChain',
    'SqlTypeMapper',
    'EnumValueMapper',
    'to_nullable',
    'Dialect',
    'get_dialect',
    'register_dialect',
    'transaction',
    'Transactional',
    'savepoint',
    'execute',
    'delete',
    'update',
    'insert',
    'select',
    'select_one',
    'MappingError',
    'BindingError',
    'CardinalityError',
    'ColumnNotFoundError',
    'UnsupportedDialectError',
    'DriverError',
    'IntegrityError',
    'ProgrammingError',
    'OperationalError',
    'UniqueViolation',
    'DbConnectionError',
]
