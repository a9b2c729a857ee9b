"""
Executable SQL with named parameters.

A `Query` is an immutable value: binding parameters returns a new query,
so query constants can be shared freely between threads.

    SELECT = Query.of('SELECT * FROM book WHERE id = :id')
    book = SELECT.on(id=42).fetch(BOOK_PARSER.single_null(), cn)

Connections are supplied by the caller on every terminal operation. This
module never commits, rolls back or retries; driver errors propagate
unchanged.
"""
import logging
import time
from collections.abc import Mapping
from contextlib import closing
from dataclasses import dataclass, field, replace
from functools import wraps
from typing import Any, TypeVar

from rowbind.batch import Batch
from rowbind.dctor import Dctor
from rowbind.dialect import get_dialect, get_raw_connection
from rowbind.options import MappingOptions, mapping_options
from rowbind.params import BoundStatement, MultiParam, Param, ParamBinder
from rowbind.params import RecordSource, to_params
from rowbind.parser import ResultSet, ResultSetParser, RowParser, RowStream
from rowbind.parser import scalar
from rowbind.sql import Sql

__all__ = ['Query']

logger = logging.getLogger(__name__)

T = TypeVar('T')


def dumpsql(func):
    """Decorator for logging SQL statements and their execution time."""
    @wraps(func)
    def wrapper(cursor: Any, statement: BoundStatement, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{statement.sql}\nargs: {len(statement.args)}')
        try:
            return func(cursor, statement, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{statement.sql}\nargs: {statement.args}')
            raise
        finally:
            logger.debug(f'Query time: {time.time() - start:.4f}s')
    return wrapper


def dumpsql_many(func):
    """Decorator for logging executemany operations."""
    @wraps(func)
    def wrapper(cursor: Any, sql: str, seq_of_args: list[tuple], *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{sql}\nparams: {len(seq_of_args)} rows')
        try:
            return func(cursor, sql, seq_of_args, *args, **kwargs)
        except Exception:
            logger.error(f'Error with executemany:\nSQL:\n{sql}')
            raise
        finally:
            logger.debug(f'Executemany time: {time.time() - start:.4f}s')
    return wrapper


@dumpsql
def _execute(cursor: Any, statement: BoundStatement) -> None:
    if statement.args:
        cursor.execute(statement.sql, statement.args)
    else:
        cursor.execute(statement.sql)


@dumpsql_many
def _executemany(cursor: Any, sql: str, seq_of_args: list[tuple], batch_size: int) -> int:
    total_rowcount = 0
    if len(seq_of_args) <= batch_size:
        cursor.executemany(sql, seq_of_args)
        return cursor.rowcount
    logger.debug(f'Batching {len(seq_of_args)} rows into chunks of {batch_size}')
    for i in range(0, len(seq_of_args), batch_size):
        cursor.executemany(sql, seq_of_args[i:i + batch_size])
        total_rowcount += cursor.rowcount
    return total_rowcount


@dataclass(frozen=True)
class Query:
    """Parsed SQL text plus the parameters bound to it so far.

    Placeholders are written `:name` or `{name}`. Terminal operations take
    the connection as last argument: `execute`, `execute_update`,
    `execute_insert`, `fetch`, `stream`, `execute_batch` and `execute_many`.
    """
    source: Sql
    params: tuple[Param | MultiParam, ...] = ()
    records: tuple[RecordSource, ...] = ()
    options: MappingOptions = field(default_factory=MappingOptions, repr=False, hash=False)
    arraysize: int | None = None

    @classmethod
    def of(cls, sql: str, options: MappingOptions | dict[str, Any] | None = None) -> 'Query':
        """Create a query from SQL text with named placeholders.
        """
        if options is None:
            options = MappingOptions()
        elif not isinstance(options, MappingOptions):
            options = mapping_options(options)
        return cls(Sql.of(sql), options=options)

    @property
    def raw_sql(self) -> str:
        """The SQL text this query was created with."""
        return self.source.text

    @property
    def sql(self) -> str:
        """The SQL text with every placeholder replaced by '?'."""
        return self.source.render(expansions=self._expansions())

    @property
    def param_names(self) -> tuple[str, ...]:
        """Placeholder names in occurrence order, duplicates included."""
        return self.source.param_names

    @property
    def names(self) -> tuple[str, ...]:
        """Distinct placeholder names in first-occurrence order."""
        return self.source.names

    def _expansions(self) -> dict[str, int]:
        return {p.name: len(p.values) for p in self.params if isinstance(p, MultiParam)}

    def sql_for(self, cn: Any) -> str:
        """The SQL text as sent to the driver of `cn`."""
        dialect = get_dialect(cn, self.options.dialect)
        escape = dialect.escape_percent and bool(self.param_names)
        return self.source.render(dialect.marker, escape_percent=escape,
                                  expansions=self._expansions())

    def on(self, *params: Param | MultiParam | Mapping[str, Any], **named: Any) -> 'Query':
        """Return a new query with the given parameter values.

        >>> Query.of('SELECT * FROM book WHERE id = :id').on(id=42).params
        (:id -> 42,)
        """
        new = to_params(*params, **named)
        if not new:
            return self
        return replace(self, params=self.params + new)

    def on_record(self, record: T, dctor: Dctor[T]) -> 'Query':
        """Return a new query taking its values from `record`.

        The record is deconstructed when the query executes, on the
        connection it executes on.
        """
        if record is None:
            raise ValueError('Record must not be None')
        if not isinstance(dctor, Dctor):
            raise TypeError(f'Expected a Dctor, got {type(dctor).__name__}')
        return replace(self, records=self.records + (RecordSource(record, dctor),))

    def with_options(self, options: MappingOptions) -> 'Query':
        return replace(self, options=options)

    def with_arraysize(self, arraysize: int) -> 'Query':
        """Rows fetched per round trip when reading results; 0 resets."""
        if arraysize < 0:
            raise ValueError(f'arraysize must not be negative: {arraysize}')
        return replace(self, arraysize=arraysize or None)

    def _binder(self, cn: Any) -> ParamBinder:
        dialect = get_dialect(cn, self.options.dialect)
        return ParamBinder(dialect, self.options.converter_chain)

    def bind(self, cn: Any, *sources: RecordSource) -> BoundStatement:
        """Resolve all parameters for execution on `cn`."""
        return self._binder(cn).bind(self.source, self.params, self.records + sources, cn)

    def _cursor(self, cn: Any) -> Any:
        cursor = get_raw_connection(cn).cursor()
        cursor.arraysize = self.arraysize or self.options.arraysize
        return cursor

    def execute(self, cn: Any) -> bool:
        """Execute any kind of statement.

        Returns True if the statement produced a result set.
        """
        statement = self.bind(cn)
        with closing(self._cursor(cn)) as cursor:
            _execute(cursor, statement)
            return cursor.description is not None

    def execute_update(self, cn: Any) -> int:
        """Execute an INSERT, UPDATE, DELETE or DDL statement.

        Returns the affected row count reported by the driver.
        """
        statement = self.bind(cn)
        with closing(self._cursor(cn)) as cursor:
            _execute(cursor, statement)
            return cursor.rowcount

    def execute_insert(self, cn: Any, key_parser: RowParser[T] | None = None) -> T | Any | None:
        """Execute an INSERT and return the generated key, None if unavailable.

        A statement returning rows (`INSERT ... RETURNING id`) is read with
        `key_parser`, the first column by default. Otherwise the cursor's
        `lastrowid` is returned.
        """
        statement = self.bind(cn)
        with closing(self._cursor(cn)) as cursor:
            _execute(cursor, statement)
            if cursor.description is not None:
                parser = key_parser or scalar(0)
                return parser.first().parse(ResultSet(cursor, cursor.arraysize), cn)
            key = getattr(cursor, 'lastrowid', None)
            # sqlite reports 0 or None when no row was inserted; psycopg 3 has no lastrowid
            return key or None

    def fetch(self, parser: ResultSetParser[T], cn: Any) -> T:
        """Execute the query and parse its result set.

        The cursor is closed before returning, unless the parser produces a
        `RowStream`; the stream then owns the cursor and must be closed by
        the caller, best with a `with` block.
        """
        if isinstance(parser, RowParser):
            raise TypeError('Expected a result set parser, e.g. parser.list() or parser.single()')
        statement = self.bind(cn)
        cursor = self._cursor(cn)
        try:
            _execute(cursor, statement)
            result_set = ResultSet(cursor, cursor.arraysize)
            result = parser.parse(result_set, cn)
        except BaseException:
            cursor.close()
            raise
        if isinstance(result, RowStream):
            return result
        result_set.close()
        return result

    def stream(self, parser: RowParser[T], cn: Any) -> RowStream[T]:
        """Execute the query and return a lazy stream of parsed rows."""
        return self.fetch(parser.stream(), cn)

    def execute_batch(self, batch: Batch[Any], cn: Any) -> list[int]:
        """Execute the statement once per batch item.

        Returns the affected row count of every item, in item order. The
        first failing item aborts the batch with the driver's error.
        """
        binder = self._binder(cn)
        counts = []
        with closing(self._cursor(cn)) as cursor:
            for source in batch.sources():
                statement = binder.bind(self.source, self.params, self.records + (source,), cn)
                _execute(cursor, statement)
                counts.append(cursor.rowcount)
        return counts

    def execute_many(self, batch: Batch[Any], cn: Any) -> int:
        """Execute the batch with the driver's executemany.

        All items are bound first (derived fields run at this point), then
        sent in chunks of `options.batch_size`. Returns the summed row count.
        """
        binder = self._binder(cn)
        statements = [
            binder.bind(self.source, self.params, self.records + (source,), cn)
            for source in batch.sources()
        ]
        if not statements:
            logger.warning('execute_many called with an empty batch')
            return 0
        with closing(self._cursor(cn)) as cursor:
            return _executemany(cursor, statements[0].sql, [s.args for s in statements],
                                self.options.batch_size)

    def __str__(self) -> str:
        return self.sql
