"""
Row and result-set parsers.

A `RowParser` turns one `Row` (plus the connection the query runs on) into
a value. Result-set parsers decide how many rows are read and how the
parsed values are collected:

    parser.single()        exactly one row, else CardinalityError
    parser.single_null()   zero rows -> None, more than one -> CardinalityError
    parser.first()         first row or None, the rest is ignored
    parser.list()          all rows, eagerly
    parser.set()           all rows as a set, eagerly
    parser.stream()        lazy RowStream owning the cursor

`frame()` and `csv()` parse a whole result set at once.
"""
import logging
from collections.abc import Callable, Iterator
from typing import Any, Generic, TypeVar

import pandas as pd
from rowbind.exceptions import CardinalityError
from rowbind.row import Column, Row, column_names

__all__ = [
    'RowParser',
    'ResultSetParser',
    'ResultSet',
    'RowStream',
    'string',
    'integer',
    'real',
    'decimal',
    'boolean',
    'date',
    'datetime',
    'time',
    'binary',
    'json',
    'scalar',
    'column',
    'row_dict',
    'row_attrdict',
    'frame',
    'csv',
]

logger = logging.getLogger(__name__)

T = TypeVar('T')
U = TypeVar('U')


def iter_chunk(cursor: Any, size: int = 5000) -> Iterator[tuple]:
    """Iterate through cursor results in chunks."""
    while True:
        chunked = cursor.fetchmany(size)
        if not chunked:
            break
        yield from chunked


class ResultSet:
    """Forward-only view over an executed cursor.

    Rows are fetched in chunks of `arraysize`. The result set owns the cursor
    and closes it exactly once.
    """

    def __init__(self, cursor: Any, arraysize: int = 5000) -> None:
        self.cursor = cursor
        self.names = column_names(cursor.description)
        self._index = Row.build_index(self.names)
        self._rows = iter_chunk(cursor, arraysize) if cursor.description is not None else iter(())
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def next_row(self) -> Row | None:
        """Advance to the next row, None when exhausted."""
        if self._closed:
            return None
        values = next(self._rows, None)
        if values is None:
            return None
        return Row(values, self.names, self._index)

    def __iter__(self) -> Iterator[Row]:
        while (row := self.next_row()) is not None:
            yield row

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.cursor.close()
        logger.debug('Closed result cursor')


class RowStream(Generic[T]):
    """Lazy sequence of parsed rows, bound to an open cursor.

    The cursor is released exactly once: on `close()`, when leaving a `with`
    block, when the rows are exhausted, or when parsing a row fails.

    Examples
        with query.fetch(parser.stream(), cn) as books:
            for book in books:
                ...
    """

    def __init__(self, result_set: ResultSet, parser: 'RowParser[T]', cn: Any) -> None:
        self._result_set = result_set
        self._parser = parser
        self._cn = cn

    @property
    def closed(self) -> bool:
        return self._result_set.closed

    def __iter__(self) -> 'RowStream[T]':
        return self

    def __next__(self) -> T:
        try:
            row = self._result_set.next_row()
            if row is None:
                raise StopIteration
            return self._parser.parse(row, self._cn)
        except BaseException:
            self.close()
            raise

    def close(self) -> None:
        self._result_set.close()

    def __enter__(self) -> 'RowStream[T]':
        return self

    def __exit__(self, exc_type: type | None, value: BaseException | None, traceback: Any | None) -> None:
        self.close()


class ResultSetParser(Generic[T]):
    """Parses a whole `ResultSet` into a value."""

    __slots__ = ('_fn',)

    def __init__(self, fn: Callable[[ResultSet, Any], T]) -> None:
        if not callable(fn):
            raise TypeError('Result set parser function must be callable')
        self._fn = fn

    def parse(self, result_set: ResultSet, cn: Any = None) -> T:
        return self._fn(result_set, cn)

    __call__ = parse

    def map(self, mapper: Callable[[T], U]) -> 'ResultSetParser[U]':
        """Transform the parsed result."""
        return ResultSetParser(lambda rs, cn: mapper(self.parse(rs, cn)))


class RowParser(Generic[T]):
    """Parses one `Row` into a value.

    The connection given to `parse` is the one the query runs on; parsers
    may issue nested queries on it while the row is being parsed.

    Examples
        author = string('name').flat_map(
            lambda name: date('birth_day').map(lambda day: Author(name, day)))
    """

    __slots__ = ('_fn',)

    def __init__(self, fn: Callable[[Row, Any], T]) -> None:
        if not callable(fn):
            raise TypeError('Row parser function must be callable')
        self._fn = fn

    @classmethod
    def of(cls, fn: Callable[[Row, Any], T]) -> 'RowParser[T]':
        return cls(fn)

    def parse(self, row: Row, cn: Any = None) -> T:
        return self._fn(row, cn)

    __call__ = parse

    def map(self, mapper: Callable[[T], U]) -> 'RowParser[U]':
        """Transform the parsed value."""
        return RowParser(lambda row, cn: mapper(self.parse(row, cn)))

    def map_with(self, mapper: Callable[[T, Any], U]) -> 'RowParser[U]':
        """Transform the parsed value, with access to the connection."""
        return RowParser(lambda row, cn: mapper(self.parse(row, cn), cn))

    def flat_map(self, mapper: Callable[[T], 'RowParser[U]']) -> 'RowParser[U]':
        """Choose the next parser from the parsed value; both read the same row."""
        def parse(row: Row, cn: Any) -> U:
            return mapper(self.parse(row, cn)).parse(row, cn)
        return RowParser(parse)

    def single(self) -> ResultSetParser[T]:
        def parse(rs: ResultSet, cn: Any) -> T:
            row = rs.next_row()
            if row is None:
                raise CardinalityError('Expected one row, got none')
            result = self.parse(row, cn)
            if rs.next_row() is not None:
                raise CardinalityError('Expected one row, got more')
            return result
        return ResultSetParser(parse)

    def single_null(self) -> 'ResultSetParser[T | None]':
        def parse(rs: ResultSet, cn: Any) -> T | None:
            row = rs.next_row()
            if row is None:
                return None
            result = self.parse(row, cn)
            if rs.next_row() is not None:
                raise CardinalityError('Expected at most one row, got more')
            return result
        return ResultSetParser(parse)

    def first(self) -> 'ResultSetParser[T | None]':
        def parse(rs: ResultSet, cn: Any) -> T | None:
            row = rs.next_row()
            return None if row is None else self.parse(row, cn)
        return ResultSetParser(parse)

    def stream(self) -> 'ResultSetParser[RowStream[T]]':
        return ResultSetParser(lambda rs, cn: RowStream(rs, self, cn))

    def list(self) -> 'ResultSetParser[list[T]]':
        return ResultSetParser(lambda rs, cn: [self.parse(row, cn) for row in rs])

    def set(self) -> 'ResultSetParser[set[T]]':
        return ResultSetParser(lambda rs, cn: {self.parse(row, cn) for row in rs})


def _getter(name: str, col: Column) -> RowParser[Any]:
    return RowParser(lambda row, cn: getattr(row, name)(col))


def string(col: Column) -> RowParser[str | None]:
    return _getter('string', col)


def integer(col: Column) -> RowParser[int | None]:
    return _getter('integer', col)


def real(col: Column) -> RowParser[float | None]:
    return _getter('real', col)


def decimal(col: Column) -> RowParser[Any]:
    return _getter('decimal', col)


def boolean(col: Column) -> RowParser[bool | None]:
    return _getter('boolean', col)


def date(col: Column) -> RowParser[Any]:
    return _getter('date', col)


def datetime(col: Column) -> RowParser[Any]:
    return _getter('datetime', col)


def time(col: Column) -> RowParser[Any]:
    return _getter('time', col)


def binary(col: Column) -> RowParser[bytes | None]:
    return _getter('binary', col)


def json(col: Column) -> RowParser[Any]:
    return _getter('json', col)


def scalar(col: Column = 0) -> RowParser[Any]:
    """Raw driver value of one column, the first by default."""
    return _getter('get', col)


def column(col: Column, type_: Callable[[Any], T]) -> RowParser[T | None]:
    """Column value converted with `type_`, None stays None."""
    def parse(row: Row, cn: Any) -> T | None:
        val = row.get(col)
        return None if val is None else type_(val)
    return RowParser(parse)


def row_dict() -> RowParser[dict[str, Any]]:
    return RowParser(lambda row, cn: row.to_dict())


def row_attrdict() -> RowParser[Any]:
    return RowParser(lambda row, cn: row.to_attrdict())


def frame() -> ResultSetParser[pd.DataFrame]:
    """Whole result set as a pandas DataFrame.

    Always returns a DataFrame, with columns preserved for empty results.
    Driver type codes are kept in `DataFrame.attrs['column_types']`.
    """
    def parse(rs: ResultSet, cn: Any) -> pd.DataFrame:
        description = rs.cursor.description or ()
        data = [row.values() for row in rs]
        if data:
            df = pd.DataFrame.from_records(data, columns=list(rs.names))
        else:
            df = pd.DataFrame(columns=list(rs.names))
        df.attrs['column_types'] = {str(d[0]): d[1] for d in description}
        return df
    return ResultSetParser(parse)


_EOL = '\r\n'


def _csv_field(value: Any) -> str:
    if value is None:
        return ''
    return '"' + str(value).replace('"', '""') + '"'


def csv() -> ResultSetParser[str]:
    """Whole result set as CSV text.

    The header holds the column labels. Every non-null value is quoted,
    NULL is an empty field and lines end with CRLF.
    """
    def parse(rs: ResultSet, cn: Any) -> str:
        lines = [','.join(_csv_field(name) for name in rs.names)]
        lines.extend(','.join(_csv_field(v) for v in row) for row in rs)
        return _EOL.join(lines) + _EOL
    return ResultSetParser(parse)
