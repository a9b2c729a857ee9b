"""Read access to a single result row."""
import datetime
import decimal
import json
from collections.abc import Iterator, Sequence
from typing import Any

import dateutil.parser
from rowbind.exceptions import ColumnNotFoundError

from libb import attrdict

__all__ = ['Row', 'column_names']

Column = str | int

_TRUE_STRINGS = {'1', 't', 'true', 'y', 'yes', 'on'}


def column_names(description: Sequence[Any] | None) -> tuple[str, ...]:
    """Extract column labels from a DB-API cursor description."""
    if description is None:
        return ()
    return tuple(str(d[0]) for d in description)


class Row:
    """One result row, addressed by column label or zero-based index.

    Label lookup is case-insensitive; with duplicate labels (joins) the
    first column wins. Typed getters return `None` for SQL NULL.
    """

    __slots__ = ('_values', '_names', '_index')

    def __init__(self, values: Sequence[Any], names: Sequence[str],
                 index: dict[str, int] | None = None) -> None:
        self._values = tuple(values)
        self._names = tuple(names)
        if index is None:
            index = self.build_index(self._names)
        self._index = index

    @staticmethod
    def build_index(names: Sequence[str]) -> dict[str, int]:
        """Lower-cased label -> position, first occurrence wins."""
        index: dict[str, int] = {}
        for i, name in enumerate(names):
            index.setdefault(name.lower(), i)
        return index

    def position(self, column: Column) -> int:
        """Resolve a label or index to a position in the row."""
        if isinstance(column, bool):
            raise TypeError('Column must be a label or an index')
        if isinstance(column, int):
            if not -len(self._values) <= column < len(self._values):
                raise ColumnNotFoundError(f'Column index {column} out of range (0..{len(self._values) - 1})')
            return column
        try:
            return self._index[column.lower()]
        except KeyError:
            raise ColumnNotFoundError(f'Column {column!r} not found in {list(self._names)}') from None

    def get(self, column: Column) -> Any:
        """Return the raw driver value."""
        return self._values[self.position(column)]

    def string(self, column: Column) -> str | None:
        val = self.get(column)
        if val is None or isinstance(val, str):
            return val
        if isinstance(val, (bytes, bytearray, memoryview)):
            return bytes(val).decode()
        return str(val)

    def integer(self, column: Column) -> int | None:
        val = self.get(column)
        return None if val is None else int(val)

    def real(self, column: Column) -> float | None:
        val = self.get(column)
        return None if val is None else float(val)

    def decimal(self, column: Column) -> decimal.Decimal | None:
        val = self.get(column)
        if val is None or isinstance(val, decimal.Decimal):
            return val
        return decimal.Decimal(str(val))

    def boolean(self, column: Column) -> bool | None:
        val = self.get(column)
        if val is None:
            return None
        if isinstance(val, str):
            return val.strip().lower() in _TRUE_STRINGS
        return bool(val)

    def date(self, column: Column) -> datetime.date | None:
        """Date value; text values (sqlite) are parsed."""
        val = self.get(column)
        if val is None:
            return None
        if isinstance(val, datetime.datetime):
            return val.date()
        if isinstance(val, datetime.date):
            return val
        return dateutil.parser.parse(str(val)).date()

    def time(self, column: Column) -> datetime.time | None:
        val = self.get(column)
        if val is None:
            return None
        if isinstance(val, datetime.time):
            return val
        if isinstance(val, datetime.datetime):
            return val.time()
        return datetime.time.fromisoformat(str(val))

    def datetime(self, column: Column) -> datetime.datetime | None:
        """Timestamp value; text values (sqlite) are parsed."""
        val = self.get(column)
        if val is None:
            return None
        if isinstance(val, datetime.datetime):
            return val
        if isinstance(val, datetime.date):
            return datetime.datetime.combine(val, datetime.time())
        return dateutil.parser.parse(str(val))

    def binary(self, column: Column) -> bytes | None:
        val = self.get(column)
        if val is None:
            return None
        if isinstance(val, str):
            return val.encode()
        return bytes(val)

    def json(self, column: Column) -> Any:
        """Decoded JSON; drivers that decode JSON themselves pass through."""
        val = self.get(column)
        if isinstance(val, (str, bytes, bytearray)):
            return json.loads(val)
        return val

    def keys(self) -> tuple[str, ...]:
        return self._names

    def values(self) -> tuple[Any, ...]:
        return self._values

    def to_dict(self) -> dict[str, Any]:
        return dict(zip(self._names, self._values))

    def to_attrdict(self) -> attrdict:
        return attrdict(self.to_dict())

    def __getitem__(self, column: Column) -> Any:
        return self.get(column)

    def __contains__(self, column: object) -> bool:
        return isinstance(column, str) and column.lower() in self._index

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Row):
            return NotImplemented
        return self._names == other._names and self._values == other._values

    __hash__ = None

    def __repr__(self) -> str:
        return f'Row({self.to_dict()!r})'
