"""
Deconstructors: split a record into named column values for writes.

A `Dctor` is the inverse of a `RowParser`. Each `Field` names a column and
extracts its value from the record. Derived fields also receive the
connection the statement runs on, so they may issue a dependent statement
first, for example inserting a referenced row to obtain its key.

Examples
    BOOK = Dctor.of(
        field('title', attrgetter('title')),
        field('published_at', attrgetter('published_at')),
        derived_field('publisher_id', lambda book, cn: Publisher.insert(book.publisher, cn)),
    )
"""
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

__all__ = [
    'Field',
    'Dctor',
    'field',
    'derived_field',
    'field_value',
]

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True, slots=True)
class Field(Generic[T]):
    """Named value extractor.

    `extractor(record)` for plain fields, `extractor(record, cn)` for derived
    fields. `mapper` post-processes the extracted value.
    """
    name: str
    extractor: Callable[..., Any]
    derived: bool = False
    mapper: Callable[[Any], Any] | None = None

    def value(self, record: T, cn: Any = None) -> Any:
        if self.derived:
            result = self.extractor(record, cn)
        else:
            result = self.extractor(record)
        if self.mapper is not None:
            result = self.mapper(result)
        return result

    def __repr__(self) -> str:
        return f'Field[{self.name}]'


def field(name: str, extractor: Callable[[T], Any],
          mapper: Callable[[Any], Any] | None = None) -> Field[T]:
    """Field extracted from the record alone."""
    return Field(name, extractor, derived=False, mapper=mapper)


def derived_field(name: str, extractor: Callable[[T, Any], Any],
                  mapper: Callable[[Any], Any] | None = None) -> Field[T]:
    """Field computed from the record and the statement's connection.

    The connection is only valid for the duration of the binding call.
    """
    return Field(name, extractor, derived=True, mapper=mapper)


def field_value(name: str, value: Any) -> Field[Any]:
    """Field with a constant value."""
    return Field(name, lambda record: value)


class Dctor(Generic[T]):
    """Ordered, immutable set of fields for one record type.
    """

    __slots__ = ('_fields', '_by_name')

    def __init__(self, fields: Iterable[Field[T]]) -> None:
        fields = tuple(fields)
        by_name: dict[str, Field[T]] = {}
        for f in fields:
            if not isinstance(f, Field):
                raise TypeError(f'Expected a Field, got {type(f).__name__}')
            if f.name in by_name:
                raise ValueError(f'Duplicate field detected: {f.name}')
            by_name[f.name] = f
        self._fields = fields
        self._by_name = by_name

    @classmethod
    def of(cls, *fields: Field[T]) -> 'Dctor[T]':
        return cls(fields)

    @property
    def fields(self) -> tuple[Field[T], ...]:
        return self._fields

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._by_name)

    def unapply(self, record: T, cn: Any = None,
                names: Sequence[str] | None = None) -> dict[str, Any]:
        """Extract column values from `record`.

        Only fields listed in `names` are evaluated (all when None), in field
        declaration order. Unknown names are skipped.
        """
        wanted = None if names is None else set(names)
        result = {}
        for f in self._fields:
            if wanted is None or f.name in wanted:
                result[f.name] = f.value(record, cn)
        return result

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f'Dctor({", ".join(self.names)})'
