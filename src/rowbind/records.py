"""
Parsers and deconstructors derived from dataclass fields.

Column labels map to field names case-insensitively. Field types drive the
conversion of text values, so dates stored as text by sqlite come back as
`datetime.date`.
"""
import dataclasses
import datetime
import decimal
import types
import typing
from collections.abc import Callable
from typing import Any, TypeVar

from rowbind.dctor import Dctor, Field, field
from rowbind.parser import RowParser
from rowbind.row import Row

__all__ = ['record_parser', 'record_dctor']

T = TypeVar('T')

_GETTERS: dict[type, str] = {
    datetime.datetime: 'datetime',
    datetime.date: 'date',
    datetime.time: 'time',
    decimal.Decimal: 'decimal',
    bool: 'boolean',
    int: 'integer',
    float: 'real',
    str: 'string',
    bytes: 'binary',
}


def _check_dataclass(cls: type) -> None:
    if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
        raise TypeError(f'{cls!r} is not a dataclass type')


def _unwrap_optional(tp: Any) -> Any:
    """`X | None` -> `X`; other unions and generics are left alone."""
    if typing.get_origin(tp) in {typing.Union, types.UnionType}:
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


def _getter_for(tp: Any) -> str:
    return _GETTERS.get(_unwrap_optional(tp), 'get')


def record_parser(cls: type[T], to_field: Callable[[str], str] = str.lower) -> RowParser[T]:
    """Row parser creating `cls` from the columns of a row.

    Columns without a matching field are ignored. Fields without a column
    take their default, or None when they have none.
    """
    _check_dataclass(cls)
    hints = typing.get_type_hints(cls)
    init_fields = [f for f in dataclasses.fields(cls) if f.init]
    by_name = {f.name: f for f in init_fields}
    getters = {f.name: _getter_for(hints.get(f.name, Any)) for f in init_fields}

    def parse(row: Row, cn: Any) -> T:
        kwargs: dict[str, Any] = {}
        for i, label in enumerate(row.keys()):
            name = to_field(label)
            if name in by_name and name not in kwargs:
                kwargs[name] = getattr(row, getters[name])(i)
        for name, f in by_name.items():
            if name in kwargs:
                continue
            if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
                kwargs[name] = None
        return cls(**kwargs)

    return RowParser(parse)


def record_dctor(cls: type[T], *overrides: Field[T],
                 to_column: Callable[[str], str] = lambda name: name) -> Dctor[T]:
    """Deconstructor with one field per dataclass field.

    `overrides` replace the generated field of the same column name; an
    override naming no dataclass field is appended.
    """
    _check_dataclass(cls)
    replaced = {f.name: f for f in overrides}
    if len(replaced) != len(overrides):
        raise ValueError('Duplicate override field detected')

    fields = []
    for f in dataclasses.fields(cls):
        name = to_column(f.name)
        fields.append(replaced.pop(name, None) or field(name, _attribute(f.name)))
    fields.extend(replaced.values())
    return Dctor(fields)


def _attribute(name: str) -> Callable[[Any], Any]:
    def get(record: Any) -> Any:
        return getattr(record, name)
    return get
