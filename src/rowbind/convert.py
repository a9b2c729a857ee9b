"""
Value conversion applied to every bound parameter.

Binding runs each value through three steps:

1. `to_nullable` unwraps nullable wrappers: NumPy scalars become Python
   scalars, and the missing-value markers of NumPy and pandas (`NaN`,
   `NaT`, `pd.NA`) become `None`.
2. A `ConverterChain`: an explicit, ordered list of converters. The first
   converter whose result is not the very same object wins; when no
   converter applies the value passes through unchanged.
3. The dialect's own adaptation (see `rowbind.dialect`).

Converters are injected through `MappingOptions.converters`. There is no
process-wide registry; `ConverterChain.from_entry_points` loads plugins
only when called.
"""
import enum
import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from importlib.metadata import entry_points
from typing import Any

import numpy as np
import pandas as pd

__all__ = [
    'SqlTypeMapper',
    'ConverterChain',
    'EnumValueMapper',
    'to_nullable',
    'ENTRY_POINT_GROUP',
]

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = 'rowbind.converters'

Converter = Callable[[Any], Any]


def _convert_numpy_value(val: Any) -> Any:
    """Convert NumPy value to Python type."""
    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64):
        if np.isnat(val):
            return None
        return pd.Timestamp(val).to_pydatetime()

    if isinstance(val, (np.floating, np.integer, np.unsignedinteger, np.bool_)):
        return val.item()

    return val


def to_nullable(value: Any) -> Any:
    """Unwrap nullable wrappers into a plain Python scalar or `None`.

    >>> to_nullable(np.int64(7)), to_nullable(float('nan')), to_nullable(pd.NA)
    (7, None, None)
    """
    if value is None:
        return None

    if isinstance(value, float) and math.isnan(value):
        return None

    if value is pd.NA or value is pd.NaT:
        return None

    if isinstance(value, np.generic):
        return _convert_numpy_value(value)

    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()

    return value


class SqlTypeMapper(ABC):
    """Converter plugin: maps a Python value to one the driver can bind.

    Return the argument itself when the value is not handled, so that the
    next converter in the chain gets its turn.
    """

    @abstractmethod
    def convert(self, value: Any) -> Any:
        """Convert a single value."""

    def __call__(self, value: Any) -> Any:
        return self.convert(value)


class EnumValueMapper(SqlTypeMapper):
    """Bind `enum.Enum` members by their value."""

    def convert(self, value: Any) -> Any:
        if isinstance(value, enum.Enum):
            return value.value
        return value


class ConverterChain:
    """Ordered list of converters, first change wins.

    >>> chain = ConverterChain([EnumValueMapper(), str])
    >>> chain.convert(5)
    '5'
    """

    __slots__ = ('_converters',)

    def __init__(self, converters: Iterable[SqlTypeMapper | Converter] = ()) -> None:
        converters = tuple(converters)
        for converter in converters:
            if not callable(converter):
                raise TypeError(f'Converter must be callable: {converter!r}')
        self._converters = converters

    @property
    def converters(self) -> tuple[SqlTypeMapper | Converter, ...]:
        return self._converters

    def convert(self, value: Any) -> Any:
        """Convert a value through the chain."""
        value = to_nullable(value)
        for converter in self._converters:
            converted = converter(value)
            if converted is not value:
                return converted
        return value

    def __call__(self, value: Any) -> Any:
        return self.convert(value)

    def __len__(self) -> int:
        return len(self._converters)

    def __repr__(self) -> str:
        return f'ConverterChain({list(self._converters)!r})'

    @classmethod
    def from_entry_points(cls, group: str = ENTRY_POINT_GROUP) -> 'ConverterChain':
        """Build a chain from installed plugins, in entry point name order.

        Entry points may name a `SqlTypeMapper` subclass (instantiated with
        no arguments) or a plain function.
        """
        converters = []
        for ep in sorted(entry_points(group=group), key=lambda e: e.name):
            obj = ep.load()
            if isinstance(obj, type):
                obj = obj()
            logger.debug(f'Loaded converter {ep.name} from {ep.value}')
            converters.append(obj)
        return cls(converters)
