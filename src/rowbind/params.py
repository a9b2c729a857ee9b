"""
Query parameters and placeholder binding.

Parameters come from three sources:

- explicit `Param` values (`value`, `lazy`) and multi-value `MultiParam`s
  (`values`), attached with `Query.on`;
- deconstructed records, attached with `Query.on_record`;
- batch items, one record per execution.

`ParamBinder` resolves all of them against the placeholders of a parsed
`Sql` and produces the driver SQL plus positional arguments, in
placeholder occurrence order.
"""
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NamedTuple

from rowbind.convert import ConverterChain
from rowbind.dialect import Dialect
from rowbind.exceptions import BindingError
from rowbind.sql import Sql

from libb import isiterable

if TYPE_CHECKING:
    from rowbind.dctor import Dctor

__all__ = [
    'Param',
    'MultiParam',
    'RecordSource',
    'BoundStatement',
    'ParamBinder',
    'value',
    'values',
    'lazy',
    'to_params',
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Param:
    """Single named parameter.

    A lazy parameter holds a function of the connection, evaluated once per
    execution, right before binding.
    """
    name: str
    value: Any = None
    lazy: bool = False

    def resolve(self, cn: Any) -> Any:
        if self.lazy:
            return self.value(cn)
        return self.value

    def __repr__(self) -> str:
        if self.lazy:
            return f':{self.name} -> <lazy>'
        return f':{self.name} -> {self.value!r}'


@dataclass(frozen=True, slots=True)
class MultiParam:
    """Named parameter expanded into a comma separated list of markers.

    Use it for `IN` clauses: `WHERE id IN (:ids)`.
    """
    name: str
    values: tuple[Any, ...]

    def __repr__(self) -> str:
        return f':{self.name} -> {list(self.values)!r}'


@dataclass(frozen=True, slots=True)
class RecordSource:
    """A record whose field values are extracted by a deconstructor."""
    record: Any
    dctor: 'Dctor'


class BoundStatement(NamedTuple):
    """Driver-ready SQL with its positional arguments."""
    sql: str
    args: tuple[Any, ...]


def value(name: str, value: Any) -> Param:
    """Create a parameter with a fixed value.

    >>> value('id', 42)
    :id -> 42
    """
    return Param(name, value)


def lazy(name: str, supplier: Callable[[Any], Any]) -> Param:
    """Create a parameter whose value is computed at execution time.

    `supplier` receives the connection the statement runs on.
    """
    if not callable(supplier):
        raise TypeError(f'Lazy value for :{name} must be callable')
    return Param(name, supplier, lazy=True)


def values(name: str, items: Iterable[Any]) -> MultiParam:
    """Create a multi-value parameter.

    >>> values('ids', [1, 2, 3])
    :ids -> [1, 2, 3]
    """
    if isinstance(items, (str, bytes)) or not isiterable(items):
        raise TypeError(f'Values for :{name} must be a non-string iterable')
    items = tuple(items)
    if not items:
        raise ValueError(f'Values for :{name} must not be empty')
    return MultiParam(name, items)


def to_params(*params: Param | MultiParam | Mapping[str, Any],
              **named: Any) -> tuple[Param | MultiParam, ...]:
    """Normalize the accepted parameter forms into a tuple of params.

    Accepts `Param`/`MultiParam` objects, mappings of name to value and
    keyword arguments.
    """
    result = []
    for param in params:
        if isinstance(param, (Param, MultiParam)):
            result.append(param)
        elif isinstance(param, Mapping):
            result.extend(Param(k, v) for k, v in param.items())
        else:
            raise TypeError(f'Type {type(param).__name__!r} not expected as parameter')
    result.extend(Param(k, v) for k, v in named.items())
    return tuple(result)


class ParamBinder:
    """Resolve named placeholders to positional driver arguments.

    Every distinct placeholder name must be supplied exactly once. Explicit
    params naming no placeholder are rejected; record fields naming no
    placeholder are ignored and never evaluated.
    """

    def __init__(self, dialect: Dialect, converters: ConverterChain | None = None) -> None:
        self.dialect = dialect
        self.converters = converters if converters is not None else ConverterChain()

    def convert(self, value: Any) -> Any:
        """Run a value through the converter chain and the dialect adapter."""
        return self.dialect.adapt_value(self.converters.convert(value))

    def bind(self, sql: Sql, params: Sequence[Param | MultiParam] = (),
             records: Sequence[RecordSource] = (), cn: Any = None) -> BoundStatement:
        """Bind parameters and records to the placeholders of `sql`.

        Lazy params and derived record fields are evaluated with `cn`.
        """
        wanted = sql.names
        supplied: dict[str, Param | MultiParam] = {}

        for param in params:
            if param.name in supplied:
                raise BindingError(f'Parameter :{param.name} supplied more than once')
            supplied[param.name] = param

        surplus = [name for name in supplied if name not in wanted]
        if surplus:
            raise BindingError(
                f'No placeholder for parameter(s): {", ".join(surplus)} '
                f'(placeholders: {", ".join(wanted) or "none"})')

        # coverage is checked before any lazy or derived value is evaluated
        available = set(supplied)
        record_names = []
        for source in records:
            names = [name for name in wanted if name in source.dctor.names]
            clash = [name for name in names if name in available]
            if clash:
                raise BindingError(f'Parameter(s) supplied more than once: {", ".join(clash)}')
            available.update(names)
            record_names.append(names)

        missing = [name for name in wanted if name not in available]
        if missing:
            raise BindingError(f'Missing value for placeholder(s): {", ".join(missing)}')

        resolved: dict[str, Any] = {}
        for name, param in supplied.items():
            if isinstance(param, MultiParam):
                resolved[name] = param
            else:
                resolved[name] = param.resolve(cn)

        for source, names in zip(records, record_names):
            resolved.update(source.dctor.unapply(source.record, cn, names=names))

        converted: dict[str, Any] = {}
        expansions: dict[str, int] = {}
        for name in wanted:
            item = resolved[name]
            if isinstance(item, MultiParam):
                converted[name] = tuple(self.convert(v) for v in item.values)
                expansions[name] = len(item.values)
            else:
                converted[name] = self.convert(item)

        args: list[Any] = []
        for name in sql.param_names:
            if name in expansions:
                args.extend(converted[name])
            else:
                args.append(converted[name])

        rendered = sql.render(
            self.dialect.marker,
            escape_percent=self.dialect.escape_percent and bool(args),
            expansions=expansions,
        )
        return BoundStatement(rendered, tuple(args))
