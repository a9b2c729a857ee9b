"""Batches pair records with the deconstructor that binds them."""
from collections.abc import Iterable, Iterator
from typing import Any, Generic, TypeVar

from rowbind.dctor import Dctor
from rowbind.params import RecordSource

__all__ = ['Batch']

T = TypeVar('T')


class Batch(Generic[T]):
    """Records to execute one statement for, with their deconstructor.

    Items are materialized on creation, so a generator can be passed in.
    What happens to the rows already written when one item fails is up to
    the driver and the caller's transaction; no rollback is done here.

    Examples
        batch = Batch.of(authors, AUTHOR_DCTOR)
        counts = INSERT_AUTHOR.execute_batch(batch, cn)
    """

    __slots__ = ('_items', '_dctor')

    def __init__(self, items: Iterable[T], dctor: Dctor[T]) -> None:
        if not isinstance(dctor, Dctor):
            raise TypeError(f'Expected a Dctor, got {type(dctor).__name__}')
        self._items = tuple(items)
        self._dctor = dctor

    @classmethod
    def of(cls, items: Iterable[T], dctor: Dctor[T]) -> 'Batch[T]':
        return cls(items, dctor)

    @property
    def items(self) -> tuple[T, ...]:
        return self._items

    @property
    def dctor(self) -> Dctor[T]:
        return self._dctor

    def sources(self) -> Iterator[RecordSource]:
        """One binding source per item, in item order."""
        for item in self._items:
            yield RecordSource(item, self._dctor)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f'Batch({len(self._items)} items, {self._dctor!r})'

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Batch):
            return NotImplemented
        return self._items == other._items and self._dctor is other._dctor

    __hash__ = None
