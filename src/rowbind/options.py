from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from rowbind.convert import ConverterChain
from rowbind.dialect import get_available_dialects, is_supported_dialect

from libb import ConfigOptions, load_options

__all__ = [
    'MappingOptions',
    'mapping_options',
]


@dataclass
class MappingOptions(ConfigOptions):
    """Options

    supported dialects: `postgresql`, `sqlite` (None detects the dialect
    from the connection)

    Binding and fetching options:
    - converters: Converters consulted before every bind, first change wins
    - arraysize: Rows per fetchmany() call when reading results (default: 5000)
    - batch_size: Rows per executemany() call in Query.execute_many (default: 500)
    """
    dialect: str | None = None
    converters: tuple[Callable[[Any], Any], ...] = ()
    arraysize: int = 5000
    batch_size: int = 500

    def __post_init__(self):
        if self.dialect is not None and not is_supported_dialect(self.dialect):
            available = get_available_dialects()
            raise ValueError(f'dialect must be one of: {available}')
        if self.arraysize <= 0:
            raise ValueError(f'arraysize must be positive: {self.arraysize}')
        if self.batch_size <= 0:
            raise ValueError(f'batch_size must be positive: {self.batch_size}')
        self.converters = tuple(self.converters)

    @property
    def converter_chain(self) -> ConverterChain:
        return ConverterChain(self.converters)


@load_options(cls=MappingOptions)
def mapping_options(options: MappingOptions | dict[str, Any] | str | None = None,
                    config: Any | None = None, **kw: Any) -> MappingOptions:
    """Build options from a MappingOptions object, a dict, a config name or keywords.

    >>> mapping_options({'dialect': 'sqlite', 'arraysize': 100}).arraysize
    100
    """
    return options
