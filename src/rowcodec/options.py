from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps
from typing import Any

import pandas as pd
from rowcodec.adapters.column_info import Column
from rowcodec.pragma import JournalMode
from rowcodec.strategy import get_available_array_strategies
from rowcodec.strategy import get_available_date_strategies
from rowcodec.strategy import is_supported_array_strategy, is_supported_date_strategy

from libb import ConfigOptions

__all__ = [
    'DatabaseOptions',
    'pandas_numpy_data_loader',
    'iterdict_data_loader',
    'use_iterdict_data_loader',
]


def use_iterdict_data_loader(func):
    """Run a ConnectionWrapper method with rows loaded as attrdicts.

    The row helpers index single rows, so they bypass a DataFrame loader.
    """

    @wraps(func)
    def inner(cn, *args, **kwargs):
        original_data_loader = cn.options.data_loader
        cn.options.data_loader = iterdict_data_loader
        try:
            return func(cn, *args, **kwargs)
        finally:
            cn.options.data_loader = original_data_loader

    return inner


def iterdict_data_loader(data, columns, **kwargs) -> list[dict]:
    """Minimal data loader.

    Accepts additional keyword arguments for compatibility with other data
    loaders, but doesn't use them.
    """
    if not data:
        return []
    return list(data)


def pandas_numpy_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """Standard pandas DataFrame loader using NumPy.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    """
    if not data:
        return pd.DataFrame(columns=Column.get_names(columns))
    return pd.DataFrame.from_records(list(data), columns=Column.get_names(columns))


@dataclass
class DatabaseOptions(ConfigOptions):
    """Options

    - database: file path or `:memory:`
    - read_only: open the file read-only
    - journal_mode: applied when a writable connection opens
    - array_strategy / date_strategy: defaults copied into new statements
    - timeout: seconds to wait on a locked database
    - register_functions: install the Unicode-aware UPPER function
    """
    database: str = ':memory:'
    read_only: bool = False
    journal_mode: str = 'wal'
    array_strategy: str = 'bplist'
    date_strategy: str = 'integer'
    timeout: float = 5.0
    register_functions: bool = True
    data_loader: Callable[..., Any] | None = None

    def __post_init__(self):
        if not self.database:
            raise ValueError('database must be a file path or :memory:')
        if not is_supported_array_strategy(self.array_strategy):
            available = get_available_array_strategies()
            raise ValueError(f'array_strategy must be one of: {available}')
        if not is_supported_date_strategy(self.date_strategy):
            available = get_available_date_strategies()
            raise ValueError(f'date_strategy must be one of: {available}')
        JournalMode.from_value(self.journal_mode)
        if self.timeout is None or self.timeout < 0:
            raise ValueError('timeout must be a non-negative number of seconds')
        if self.data_loader is None:
            self.data_loader = pandas_numpy_data_loader
