"""
Strategy factory for array and date column encodings.
"""
from functools import lru_cache

from rowcodec.strategy.base import _ARRAY_REGISTRY, _DATE_REGISTRY
from rowcodec.strategy.base import ArrayFormat as ArrayFormat
from rowcodec.strategy.base import ArrayStrategy as ArrayStrategy
from rowcodec.strategy.base import DateFormat as DateFormat
from rowcodec.strategy.base import DateStrategy as DateStrategy
from rowcodec.strategy.base import register_array_strategy as register_array_strategy
from rowcodec.strategy.base import register_date_strategy as register_date_strategy
from rowcodec.strategy.array import BinaryPlistArrayStrategy as BinaryPlistArrayStrategy
from rowcodec.strategy.array import JsonArrayStrategy as JsonArrayStrategy
from rowcodec.strategy.date import IntegerDateStrategy as IntegerDateStrategy
from rowcodec.strategy.date import JulianDayDateStrategy as JulianDayDateStrategy
from rowcodec.strategy.date import TextDateStrategy as TextDateStrategy


def _validate_name(name: str, registry: dict, what: str) -> None:
    """Raise ValueError if name is not registered."""
    if name not in registry:
        available = list(registry.keys())
        raise ValueError(f'Unsupported {what} strategy: {name}. Available: {available}')


@lru_cache(maxsize=8)
def _get_array_strategy(name: str) -> ArrayStrategy:
    """Get cached array strategy instance for a name."""
    _validate_name(name, _ARRAY_REGISTRY, 'array')
    return _ARRAY_REGISTRY[name]()


@lru_cache(maxsize=8)
def _get_date_strategy(name: str) -> DateStrategy:
    """Get cached date strategy instance for a name."""
    _validate_name(name, _DATE_REGISTRY, 'date')
    return _DATE_REGISTRY[name]()


def get_array_strategy(strategy: ArrayStrategy | ArrayFormat | str) -> ArrayStrategy:
    """Resolve a strategy instance, format member or name to an array strategy.
    """
    if isinstance(strategy, ArrayStrategy):
        return strategy
    return _get_array_strategy(str(strategy).lower())


def get_date_strategy(strategy: DateStrategy | DateFormat | str) -> DateStrategy:
    """Resolve a strategy instance, format member or name to a date strategy.
    """
    if isinstance(strategy, DateStrategy):
        return strategy
    return _get_date_strategy(str(strategy).lower())


def get_available_array_strategies() -> list[str]:
    """Return list of registered array strategy names."""
    return list(_ARRAY_REGISTRY.keys())


def get_available_date_strategies() -> list[str]:
    """Return list of registered date strategy names."""
    return list(_DATE_REGISTRY.keys())


def is_supported_array_strategy(name: str) -> bool:
    """Check if an array strategy name is registered."""
    return str(name).lower() in _ARRAY_REGISTRY


def is_supported_date_strategy(name: str) -> bool:
    """Check if a date strategy name is registered."""
    return str(name).lower() in _DATE_REGISTRY
