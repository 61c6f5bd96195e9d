"""
Base interfaces for array and date storage strategies.

A strategy decides how one logical type is laid out in a single column.
Arrays always occupy one blob column; dates occupy one integer, real or text
column. Concrete strategies register themselves by name so statements and
options can select them with a plain string.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from enum import StrEnum
from typing import Any, ClassVar

from rowcodec.types import StorageClass

__all__ = [
    'ArrayFormat',
    'ArrayStrategy',
    'DateFormat',
    'DateStrategy',
    'register_array_strategy',
    'register_date_strategy',
]

# Registries of strategy name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_ARRAY_REGISTRY: dict[str, type['ArrayStrategy']] = {}
_DATE_REGISTRY: dict[str, type['DateStrategy']] = {}


class ArrayFormat(StrEnum):
    """Interchange formats for array columns."""
    BPLIST = 'bplist'
    JSON = 'json'


class DateFormat(StrEnum):
    """Encodings for timestamp columns."""
    INTEGER = 'integer'
    REAL = 'real'
    TEXT = 'text'


def register_array_strategy(name: str):
    """Decorator to register an array strategy class under a name.

    Usage:
        @register_array_strategy('bplist')
        class BinaryPlistArrayStrategy(ArrayStrategy):
            ...
    """
    def decorator(cls: type['ArrayStrategy']) -> type['ArrayStrategy']:
        cls.name = name
        _ARRAY_REGISTRY[name] = cls
        return cls
    return decorator


def register_date_strategy(name: str):
    """Decorator to register a date strategy class under a name.
    """
    def decorator(cls: type['DateStrategy']) -> type['DateStrategy']:
        cls.name = name
        _DATE_REGISTRY[name] = cls
        return cls
    return decorator


class ArrayStrategy(ABC):
    """Serializes an ordered, possibly nested sequence into one blob.

    Writer and reader of a given blob must use the same strategy: the
    formats are not self-describing with respect to each other.
    """
    name: ClassVar[str] = ''

    @abstractmethod
    def dumps(self, items: Any) -> bytes:
        """Serialize a sequence into bytes."""

    @abstractmethod
    def loads(self, data: bytes) -> list:
        """Deserialize bytes written by `dumps` back into a list."""

    def __repr__(self) -> str:
        return f'{type(self).__name__}()'


class DateStrategy(ABC):
    """Converts a datetime to and from a single scalar column value.

    `storage` is the storage class written; `accepts` lists the storage
    classes a read will take.
    """
    name: ClassVar[str] = ''
    storage: ClassVar[StorageClass]
    accepts: ClassVar[tuple[StorageClass, ...]]

    @abstractmethod
    def to_sql(self, value: datetime) -> int | float | str:
        """Convert a datetime to its column representation."""

    @abstractmethod
    def from_sql(self, value: int | float | str) -> datetime:
        """Convert a column value back into an aware UTC datetime."""

    def __repr__(self) -> str:
        return f'{type(self).__name__}()'
