"""
Enumerations for SQLite pragmas the connection exposes.
"""
from enum import Enum, IntEnum
from typing import Any, Self

__all__ = ['AutoVacuum', 'JournalMode', 'SecureDelete', 'WalCheckpointMode']


class JournalMode(Enum):
    DELETE = 'delete'
    TRUNCATE = 'truncate'
    PERSIST = 'persist'
    MEMORY = 'memory'
    WAL = 'wal'
    OFF = 'off'

    @classmethod
    def from_value(cls, value: Any) -> Self:
        """Parse a pragma result or option string (case-insensitive)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f'Unknown journal mode: {value!r}. '
                             f'Available: {[m.value for m in cls]}') from None

    @property
    def pragma_value(self) -> str:
        return self.name


class AutoVacuum(IntEnum):
    """Values as stored by `PRAGMA auto_vacuum`.

    Switching between NONE and FULL/INCREMENTAL only takes effect on an
    empty database or after VACUUM.
    """
    NONE = 0
    FULL = 1
    INCREMENTAL = 2

    @classmethod
    def from_value(cls, value: Any) -> Self:
        if isinstance(value, str) and not value.isdigit():
            return cls[value.upper()]
        return cls(int(value))

    @property
    def pragma_value(self) -> str:
        return str(self.value)


class SecureDelete(IntEnum):
    """Values as stored by `PRAGMA secure_delete`."""
    OFF = 0
    ON = 1
    FAST = 2

    @classmethod
    def from_value(cls, value: Any) -> Self:
        if isinstance(value, bool):
            return cls.ON if value else cls.OFF
        if isinstance(value, str) and not value.isdigit():
            return cls[value.upper()]
        return cls(int(value))

    @property
    def pragma_value(self) -> str:
        return 'FAST' if self is SecureDelete.FAST else str(self.value)


class WalCheckpointMode(Enum):
    PASSIVE = 'PASSIVE'
    FULL = 'FULL'
    RESTART = 'RESTART'
    TRUNCATE = 'TRUNCATE'

    @classmethod
    def from_value(cls, value: Any) -> Self:
        if isinstance(value, cls):
            return value
        return cls(str(value).upper())
