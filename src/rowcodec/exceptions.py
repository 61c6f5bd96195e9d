"""
Exception classes for the value-mapping layer.

Engine failures (`EngineError`) are recoverable and surface verbatim to the
caller. Everything under `ValidationError` and `TypeConversionError` signals
misuse of this package by the calling code.
"""
import sqlite3

__all__ = [
    'DatabaseError',
    'EngineError',
    'TypeConversionError',
    'NullValueError',
    'CodingError',
    'EncodingError',
    'DecodingError',
    'ValidationError',
    'UnknownKeyError',
    'SequenceError',
    'MigrationError',
]


class DatabaseError(Exception):
    """Base class for all rowcodec errors.
    """


class EngineError(DatabaseError):
    """Error reported by the SQLite engine.

    Carries the engine's numeric result code and its symbolic name when the
    driver exposes them.
    """

    def __init__(self, message: str, code: int | None = None, name: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.name = name

    def __str__(self) -> str:
        if self.name:
            return f'{self.message} ({self.name})'
        return self.message

    @classmethod
    def from_sqlite(cls, err: sqlite3.Error) -> 'EngineError':
        """Wrap a sqlite3 exception, keeping code and code name."""
        return cls(
            str(err),
            code=getattr(err, 'sqlite_errorcode', None),
            name=getattr(err, 'sqlite_errorname', None),
        )


class TypeConversionError(DatabaseError):
    """Error converting a value between Python and a storage class.
    """


class NullValueError(TypeConversionError):
    """Non-nullable read of a NULL column.
    """


class CodingError(TypeConversionError):
    """Error raised by the generic encode/decode bridges.

    `path` holds the field names traversed when the error happened.
    """

    def __init__(self, message: str, path: list[str] | tuple[str, ...] = ()) -> None:
        self.path = list(path)
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        if self.path:
            return f"{self.message} (field: {'.'.join(self.path)})"
        return self.message


class EncodingError(CodingError):
    """Error encoding an aggregate into statement parameters.
    """


class DecodingError(CodingError):
    """Error decoding a row into an aggregate.
    """


class ValidationError(DatabaseError):
    """Caller violated a usage contract.
    """


class UnknownKeyError(ValidationError, KeyError):
    """Unknown column name, parameter name, or index.
    """

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ''


class SequenceError(ValidationError):
    """Operation issued out of order (stale row, finalized statement).
    """


class MigrationError(ValidationError):
    """Schema migration requested out of order.
    """
