"""
Value model: the closed set of scalar kinds and their storage mapping.

This module provides:
- StorageClass: SQLite's fundamental datatypes (plus the NULL sentinel)
- ValueKind: every application-level scalar kind the layer supports
- Value: a kind-tagged payload, range checked on construction
- write_value / read_value: the single bind and read dispatchers

Every non-null Value maps to exactly one storage class. NULL is never a
Value; it is bound or read through the nullable paths instead.
"""
import datetime
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any, Self, get_origin

import numpy as np
from rowcodec.exceptions import NullValueError, TypeConversionError

if TYPE_CHECKING:
    from rowcodec.engine import PreparedHandle
    from rowcodec.strategy.base import ArrayStrategy, DateStrategy

logger = logging.getLogger(__name__)

__all__ = [
    'StorageClass',
    'ValueKind',
    'Value',
    'read_value',
    'write_value',
]

FLOAT32_MAX = float(np.finfo(np.float32).max)


class StorageClass(IntEnum):
    """SQLite fundamental datatypes, numbered as the C API numbers them."""
    INTEGER = 1
    REAL = 2
    TEXT = 3
    BLOB = 4
    NULL = 5

    @classmethod
    def of(cls, value: Any) -> Self:
        """Classify a value as returned by the sqlite3 driver."""
        if value is None:
            return cls.NULL
        if isinstance(value, int):
            return cls.INTEGER
        if isinstance(value, float):
            return cls.REAL
        if isinstance(value, str):
            return cls.TEXT
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls.BLOB
        raise TypeConversionError(f'No storage class for {type(value).__name__}')


class ValueKind(Enum):
    """Application-level scalar kinds.

    INT is the platform integer and behaves like INT64.
    """
    BOOL = 'bool'
    INT = 'int'
    INT8 = 'int8'
    INT16 = 'int16'
    INT32 = 'int32'
    INT64 = 'int64'
    UINT8 = 'uint8'
    UINT16 = 'uint16'
    UINT32 = 'uint32'
    UINT64 = 'uint64'
    FLOAT32 = 'float32'
    FLOAT64 = 'float64'
    BLOB = 'blob'
    TEXT = 'text'
    TIMESTAMP = 'timestamp'
    ARRAY = 'array'

    @property
    def bits(self) -> int | None:
        """Width of an integer or float kind, None otherwise."""
        if self in _INTEGER_LAYOUT:
            return _INTEGER_LAYOUT[self][0]
        return {ValueKind.FLOAT32: 32, ValueKind.FLOAT64: 64}.get(self)

    @property
    def signed(self) -> bool:
        return self in _INTEGER_LAYOUT and _INTEGER_LAYOUT[self][1]

    @property
    def is_integer(self) -> bool:
        return self in _INTEGER_LAYOUT

    @property
    def is_float(self) -> bool:
        return self in {ValueKind.FLOAT32, ValueKind.FLOAT64}

    @property
    def bounds(self) -> tuple[int, int]:
        """Inclusive (min, max) of an integer kind."""
        bits, signed = _INTEGER_LAYOUT[self]
        if signed:
            return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
        return 0, (1 << bits) - 1

    @classmethod
    def for_type(cls, tp: Any) -> 'ValueKind':
        """Map a Python or numpy type to its kind.

        >>> ValueKind.for_type(np.uint16)
        <ValueKind.UINT16: 'uint16'>
        >>> ValueKind.for_type(list[int])
        <ValueKind.ARRAY: 'array'>
        """
        if isinstance(tp, ValueKind):
            return tp
        if get_origin(tp) in {list, tuple}:
            return cls.ARRAY
        if not isinstance(tp, type):
            raise TypeConversionError(f'Unsupported type: {tp!r}')
        if issubclass(tp, np.generic):
            return _numpy_kind(tp)
        if issubclass(tp, bool):
            return cls.BOOL
        if issubclass(tp, int):
            return cls.INT
        if issubclass(tp, float):
            return cls.FLOAT64
        if issubclass(tp, str):
            return cls.TEXT
        if issubclass(tp, (bytes, bytearray, memoryview)):
            return cls.BLOB
        if issubclass(tp, (datetime.datetime, datetime.date)):
            return cls.TIMESTAMP
        if issubclass(tp, (list, tuple, np.ndarray)):
            return cls.ARRAY
        raise TypeConversionError(f'Unsupported type: {tp.__name__}')

    @classmethod
    def infer(cls, value: Any) -> 'ValueKind':
        """Kind of a concrete value."""
        return cls.for_type(type(value))


_INTEGER_LAYOUT: dict[ValueKind, tuple[int, bool]] = {
    ValueKind.INT: (64, True),
    ValueKind.INT8: (8, True),
    ValueKind.INT16: (16, True),
    ValueKind.INT32: (32, True),
    ValueKind.INT64: (64, True),
    ValueKind.UINT8: (8, False),
    ValueKind.UINT16: (16, False),
    ValueKind.UINT32: (32, False),
    ValueKind.UINT64: (64, False),
}

_UNSIGNED_NUMPY: dict[ValueKind, type] = {
    ValueKind.UINT8: np.uint8,
    ValueKind.UINT16: np.uint16,
    ValueKind.UINT32: np.uint32,
    ValueKind.UINT64: np.uint64,
}


def _numpy_kind(tp: type) -> ValueKind:
    """Map a numpy scalar type by dtype kind and size."""
    dtype = np.dtype(tp)
    if dtype.kind == 'b':
        return ValueKind.BOOL
    if dtype.kind in {'i', 'u'}:
        prefix = 'int' if dtype.kind == 'i' else 'uint'
        return ValueKind(f'{prefix}{dtype.itemsize * 8}')
    if dtype.kind == 'f' and dtype.itemsize <= 4:
        return ValueKind.FLOAT32
    if dtype.kind == 'f' and dtype.itemsize == 8:
        return ValueKind.FLOAT64
    if dtype.kind == 'U':
        return ValueKind.TEXT
    if dtype.kind == 'S':
        return ValueKind.BLOB
    raise TypeConversionError(f'Unsupported numpy type: {dtype}')


def _to_signed64(value: int) -> int:
    """Reinterpret an unsigned 64-bit pattern as signed."""
    return value - (1 << 64) if value >= (1 << 63) else value


# Value construction

def _coerce_bool(obj: Any, kind: ValueKind) -> bool:
    if isinstance(obj, (bool, np.bool_)):
        return bool(obj)
    if isinstance(obj, (int, np.integer)) and int(obj) in {0, 1}:
        return bool(obj)
    raise TypeConversionError(f'Cannot convert {obj!r} to {kind.name}')


def _coerce_integer(obj: Any, kind: ValueKind) -> int:
    if not isinstance(obj, (int, np.integer, np.bool_)):
        raise TypeConversionError(f'Cannot convert {type(obj).__name__} {obj!r} to {kind.name}')
    value = int(obj)
    low, high = kind.bounds
    if not low <= value <= high:
        raise TypeConversionError(f'{value} out of range for {kind.name} [{low}, {high}]')
    return value


def _coerce_float(obj: Any, kind: ValueKind) -> float:
    if isinstance(obj, (bool, np.bool_)) or not isinstance(obj, (int, float, np.integer, np.floating)):
        raise TypeConversionError(f'Cannot convert {type(obj).__name__} {obj!r} to {kind.name}')
    value = float(obj)
    if kind is ValueKind.FLOAT32:
        if math.isfinite(value) and abs(value) > FLOAT32_MAX:
            raise TypeConversionError(f'{value} out of range for FLOAT32')
        value = float(np.float32(value))
    return value


def _coerce_blob(obj: Any, kind: ValueKind) -> bytes:
    if not isinstance(obj, (bytes, bytearray, memoryview)):
        raise TypeConversionError(f'Cannot convert {type(obj).__name__} to {kind.name}')
    return bytes(obj)


def _coerce_text(obj: Any, kind: ValueKind) -> str:
    if not isinstance(obj, str):
        raise TypeConversionError(f'Cannot convert {type(obj).__name__} to {kind.name}')
    return str(obj)


def _coerce_timestamp(obj: Any, kind: ValueKind) -> datetime.date:
    if not isinstance(obj, (datetime.datetime, datetime.date)):
        raise TypeConversionError(f'Cannot convert {type(obj).__name__} to {kind.name}')
    return obj


def _coerce_array(obj: Any, kind: ValueKind) -> Any:
    if isinstance(obj, (str, bytes, bytearray)) or not isinstance(obj, (list, tuple, np.ndarray)):
        raise TypeConversionError(f'Cannot convert {type(obj).__name__} to {kind.name}')
    return obj


_COERCE: dict[ValueKind, Callable[[Any, ValueKind], Any]] = {
    ValueKind.BOOL: _coerce_bool,
    ValueKind.FLOAT32: _coerce_float,
    ValueKind.FLOAT64: _coerce_float,
    ValueKind.BLOB: _coerce_blob,
    ValueKind.TEXT: _coerce_text,
    ValueKind.TIMESTAMP: _coerce_timestamp,
    ValueKind.ARRAY: _coerce_array,
} | {kind: _coerce_integer for kind in _INTEGER_LAYOUT}


@dataclass(frozen=True, slots=True)
class Value:
    """A kind-tagged, non-null payload ready to bind.
    """
    kind: ValueKind
    payload: Any

    @classmethod
    def of(cls, obj: Any, kind: ValueKind | type | None = None) -> Self:
        """Build a Value, inferring the kind when not given.

        Integers are range checked against the kind's width; numpy scalars
        are unwrapped into Python values.

        >>> Value.of(np.uint8(200))
        Value(kind=<ValueKind.UINT8: 'uint8'>, payload=200)
        """
        if obj is None:
            raise TypeConversionError('None has no value kind; bind NULL instead')
        if isinstance(obj, Value):
            return obj if kind is None else cls.of(obj.payload, kind)
        kind = ValueKind.infer(obj) if kind is None else ValueKind.for_type(kind)
        return cls(kind, _COERCE[kind](obj, kind))


# Binding

def _bind_bool(handle, index, payload, **_):
    handle.bind_int32(index, 1 if payload else 0)


def _bind_int32(handle, index, payload, **_):
    handle.bind_int32(index, payload)


def _bind_int64(handle, index, payload, **_):
    handle.bind_int64(index, payload)


def _bind_uint64(handle, index, payload, **_):
    handle.bind_int64(index, _to_signed64(payload))


def _bind_double(handle, index, payload, **_):
    handle.bind_double(index, payload)


def _bind_blob(handle, index, payload, **_):
    handle.bind_blob(index, payload)


def _bind_text(handle, index, payload, **_):
    handle.bind_text(index, payload)


def _bind_timestamp(handle, index, payload, *, date_strategy, **_):
    converted = date_strategy.to_sql(payload)
    match date_strategy.storage:
        case StorageClass.INTEGER:
            handle.bind_int64(index, converted)
        case StorageClass.REAL:
            handle.bind_double(index, converted)
        case StorageClass.TEXT:
            handle.bind_text(index, converted)
        case _:
            raise TypeConversionError(f'Date strategy {date_strategy!r} has no scalar storage')


def _bind_array(handle, index, payload, *, array_strategy, **_):
    handle.bind_blob(index, array_strategy.dumps(payload))


_WRITERS: dict[ValueKind, Callable[..., None]] = {
    ValueKind.BOOL: _bind_bool,
    ValueKind.INT: _bind_int64,
    ValueKind.INT8: _bind_int32,
    ValueKind.INT16: _bind_int32,
    ValueKind.INT32: _bind_int32,
    ValueKind.INT64: _bind_int64,
    ValueKind.UINT8: _bind_int32,
    ValueKind.UINT16: _bind_int32,
    ValueKind.UINT32: _bind_int64,
    ValueKind.UINT64: _bind_uint64,
    ValueKind.FLOAT32: _bind_double,
    ValueKind.FLOAT64: _bind_double,
    ValueKind.BLOB: _bind_blob,
    ValueKind.TEXT: _bind_text,
    ValueKind.TIMESTAMP: _bind_timestamp,
    ValueKind.ARRAY: _bind_array,
}


def write_value(handle: 'PreparedHandle', index: int, value: Value, *,
                array_strategy: 'ArrayStrategy', date_strategy: 'DateStrategy') -> None:
    """Bind a Value to a 1-based parameter slot."""
    _WRITERS[value.kind](handle, index, value.payload,
                         array_strategy=array_strategy, date_strategy=date_strategy)


# Reading

def _read_bool(handle, index, kind, **_):
    return handle.column_int64(index) != 0


def _read_int(handle, index, kind, **_):
    value = handle.column_int64(index)
    low, high = kind.bounds
    if not low <= value <= high:
        raise TypeConversionError(f'Column {index} value {value} out of range for {kind.name}')
    return value


def _read_unsigned(handle, index, kind, **_):
    mask = (1 << kind.bits) - 1
    return _UNSIGNED_NUMPY[kind](handle.column_int64(index) & mask)


def _read_float32(handle, index, kind, **_):
    return np.float32(handle.column_double(index))


def _read_float64(handle, index, kind, **_):
    return handle.column_double(index)


def _read_blob(handle, index, kind, **_):
    return handle.column_blob(index)


def _read_text(handle, index, kind, **_):
    return handle.column_text(index)


def _read_timestamp(handle, index, kind, *, date_strategy, **_):
    match date_strategy.storage:
        case StorageClass.INTEGER:
            raw = handle.column_int64(index)
        case StorageClass.REAL:
            raw = handle.column_double(index)
        case _:
            raw = handle.column_text(index)
    return date_strategy.from_sql(raw)


def _read_array(handle, index, kind, *, array_strategy, **_):
    return array_strategy.loads(handle.column_blob(index))


_READERS: dict[ValueKind, Callable[..., Any]] = {
    ValueKind.BOOL: _read_bool,
    ValueKind.INT: _read_int,
    ValueKind.INT8: _read_int,
    ValueKind.INT16: _read_int,
    ValueKind.INT32: _read_int,
    ValueKind.INT64: _read_int,
    ValueKind.UINT8: _read_unsigned,
    ValueKind.UINT16: _read_unsigned,
    ValueKind.UINT32: _read_unsigned,
    ValueKind.UINT64: _read_unsigned,
    ValueKind.FLOAT32: _read_float32,
    ValueKind.FLOAT64: _read_float64,
    ValueKind.BLOB: _read_blob,
    ValueKind.TEXT: _read_text,
    ValueKind.TIMESTAMP: _read_timestamp,
    ValueKind.ARRAY: _read_array,
}

_INTEGER_ONLY = (StorageClass.INTEGER,)
_NUMERIC = (StorageClass.INTEGER, StorageClass.REAL)

_ACCEPTS: dict[ValueKind, tuple[StorageClass, ...]] = {
    ValueKind.FLOAT32: _NUMERIC,
    ValueKind.FLOAT64: _NUMERIC,
    ValueKind.BLOB: (StorageClass.BLOB,),
    ValueKind.TEXT: (StorageClass.TEXT,),
    ValueKind.ARRAY: (StorageClass.BLOB,),
} | {kind: _INTEGER_ONLY for kind in (ValueKind.BOOL, *_INTEGER_LAYOUT)}


def read_value(handle: 'PreparedHandle', index: int, kind: ValueKind, *,
               array_strategy: 'ArrayStrategy', date_strategy: 'DateStrategy') -> Any:
    """Read column `index` of the current row as `kind`.

    The storage class is checked first: NULL raises NullValueError, a class
    the kind cannot take raises TypeConversionError.
    """
    storage = handle.column_type(index)
    if storage is StorageClass.NULL:
        raise NullValueError(f'Column {index} is NULL; read it with the nullable accessor')
    if kind is ValueKind.TIMESTAMP:
        accepts = date_strategy.accepts
    else:
        accepts = _ACCEPTS[kind]
    if storage not in accepts:
        raise TypeConversionError(
            f'Column {index} holds {storage.name}, cannot read as {kind.name}')
    return _READERS[kind](handle, index, kind,
                          array_strategy=array_strategy, date_strategy=date_strategy)
