"""
Generic decode bridge: row columns -> dataclass instance.

Fields are read by name from the row. Nested dataclasses recurse with the
field name pushed onto the context stack; their own fields resolve against
the same row by their own names. Arrays are one blob column deserialized
through the statement's array strategy, then coerced element by element.
"""
import datetime
import logging
from typing import TYPE_CHECKING, Any

import numpy as np
from rowcodec.adapters.fields import FieldKind, FieldSpec, classify, describe
from rowcodec.exceptions import CodingError, DecodingError, TypeConversionError
from rowcodec.exceptions import UnknownKeyError
from rowcodec.types import Value, ValueKind

if TYPE_CHECKING:
    from rowcodec.row import Row

logger = logging.getLogger(__name__)

__all__ = ['RowDecoder', 'decode']

_MISSING = object()


class RowDecoder:
    """Decodes dataclasses from one row, tracking the field path.
    """

    def __init__(self, row: 'Row') -> None:
        self.row = row
        self._keys: list[str] = []

    @property
    def coding_path(self) -> list[str]:
        return list(self._keys)

    def _current_key(self) -> str:
        if not self._keys:
            raise DecodingError('Decoding requires a field key but the context stack is empty')
        return self._keys[-1]

    def decode(self, cls: type) -> Any:
        """Build an instance of dataclass `cls` from the row."""
        values = {}
        for spec in describe(cls):
            self._keys.append(spec.name)
            try:
                result = self._decode_field(spec)
            finally:
                self._keys.pop()
            if result is not _MISSING:
                values[spec.name] = result
        return cls(**values)

    def decode_value(self, tp: Any) -> Any:
        """Decode a single leaf of type `tp` at the current key."""
        return self._decode_field(classify(tp, self._current_key()))

    def _decode_field(self, spec: FieldSpec) -> Any:
        if spec.kind is FieldKind.AGGREGATE:
            if spec.optional and not self._any_present(spec.type):
                return None
            return self.decode(spec.type)

        key = self._current_key()
        if spec.kind is FieldKind.UNSUPPORTED:
            if spec.value_kind is ValueKind.UINT64:
                raise DecodingError('Decoding UInt64 is not supported', self._keys)
            raise DecodingError(f'Decoding {spec.type!r} is not supported', self._keys)

        if key not in self.row:
            if spec.optional:
                return None
            if spec.has_default:
                return _MISSING
            raise UnknownKeyError(f"Column {key!r} not found for field {'.'.join(self._keys)}")

        try:
            return self._decode_leaf(key, spec)
        except CodingError:
            raise
        except TypeConversionError as err:
            raise DecodingError(str(err), self._keys) from err

    def _decode_leaf(self, key: str, spec: FieldSpec) -> Any:
        if spec.optional:
            raw = self.row.get_or_none(key, spec.value_kind)
            if raw is None:
                return None
        else:
            raw = self.row.get(key, spec.value_kind)

        if spec.kind is FieldKind.WRAPPER:
            try:
                return spec.type(raw)
            except ValueError as err:
                raise DecodingError(f'{raw!r} is not a valid {spec.type.__name__}', self._keys) from err
        if spec.kind is FieldKind.ARRAY:
            return self._coerce_array(raw, spec)
        return _as_declared(raw, spec)

    def _coerce_array(self, items: Any, spec: FieldSpec) -> Any:
        if not isinstance(items, list):
            raise DecodingError(f'Expected an array, got {type(items).__name__}', self._keys)
        result = []
        for i, item in enumerate(items):
            self._keys.append(str(i))
            try:
                result.append(self._coerce_element(item, spec.element))
            finally:
                self._keys.pop()
        if spec.type is np.ndarray:
            return np.array(result)
        if spec.type is tuple or getattr(spec.type, '__origin__', None) is tuple:
            return tuple(result)
        return result

    def _coerce_element(self, item: Any, spec: FieldSpec | None) -> Any:
        if spec is None or item is None:
            return item
        match spec.kind:
            case FieldKind.ARRAY:
                return self._coerce_array(item, spec)
            case FieldKind.WRAPPER:
                try:
                    return spec.type(item)
                except ValueError as err:
                    raise DecodingError(f'{item!r} is not a valid {spec.type.__name__}',
                                        self._keys) from err
            case FieldKind.SCALAR | FieldKind.BLOB | FieldKind.TIMESTAMP:
                try:
                    payload = Value.of(item, spec.value_kind).payload
                except TypeConversionError as err:
                    raise DecodingError(str(err), self._keys) from err
                return _as_declared(payload, spec)
            case _:
                raise DecodingError(f'Array elements of type {spec.type!r} are not supported',
                                    self._keys)

    def _any_present(self, cls: type) -> bool:
        """True when any leaf column of `cls` exists in the row and is not NULL."""
        for spec in describe(cls):
            if spec.kind is FieldKind.AGGREGATE:
                if self._any_present(spec.type):
                    return True
            elif spec.name in self.row and not self.row.is_null(spec.name):
                return True
        return False


def _as_declared(value: Any, spec: FieldSpec) -> Any:
    """Return numpy scalars and plain dates when the field was declared with them."""
    if spec.type is datetime.date and isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(spec.type, type) and issubclass(spec.type, np.generic) \
            and not isinstance(value, spec.type):
        return spec.type(value)
    return value


def decode(cls: type, row: 'Row') -> Any:
    """Decode `row` into an instance of dataclass `cls`.

    Raises DecodingError naming the field path for unsupported field types
    or values that do not fit the declared type.
    """
    return RowDecoder(row).decode(cls)
