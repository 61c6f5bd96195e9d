"""
Generic encode bridge: dataclass instance -> statement parameters.

Mirror of the decoder. Each field binds by name; names the statement does
not declare are skipped by the binder. Absent values bind NULL rather than
leaving the slot untouched.
"""
import dataclasses
import logging
from typing import TYPE_CHECKING, Any

import numpy as np
from rowcodec.adapters.fields import FieldKind, FieldSpec, classify, describe
from rowcodec.exceptions import CodingError, EncodingError, TypeConversionError
from rowcodec.types import Value, ValueKind

if TYPE_CHECKING:
    from rowcodec.statement import Statement

logger = logging.getLogger(__name__)

__all__ = ['StatementEncoder', 'encode']


class StatementEncoder:
    """Binds dataclass fields into a statement, tracking the field path.
    """

    def __init__(self, statement: 'Statement') -> None:
        self.statement = statement
        self._keys: list[str] = []

    @property
    def coding_path(self) -> list[str]:
        return list(self._keys)

    def _current_key(self) -> str:
        if not self._keys:
            raise EncodingError('Encoding requires a field key but the context stack is empty')
        return self._keys[-1]

    def encode(self, obj: Any) -> None:
        """Bind every field of dataclass instance `obj`."""
        if not dataclasses.is_dataclass(obj) or isinstance(obj, type):
            raise EncodingError(f'Cannot encode {type(obj).__name__}; expected a dataclass instance',
                                self._keys)
        for spec in describe(type(obj)):
            self._keys.append(spec.name)
            try:
                self._encode_field(spec, getattr(obj, spec.name))
            finally:
                self._keys.pop()

    def encode_value(self, value: Any, tp: Any = None) -> None:
        """Bind a single leaf at the current key.

        The declared type defaults to the runtime type of `value`.
        """
        key = self._current_key()
        if tp is None:
            if value is None:
                self.statement.bind(key, None)
                return
            tp = type(value)
        self._encode_field(classify(tp, key), value)

    def _encode_field(self, spec: FieldSpec, value: Any) -> None:
        if spec.kind is FieldKind.AGGREGATE:
            if value is None:
                self._encode_nulls(spec.type)
            else:
                self.encode(value)
            return

        key = self._current_key()
        if spec.kind is FieldKind.UNSUPPORTED:
            if spec.value_kind is ValueKind.UINT64:
                raise EncodingError('Encoding UInt64 is not supported', self._keys)
            raise EncodingError(f'Encoding {spec.type!r} is not supported', self._keys)

        if value is None:
            self.statement.bind(key, None)
            return

        try:
            self.statement.bind(key, self._to_value(value, spec))
        except CodingError:
            raise
        except TypeConversionError as err:
            raise EncodingError(str(err), self._keys) from err

    def _to_value(self, value: Any, spec: FieldSpec) -> Value:
        if spec.kind is FieldKind.WRAPPER:
            raw = value.value if isinstance(value, spec.type) else value
            return Value.of(raw, spec.value_kind)
        if spec.kind is FieldKind.ARRAY:
            return Value(ValueKind.ARRAY, self._normalize_array(value, spec))
        return Value.of(value, spec.value_kind)

    def _normalize_array(self, items: Any, spec: FieldSpec) -> list:
        if isinstance(items, np.ndarray):
            items = items.tolist()
        if isinstance(items, (str, bytes, bytearray)) or not isinstance(items, (list, tuple)):
            raise EncodingError(f'Expected a sequence, got {type(items).__name__}', self._keys)
        result = []
        for i, item in enumerate(items):
            self._keys.append(str(i))
            try:
                result.append(self._normalize_element(item, spec.element))
            finally:
                self._keys.pop()
        return result

    def _normalize_element(self, item: Any, spec: FieldSpec | None) -> Any:
        if item is None:
            return None
        if spec is None:
            return item
        match spec.kind:
            case FieldKind.ARRAY:
                return self._normalize_array(item, spec)
            case FieldKind.WRAPPER:
                return item.value if isinstance(item, spec.type) else item
            case FieldKind.SCALAR | FieldKind.BLOB | FieldKind.TIMESTAMP:
                try:
                    return Value.of(item, spec.value_kind).payload
                except TypeConversionError as err:
                    raise EncodingError(str(err), self._keys) from err
            case _:
                raise EncodingError(f'Array elements of type {spec.type!r} are not supported',
                                    self._keys)

    def _encode_nulls(self, cls: type) -> None:
        """Bind NULL to every leaf field of an absent nested aggregate."""
        for spec in describe(cls):
            self._keys.append(spec.name)
            try:
                if spec.kind is FieldKind.AGGREGATE:
                    self._encode_nulls(spec.type)
                else:
                    self.statement.bind(spec.name, None)
            finally:
                self._keys.pop()


def encode(obj: Any, statement: 'Statement') -> None:
    """Bind the fields of dataclass instance `obj` into `statement` by name.

    Raises EncodingError naming the field path for unsupported field types
    or values that do not fit the declared type.
    """
    StatementEncoder(statement).encode(obj)
