"""
Read-only view over the current result row of a statement.

A Row holds no data: every access reads through its statement. It is only
valid until the statement's next step, reset or finalize; later access
raises SequenceError.
"""
import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from rowcodec.adapters.decoder import RowDecoder
from rowcodec.exceptions import UnknownKeyError
from rowcodec.types import StorageClass, ValueKind

from libb import attrdict

if TYPE_CHECKING:
    from rowcodec.statement import Statement

logger = logging.getLogger(__name__)

__all__ = ['Row']


class Row:
    """Current row of a statement.

    Keys are column names or 0-based column indices. Typed reads take a
    `ValueKind` or a Python/numpy type:

        row.get('b', str)
        row.get_or_none(3, ValueKind.INT32)
    """

    __slots__ = ('_statement', '_generation')

    def __init__(self, statement: 'Statement', generation: int) -> None:
        self._statement = statement
        self._generation = generation

    @property
    def statement(self) -> 'Statement':
        return self._statement

    def _index(self, key: str | int) -> int:
        self._statement._ensure_current(self._generation)
        if isinstance(key, str):
            index = self._statement.columns.get(key)
            if index is None:
                raise UnknownKeyError(f'Unknown column {key!r}; available: {self.keys()}')
            return index
        if isinstance(key, int) and not isinstance(key, bool):
            if not 0 <= key < self._statement.column_count:
                raise UnknownKeyError(f'Column index {key} out of range '
                                      f'(0..{self._statement.column_count - 1})')
            return key
        raise UnknownKeyError(f'Column key must be str or int, got {type(key).__name__}')

    @property
    def columns(self) -> list[str]:
        self._statement._ensure_current(self._generation)
        return self._statement.column_names

    def keys(self) -> list[str]:
        return self.columns

    def storage_class(self, key: str | int) -> StorageClass:
        return self._statement._handle.column_type(self._index(key))

    def is_null(self, key: str | int) -> bool:
        return self.storage_class(key) is StorageClass.NULL

    def get(self, key: str | int, kind: ValueKind | type) -> Any:
        """Typed read of a non-null column; NULL raises NullValueError."""
        return self._statement._read(self._index(key), ValueKind.for_type(kind))

    def get_or_none(self, key: str | int, kind: ValueKind | type) -> Any:
        """Typed read returning None for NULL."""
        index = self._index(key)
        if self._statement._handle.column_type(index) is StorageClass.NULL:
            return None
        return self._statement._read(index, ValueKind.for_type(kind))

    def __getitem__(self, key: str | int) -> Any:
        """Raw engine value without conversion."""
        return self._statement._handle.column_value(self._index(key))

    def __contains__(self, key: object) -> bool:
        self._statement._ensure_current(self._generation)
        if isinstance(key, str):
            return key in self._statement.columns
        if isinstance(key, int) and not isinstance(key, bool):
            return 0 <= key < self._statement.column_count
        return False

    def __len__(self) -> int:
        self._statement._ensure_current(self._generation)
        return self._statement.column_count

    def __iter__(self) -> Iterator[Any]:
        return (self[i] for i in range(len(self)))

    def to_dict(self) -> attrdict:
        """Raw values keyed by column name."""
        return attrdict(dict(zip(self.columns, self, strict=True)))

    def decode(self, cls: type) -> Any:
        """Decode this row into an instance of dataclass `cls`."""
        return RowDecoder(self).decode(cls)

    def __repr__(self) -> str:
        if not self._statement._is_current(self._generation):
            return '<Row (stale)>'
        return f'<Row {dict(self.to_dict())!r}>'
