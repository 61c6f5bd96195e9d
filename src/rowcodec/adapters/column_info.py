"""
Parameter and column metadata for a prepared statement.

Resolves two name tables from a prepared handle:
- bindable parameter name (prefix stripped) -> 1-based slot index
- output column name -> 0-based column index

Both are computed once per prepare and never on reset. Duplicate names keep
the last index seen and log a warning.
"""
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rowcodec.sql import BIND_PREFIXES

if TYPE_CHECKING:
    from rowcodec.engine import PreparedHandle

logger = logging.getLogger(__name__)

__all__ = ['BindSlot', 'Column', 'resolve_bindables', 'resolve_columns']


@dataclass(frozen=True, slots=True)
class BindSlot:
    """Named parameter slot; `name` has no prefix, `index` starts at 1."""
    name: str
    index: int


@dataclass(frozen=True, slots=True)
class Column:
    """Result column; `index` starts at 0."""
    name: str
    index: int

    @staticmethod
    def get_names(columns: list['Column']) -> list[str]:
        """Extract column names in index order."""
        return [col.name for col in sorted(columns, key=lambda c: c.index)]


def bind_slots(handle: 'PreparedHandle') -> list[BindSlot]:
    """Named slots of a prepared handle in slot order.

    Anonymous `?` slots and names with an unrecognized prefix are skipped;
    they stay reachable by position only.
    """
    slots = []
    for index in range(1, handle.parameter_count + 1):
        name = handle.parameter_name(index)
        if not name or name[0] not in BIND_PREFIXES:
            continue
        slots.append(BindSlot(name[1:], index))
    return slots


def columns(handle: 'PreparedHandle') -> list[Column]:
    """Result columns of a prepared handle in column order."""
    return [Column(handle.column_name(i), i) for i in range(handle.column_count)]


def resolve_bindables(handle: 'PreparedHandle') -> dict[str, int]:
    """Map bindable names to slot indices."""
    bindables: dict[str, int] = {}
    for slot in bind_slots(handle):
        if slot.name in bindables:
            logger.warning(f'Duplicate parameter name {slot.name!r}: slot {bindables[slot.name]} '
                           f'shadowed by slot {slot.index} in {handle.sql!r}')
        bindables[slot.name] = slot.index
    return bindables


def resolve_columns(handle: 'PreparedHandle') -> dict[str, int]:
    """Map column names to column indices."""
    resolved: dict[str, int] = {}
    for col in columns(handle):
        if col.name in resolved:
            logger.warning(f'Duplicate column name {col.name!r}: column {resolved[col.name]} '
                           f'shadowed by column {col.index} in {handle.sql!r}')
        resolved[col.name] = col.index
    return resolved
