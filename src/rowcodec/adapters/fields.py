"""
Field descriptions for dataclass aggregates.

`describe(cls)` turns a dataclass into an ordered list of `FieldSpec`s that
the encode and decode bridges walk. Classification order matters: blobs and
timestamps are leaves even though they could be seen as sequences or
structured values.
"""
import dataclasses
import logging
import types
import typing
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Union, get_args, get_origin

import numpy as np
from rowcodec.exceptions import TypeConversionError
from rowcodec.types import ValueKind

logger = logging.getLogger(__name__)

__all__ = ['FieldKind', 'FieldSpec', 'classify', 'describe', 'is_aggregate']


class FieldKind(Enum):
    SCALAR = 'scalar'
    BLOB = 'blob'
    TIMESTAMP = 'timestamp'
    ARRAY = 'array'
    AGGREGATE = 'aggregate'
    WRAPPER = 'wrapper'
    UNSUPPORTED = 'unsupported'


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """How one field (or array element) maps onto a column.

    `element` describes array elements and is None for untyped arrays.
    """
    name: str
    kind: FieldKind
    type: Any
    optional: bool = False
    value_kind: ValueKind | None = None
    element: 'FieldSpec | None' = None
    has_default: bool = False


def is_aggregate(tp: Any) -> bool:
    return isinstance(tp, type) and dataclasses.is_dataclass(tp)


def _strip_optional(tp: Any) -> tuple[Any, bool]:
    """Unwrap `T | None` / `Optional[T]`."""
    if get_origin(tp) not in {Union, types.UnionType}:
        return tp, False
    args = get_args(tp)
    remaining = [a for a in args if a is not type(None)]
    if len(remaining) != 1:
        return tp, len(remaining) < len(args)
    return remaining[0], len(remaining) < len(args)


def _element_type(tp: Any) -> Any:
    """Element type of `list[T]` / `tuple[T, ...]`; None when untyped or mixed."""
    args = get_args(tp)
    if not args:
        return None
    if len(args) == 2 and args[1] is Ellipsis:
        return args[0]
    if all(a == args[0] for a in args):
        return args[0]
    return None


def classify(tp: Any, name: str = '', has_default: bool = False) -> FieldSpec:
    """Build the FieldSpec for a single annotation."""
    tp, optional = _strip_optional(tp)
    origin = get_origin(tp)

    if origin in {Union, types.UnionType}:
        return FieldSpec(name, FieldKind.UNSUPPORTED, tp, optional, has_default=has_default)

    if origin in {list, tuple} or tp in {list, tuple} or tp is np.ndarray:
        elem = _element_type(tp)
        element = classify(elem, name) if elem not in {None, Any} else None
        return FieldSpec(name, FieldKind.ARRAY, tp, optional, ValueKind.ARRAY, element, has_default)

    if isinstance(tp, type) and issubclass(tp, Enum):
        members = list(tp)
        try:
            value_kind = ValueKind.infer(members[0].value) if members else ValueKind.TEXT
        except TypeConversionError:
            return FieldSpec(name, FieldKind.UNSUPPORTED, tp, optional, has_default=has_default)
        return FieldSpec(name, FieldKind.WRAPPER, tp, optional, value_kind, has_default=has_default)

    if is_aggregate(tp):
        return FieldSpec(name, FieldKind.AGGREGATE, tp, optional, has_default=has_default)

    try:
        value_kind = ValueKind.for_type(tp)
    except TypeConversionError:
        return FieldSpec(name, FieldKind.UNSUPPORTED, tp, optional, has_default=has_default)

    if value_kind is ValueKind.UINT64:
        kind = FieldKind.UNSUPPORTED
    elif value_kind is ValueKind.BLOB:
        kind = FieldKind.BLOB
    elif value_kind is ValueKind.TIMESTAMP:
        kind = FieldKind.TIMESTAMP
    else:
        kind = FieldKind.SCALAR
    return FieldSpec(name, kind, tp, optional, value_kind, has_default=has_default)


@lru_cache(maxsize=256)
def describe(cls: type) -> tuple[FieldSpec, ...]:
    """Ordered field specs of a dataclass, skipping `init=False` fields."""
    if not is_aggregate(cls):
        raise TypeConversionError(f'{cls!r} is not a dataclass')
    hints = typing.get_type_hints(cls)
    specs = []
    for field in dataclasses.fields(cls):
        if not field.init:
            continue
        has_default = (field.default is not dataclasses.MISSING
                       or field.default_factory is not dataclasses.MISSING)
        specs.append(classify(hints.get(field.name, field.type), field.name, has_default))
    logger.debug(f'Described {cls.__name__}: {[(s.name, s.kind.value) for s in specs]}')
    return tuple(specs)
