"""
Array strategies: the whole sequence is serialized into one blob column.

Elements may be booleans, integers, floats, strings, None, or further
sequences. The binary property list format also carries bytes.
"""
import json
import logging
import plistlib
import struct
from collections.abc import Sequence
from typing import Any

import numpy as np
from rowcodec.exceptions import TypeConversionError
from rowcodec.strategy.base import ArrayFormat, ArrayStrategy
from rowcodec.strategy.base import register_array_strategy

logger = logging.getLogger(__name__)


def normalize_items(items: Any) -> Any:
    """Convert tuples, numpy arrays and numpy scalars into plain Python values.

    Nested sequences are normalized recursively. Strings and bytes are
    leaves, never sequences.
    """
    if isinstance(items, np.ndarray):
        return items.tolist()
    if isinstance(items, np.generic):
        return items.item()
    if isinstance(items, str):
        return items
    if isinstance(items, (bytes, bytearray, memoryview)):
        return bytes(items)
    if isinstance(items, dict):
        return {str(k): normalize_items(v) for k, v in items.items()}
    if isinstance(items, Sequence):
        return [normalize_items(item) for item in items]
    return items


def _require_sequence(items: Any) -> list:
    normalized = normalize_items(items)
    if not isinstance(normalized, list):
        raise TypeConversionError(f'Array value must be a sequence, got {type(items).__name__}')
    return normalized


@register_array_strategy(ArrayFormat.BPLIST.value)
class BinaryPlistArrayStrategy(ArrayStrategy):
    """Binary property list encoding (the default).
    """

    def dumps(self, items: Any) -> bytes:
        try:
            return plistlib.dumps(_require_sequence(items), fmt=plistlib.FMT_BINARY,
                                  sort_keys=False)
        except (TypeError, OverflowError, ValueError) as err:
            raise TypeConversionError(f'Cannot encode array as binary plist: {err}') from err

    def loads(self, data: bytes) -> list:
        try:
            result = plistlib.loads(bytes(data), fmt=plistlib.FMT_BINARY)
        except (plistlib.InvalidFileException, ValueError, IndexError, KeyError,
                TypeError, struct.error) as err:
            raise TypeConversionError(f'Cannot decode binary plist array: {err}') from err
        if not isinstance(result, list):
            raise TypeConversionError(f'Binary plist holds {type(result).__name__}, expected an array')
        return result


@register_array_strategy(ArrayFormat.JSON.value)
class JsonArrayStrategy(ArrayStrategy):
    """Compact UTF-8 JSON encoding.
    """

    def dumps(self, items: Any) -> bytes:
        try:
            text = json.dumps(_require_sequence(items), separators=(',', ':'),
                              ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as err:
            raise TypeConversionError(f'Cannot encode array as JSON: {err}') from err
        return text.encode('utf-8')

    def loads(self, data: bytes) -> list:
        try:
            result = json.loads(bytes(data).decode('utf-8'))
        except ValueError as err:
            raise TypeConversionError(f'Cannot decode JSON array: {err}') from err
        if not isinstance(result, list):
            raise TypeConversionError(f'JSON holds {type(result).__name__}, expected an array')
        return result
