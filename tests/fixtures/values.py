"""
Boundary values shared by the round-trip tests.
"""
import numpy as np
import pytest

INTEGER_BOUNDS = {
    'int8': (np.int8, -128, 127),
    'int16': (np.int16, -32768, 32767),
    'int32': (np.int32, -2147483648, 2147483647),
    'int64': (np.int64, -9223372036854775808, 9223372036854775807),
    'uint8': (np.uint8, 0, 255),
    'uint16': (np.uint16, 0, 65535),
    'uint32': (np.uint32, 0, 4294967295),
    'uint64': (np.uint64, 0, 18446744073709551615),
}

UNICODE_TEXT = '👨‍👩‍👧‍👦 café naïve Ångström 🇺🇸 ﷽ 日本語'


@pytest.fixture
def integer_bounds():
    """Map of kind name -> (numpy type, min, max)"""
    return dict(INTEGER_BOUNDS)


@pytest.fixture
def unicode_text():
    """Text mixing combined emoji sequences, accents and non-Latin scripts"""
    return UNICODE_TEXT
