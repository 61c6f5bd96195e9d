"""
Date strategies: one timestamp stored in one scalar column.

Naive datetimes are taken to be UTC. Every strategy decodes to an aware
datetime in UTC.
"""
import logging
import math
from datetime import date, datetime, time, timezone

from dateutil.parser import isoparse
from rowcodec.exceptions import TypeConversionError
from rowcodec.strategy.base import DateFormat, DateStrategy, register_date_strategy
from rowcodec.types import StorageClass

logger = logging.getLogger(__name__)

UNIX_EPOCH_JULIAN_DAY = 2440587.5
SECONDS_PER_DAY = 86400.0


def as_utc(value: datetime | date) -> datetime:
    """Return an aware UTC datetime; plain dates are taken at midnight."""
    if not isinstance(value, datetime):
        if not isinstance(value, date):
            raise TypeConversionError(f'Expected a datetime, got {type(value).__name__}')
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _from_epoch(seconds: float) -> datetime:
    if not math.isfinite(seconds):
        raise TypeConversionError(f'Cannot convert {seconds} to a datetime')
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as err:
        raise TypeConversionError(f'Timestamp {seconds} out of range: {err}') from err


def to_julian_day(value: datetime | date) -> float:
    """Julian day number for an instant.

    >>> to_julian_day(datetime(1970, 1, 1, tzinfo=timezone.utc))
    2440587.5
    """
    return UNIX_EPOCH_JULIAN_DAY + as_utc(value).timestamp() / SECONDS_PER_DAY


def from_julian_day(julian_day: float) -> datetime:
    """Instant for a Julian day number."""
    return _from_epoch((julian_day - UNIX_EPOCH_JULIAN_DAY) * SECONDS_PER_DAY)


@register_date_strategy(DateFormat.INTEGER.value)
class IntegerDateStrategy(DateStrategy):
    """Whole seconds since the Unix epoch; sub-second precision is dropped.
    """
    storage = StorageClass.INTEGER
    accepts = (StorageClass.INTEGER, StorageClass.REAL)

    def to_sql(self, value: datetime) -> int:
        return int(as_utc(value).timestamp())

    def from_sql(self, value: int | float) -> datetime:
        return _from_epoch(int(value))


@register_date_strategy(DateFormat.REAL.value)
class JulianDayDateStrategy(DateStrategy):
    """Julian day number as a double.
    """
    storage = StorageClass.REAL
    accepts = (StorageClass.REAL, StorageClass.INTEGER)

    def to_sql(self, value: datetime) -> float:
        return to_julian_day(value)

    def from_sql(self, value: int | float) -> datetime:
        return from_julian_day(float(value))


@register_date_strategy(DateFormat.TEXT.value)
class TextDateStrategy(DateStrategy):
    """ISO-8601 text with millisecond precision and a `Z` suffix.
    """
    storage = StorageClass.TEXT
    accepts = (StorageClass.TEXT,)

    def to_sql(self, value: datetime) -> str:
        text = as_utc(value).isoformat(timespec='milliseconds')
        return text.replace('+00:00', 'Z')

    def from_sql(self, value: str) -> datetime:
        try:
            parsed = isoparse(value)
        except (ValueError, OverflowError) as err:
            raise TypeConversionError(f'Invalid ISO-8601 timestamp {value!r}: {err}') from err
        return as_utc(parsed)
