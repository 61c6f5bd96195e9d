"""
Prepared statement handle over the sqlite3 driver.

`PreparedHandle` gives the value-mapping layer the narrow engine interface
it consumes: parameter and column metadata, per-storage-class bind and
column primitives, and step/reset/finalize. Placeholders are rewritten to
numbered `?NNN` slots so binding is always positional at the driver level.

Column names of queries (SELECT, VALUES, WITH, EXPLAIN) are discovered at
prepare time by compiling them with `LIMIT 0` appended, which evaluates no
rows. Other statements, and queries that already carry a top-level LIMIT, are
syntax checked with EXPLAIN instead and report their columns after the first
step.
"""
import logging
import sqlite3
import time
from enum import Enum, auto
from functools import wraps
from typing import TYPE_CHECKING, Any

from rowcodec.exceptions import EngineError, SequenceError, TypeConversionError
from rowcodec.sql import leading_keyword, parse_parameters, zero_row_query
from rowcodec.types import StorageClass

if TYPE_CHECKING:
    from rowcodec.connection import ConnectionWrapper

logger = logging.getLogger(__name__)

__all__ = ['PreparedHandle', 'StepCode', 'dumpsql']

INT32_MIN, INT32_MAX = -(1 << 31), (1 << 31) - 1
INT64_MIN, INT64_MAX = -(1 << 63), (1 << 63) - 1

_BUSY_CODES = frozenset({sqlite3.SQLITE_BUSY, sqlite3.SQLITE_LOCKED})


class StepCode(Enum):
    """Outcome of advancing a prepared statement by one step."""
    ROW = auto()
    DONE = auto()
    BUSY = auto()
    MISUSE = auto()
    ERROR = auto()


def dumpsql(func):
    """Decorator for logging statement execution, timing and errors."""
    @wraps(func)
    def wrapper(self, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{self.query}\nargs: {self.bindings}')
        try:
            return func(self, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{self.query}\nargs: {self.bindings}')
            raise
        finally:
            elapsed = time.time() - start
            if self.connwrapper is not None:
                self.connwrapper.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


def _step_code_for(err: sqlite3.Error) -> StepCode:
    """Map a driver exception to the step outcome SQLite would report."""
    if isinstance(err, sqlite3.ProgrammingError):
        return StepCode.MISUSE
    code = getattr(err, 'sqlite_errorcode', None)
    if code is not None and code & 0xFF in _BUSY_CODES:
        return StepCode.BUSY
    return StepCode.ERROR


class PreparedHandle:
    """One compiled statement with its bound values and current row.

    Parameter indices are 1-based, column indices 0-based.
    """

    def __init__(self, connwrapper: 'ConnectionWrapper', sql: str) -> None:
        self.connwrapper = connwrapper
        self.sql = sql
        parsed = parse_parameters(sql)
        self.query = parsed.sql
        self._names = parsed.names
        self.bindings: list[Any] = [None] * parsed.parameter_count
        self._description: list[str] | None = None
        self._cursor: sqlite3.Cursor | None = None
        self._row: tuple | None = None
        self._started = False
        self.error: EngineError | None = None
        self.finalized = False
        self._probe()

    @property
    def dbapi_connection(self) -> sqlite3.Connection:
        return self.connwrapper.dbapi_connection

    def _probe(self) -> None:
        """Validate the statement and discover its result columns.
        """
        conn = self.dbapi_connection
        if self._probe_columns(conn):
            return

        cursor = conn.cursor()
        try:
            cursor.execute(f'EXPLAIN {self.query}', self.bindings)
        except sqlite3.Error as err:
            raise EngineError.from_sqlite(err) from err
        finally:
            cursor.close()

    def _probe_columns(self, conn: sqlite3.Connection) -> bool:
        """Compile the query in a form that yields no rows and read its columns.

        EXPLAIN only lists the program, so it runs as is. Returns False for
        other statements and when the engine refuses the rewrite; the caller
        then falls back to a syntax check and columns are learned on the
        first step.
        """
        if leading_keyword(self.query) == 'EXPLAIN':
            probe = self.query
        else:
            probe = zero_row_query(self.query)
        if probe is None:
            return False

        cursor = conn.cursor()
        try:
            cursor.execute(probe, self.bindings)
            self._description = [d[0] for d in cursor.description or ()]
            return True
        except sqlite3.Error as err:
            logger.debug(f'Column probe skipped: {err}')
            return False
        finally:
            cursor.close()

    # metadata

    @property
    def parameter_count(self) -> int:
        return len(self._names)

    def parameter_name(self, index: int) -> str | None:
        """Raw name of slot `index` including its prefix, None if anonymous."""
        self._check_slot(index)
        return self._names[index - 1]

    @property
    def columns_known(self) -> bool:
        return self._description is not None

    @property
    def column_count(self) -> int:
        return len(self._description or ())

    def column_name(self, index: int) -> str:
        return (self._description or [])[index]

    # binding

    def _check_slot(self, index: int) -> None:
        if not 1 <= index <= len(self._names):
            raise EngineError(f'Parameter index {index} out of range (1..{len(self._names)})',
                              code=sqlite3.SQLITE_RANGE, name='SQLITE_RANGE')

    def _bind(self, index: int, value: Any) -> None:
        self._check_slot(index)
        self.bindings[index - 1] = value

    def bind_null(self, index: int) -> None:
        self._bind(index, None)

    def bind_int32(self, index: int, value: int) -> None:
        if not INT32_MIN <= value <= INT32_MAX:
            raise TypeConversionError(f'{value} does not fit a 32-bit integer')
        self._bind(index, int(value))

    def bind_int64(self, index: int, value: int) -> None:
        if not INT64_MIN <= value <= INT64_MAX:
            raise TypeConversionError(f'{value} does not fit a 64-bit integer')
        self._bind(index, int(value))

    def bind_double(self, index: int, value: float) -> None:
        self._bind(index, float(value))

    def bind_blob(self, index: int, value: bytes) -> None:
        self._bind(index, bytes(value))

    def bind_text(self, index: int, value: str) -> None:
        self._bind(index, str(value))

    def clear_bindings(self) -> None:
        self.bindings = [None] * len(self._names)

    # execution

    def step(self) -> StepCode:
        """Advance by one result row.

        The first step executes the statement with the current bindings.
        Stepping after DONE starts a fresh execution, as SQLite does.
        """
        if self.finalized:
            self.error = EngineError('Statement has been finalized',
                                     code=sqlite3.SQLITE_MISUSE, name='SQLITE_MISUSE')
            return StepCode.MISUSE
        self.error = None
        try:
            if not self._started:
                self._execute()
            return self._fetch()
        except sqlite3.Error as err:
            self.error = EngineError.from_sqlite(err)
            self._close_cursor()
            self._started = False
            return _step_code_for(err)

    @dumpsql
    def _execute(self) -> None:
        cursor = self.dbapi_connection.cursor()
        try:
            cursor.execute(self.query, self.bindings)
        except sqlite3.Error:
            cursor.close()
            raise
        self._cursor = cursor
        self._started = True
        if self._description is None:
            self._description = [d[0] for d in cursor.description or ()]

    def _fetch(self) -> StepCode:
        row = self._cursor.fetchone()
        if row is None:
            self._row = None
            self._close_cursor()
            self._started = False
            return StepCode.DONE
        self._row = row
        return StepCode.ROW

    def _close_cursor(self) -> None:
        self._row = None
        if self._cursor is not None:
            self._cursor.close()
            self._cursor = None

    def reset(self) -> None:
        """Rewind to the pre-execution state, keeping bindings."""
        self._close_cursor()
        self._started = False
        self.error = None

    def finalize(self) -> None:
        if self.finalized:
            return
        self._close_cursor()
        self.finalized = True
        logger.debug(f'Finalized statement: {self.sql}')

    # column access

    @property
    def has_row(self) -> bool:
        return self._row is not None

    def _value(self, index: int) -> Any:
        if self._row is None:
            raise SequenceError('No current row; step the statement first')
        return self._row[index]

    def column_type(self, index: int) -> StorageClass:
        return StorageClass.of(self._value(index))

    def column_value(self, index: int) -> Any:
        return self._value(index)

    def column_int64(self, index: int) -> int:
        value = self._value(index)
        if isinstance(value, (bytes, str)):
            raise TypeConversionError(f'Column {index} is not numeric')
        return int(value or 0)

    def column_double(self, index: int) -> float:
        value = self._value(index)
        if isinstance(value, (bytes, str)):
            raise TypeConversionError(f'Column {index} is not numeric')
        return float(value or 0.0)

    def column_blob(self, index: int) -> bytes:
        value = self._value(index)
        if value is None:
            return b''
        if isinstance(value, str):
            return value.encode('utf-8')
        if isinstance(value, (int, float)):
            return str(value).encode('utf-8')
        return bytes(value)

    def column_text(self, index: int) -> str:
        value = self._value(index)
        if value is None:
            return ''
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value).decode('utf-8', errors='replace')
        return str(value)

    def __repr__(self) -> str:
        state = 'finalized' if self.finalized else ('running' if self._started else 'ready')
        return f'<PreparedHandle {state} {self.sql!r}>'
