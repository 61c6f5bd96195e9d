"""
Prepared statement: metadata, binding, stepping and strategy settings.

A Statement owns its prepared handle. Bindable and column name tables are
resolved once when it is created and never on reset. Array and date
strategies are per statement, so two statements on one connection can use
different encodings.
"""
import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Self

from rowcodec.adapters.column_info import Column, columns, resolve_bindables
from rowcodec.adapters.column_info import resolve_columns
from rowcodec.adapters.encoder import StatementEncoder
from rowcodec.engine import PreparedHandle, StepCode
from rowcodec.exceptions import EngineError, SequenceError, ValidationError
from rowcodec.row import Row
from rowcodec.strategy import ArrayFormat, ArrayStrategy, DateFormat, DateStrategy
from rowcodec.strategy import get_array_strategy, get_date_strategy
from rowcodec.types import Value, ValueKind, read_value, write_value

if TYPE_CHECKING:
    from rowcodec.connection import ConnectionWrapper

logger = logging.getLogger(__name__)

__all__ = ['Statement', 'StepResult']


@dataclass(slots=True)
class StepResult:
    """Outcome of one step. `row` is set for ROW, `error` for failures."""
    kind: StepCode
    row: Row | None = None
    error: EngineError | None = None

    @property
    def is_row(self) -> bool:
        return self.kind is StepCode.ROW

    @property
    def is_done(self) -> bool:
        return self.kind is StepCode.DONE


class Statement:
    """Prepared query bound to a connection.

    Examples
        with cn.prepare('insert into foo (b, d) values (:b, :d)') as st:
            st.bind('b', 'text')
            st.bind('d', 42)
            st.perform()
    """

    def __init__(self, connection: 'ConnectionWrapper', query: str) -> None:
        self.connection = connection
        self.query = query
        self._handle = PreparedHandle(connection, query)
        self._bindables = resolve_bindables(self._handle)
        self._columns: dict[str, int] = {}
        self._columns_resolved = False
        self._resolve_columns()
        options = connection.options
        self._array_strategy = get_array_strategy(options.array_strategy)
        self._date_strategy = get_date_strategy(options.date_strategy)
        self._generation = 0
        self._executing = False
        logger.debug(f'Prepared statement: {query!r} bindables={self._bindables} '
                     f'columns={self._columns}')

    def _resolve_columns(self) -> None:
        if self._columns_resolved or not self._handle.columns_known:
            return
        self._columns = resolve_columns(self._handle)
        self._columns_resolved = True

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.finalize()

    def __iter__(self) -> Iterator[Row]:
        """Yield rows until the statement is done; engine errors raise."""
        while True:
            result = self.step()
            if result.kind is StepCode.ROW:
                yield result.row
            elif result.kind is StepCode.DONE:
                return
            else:
                raise result.error

    def __repr__(self) -> str:
        return f'<Statement {self.query!r}{" (finalized)" if self.is_finalized else ""}>'

    # metadata

    @property
    def sql(self) -> str:
        """Query text as sent to the engine."""
        return self._handle.query

    @property
    def bindables(self) -> Mapping[str, int]:
        return MappingProxyType(self._bindables)

    @property
    def bindable_names(self) -> list[str]:
        return list(self._bindables)

    @property
    def parameter_count(self) -> int:
        return self._handle.parameter_count

    @property
    def columns(self) -> Mapping[str, int]:
        return MappingProxyType(self._columns)

    @property
    def column_count(self) -> int:
        return self._handle.column_count

    @property
    def column_names(self) -> list[str]:
        return [col.name for col in columns(self._handle)]

    @property
    def column_info(self) -> list[Column]:
        return columns(self._handle)

    @property
    def is_finalized(self) -> bool:
        return self._handle.finalized

    # strategies

    @property
    def array_strategy(self) -> ArrayStrategy:
        return self._array_strategy

    @array_strategy.setter
    def array_strategy(self, strategy: ArrayStrategy | ArrayFormat | str) -> None:
        self._array_strategy = get_array_strategy(strategy)

    @property
    def date_strategy(self) -> DateStrategy:
        return self._date_strategy

    @date_strategy.setter
    def date_strategy(self, strategy: DateStrategy | DateFormat | str) -> None:
        self._date_strategy = get_date_strategy(strategy)

    # lifecycle guards

    def _ensure_open(self) -> None:
        if self._handle.finalized:
            raise SequenceError(f'Statement has been finalized: {self.query!r}')

    def _is_current(self, generation: int) -> bool:
        return (not self._handle.finalized and generation == self._generation
                and self._handle.has_row)

    def _ensure_current(self, generation: int) -> None:
        self._ensure_open()
        if not self._is_current(generation):
            raise SequenceError('Row is no longer valid; the statement has moved past it')

    # binding

    def bind(self, key: str | int, value: Any) -> None:
        """Bind `value` to a slot index (1-based) or bindable name.

        Unknown names are ignored. None binds NULL. Plain Python and numpy
        values are converted with `Value.of`.
        """
        self._ensure_open()
        if self._executing:
            raise SequenceError('Cannot bind while the statement is executing; call reset() first')
        if isinstance(key, str):
            index = self._bindables.get(key)
            if index is None:
                logger.debug(f'Ignoring bind to unknown parameter {key!r}')
                return
        elif isinstance(key, int) and not isinstance(key, bool):
            if key < 1:
                raise ValidationError(f'Parameter index must be >= 1, got {key}')
            index = key
        else:
            raise ValidationError(f'Parameter key must be str or int, got {type(key).__name__}')

        if value is None:
            self._handle.bind_null(index)
            return
        if not isinstance(value, Value):
            value = Value.of(value)
        write_value(self._handle, index, value,
                    array_strategy=self._array_strategy, date_strategy=self._date_strategy)

    def bind_many(self, values: Mapping[str, Any] | Sequence[Any]) -> None:
        """Bind a mapping by name or a sequence by position."""
        if isinstance(values, Mapping):
            for key, value in values.items():
                self.bind(key, value)
            return
        for index, value in enumerate(values, start=1):
            self.bind(index, value)

    def encode(self, obj: Any) -> None:
        """Bind the fields of a dataclass instance by name."""
        self._ensure_open()
        StatementEncoder(self).encode(obj)

    # execution

    def step(self) -> StepResult:
        """Advance the statement; any outstanding Row becomes stale."""
        self._ensure_open()
        self._generation += 1
        self._executing = True
        code = self._handle.step()
        self._resolve_columns()
        if code is StepCode.ROW:
            return StepResult(code, row=Row(self, self._generation))
        if code is StepCode.DONE:
            return StepResult(code)
        logger.debug(f'Step returned {code.name}: {self._handle.error}')
        return StepResult(code, error=self._handle.error)

    def perform(self) -> None:
        """Run a statement that produces no rows; anything but DONE raises EngineError."""
        result = self.step()
        if result.kind is StepCode.DONE:
            return
        if result.error is not None:
            raise result.error
        raise EngineError(f'Expected statement to finish, got {result.kind.name}: {self.query!r}')

    def reset(self) -> None:
        """Rewind and clear bindings; metadata is kept."""
        self._ensure_open()
        self._handle.reset()
        self._handle.clear_bindings()
        self._generation += 1
        self._executing = False

    def finalize(self) -> None:
        """Release the handle. Safe to call more than once."""
        if self._handle.finalized:
            return
        self._handle.finalize()
        self._generation += 1
        self._executing = False
        self.connection._forget(self)

    def _read(self, index: int, kind: ValueKind) -> Any:
        return read_value(self._handle, index, kind,
                          array_strategy=self._array_strategy, date_strategy=self._date_strategy)
