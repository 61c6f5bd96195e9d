"""
Typed value mapping between dataclass records and SQLite.

Statements bind typed values by slot index or parameter name; rows read
typed values by column index or name; `encode` and `decode` walk dataclass
fields so records move in and out of statements without per-column code.

All query/data operations can be called either as:
- Module functions: db.select(cn, sql, *args)
- ConnectionWrapper methods: cn.select(sql, *args)
"""
__version__ = '0.1.0'

from typing import Any

from rowcodec.adapters.decoder import decode
from rowcodec.adapters.encoder import encode
from rowcodec.connection import ConnectionWrapper, connect
from rowcodec.engine import StepCode
from rowcodec.exceptions import CodingError, DatabaseError, DecodingError
from rowcodec.exceptions import EncodingError, EngineError, MigrationError
from rowcodec.exceptions import NullValueError, SequenceError, TypeConversionError
from rowcodec.exceptions import UnknownKeyError, ValidationError
from rowcodec.options import DatabaseOptions
from rowcodec.pragma import AutoVacuum, JournalMode, SecureDelete, WalCheckpointMode
from rowcodec.row import Row
from rowcodec.statement import Statement, StepResult
from rowcodec.strategy import ArrayFormat, DateFormat
from rowcodec.transaction import Transaction as transaction
from rowcodec.types import StorageClass, Value, ValueKind


def prepare(cn: ConnectionWrapper, sql: str) -> Statement:
    """Compile a statement for binding, stepping and decoding.
    """
    return cn.prepare(sql)


def execute(cn: ConnectionWrapper, sql: str, *args: Any) -> int:
    """Execute SQL that returns no rows and return the changed row count.
    """
    return cn.execute(sql, *args)


delete = execute
insert = execute
update = execute


def select(cn: ConnectionWrapper, sql: str, *args: Any, **kwargs: Any) -> Any:
    """Execute a query and load rows with the connection's data loader.
    """
    return cn.select(sql, *args, **kwargs)


def select_row(cn: ConnectionWrapper, sql: str, *args: Any) -> Any:
    """Execute a query and return a single row.
    """
    return cn.select_row(sql, *args)


def select_row_or_none(cn: ConnectionWrapper, sql: str, *args: Any) -> Any | None:
    """Execute a query and return a single row or None if no rows found.
    """
    return cn.select_row_or_none(sql, *args)


def select_scalar(cn: ConnectionWrapper, sql: str, *args: Any) -> Any:
    """Execute a query and return a single value.
    """
    return cn.select_scalar(sql, *args)


def select_scalar_or_none(cn: ConnectionWrapper, sql: str, *args: Any) -> Any | None:
    """Execute a query and return a single value or None if no rows found.
    """
    return cn.select_scalar_or_none(sql, *args)


def insert_record(cn: ConnectionWrapper, sql: str, record: Any) -> int:
    """Encode a dataclass into `sql`, run it and return the last inserted rowid.
    """
    with cn.prepare(sql) as statement:
        statement.encode(record)
        statement.perform()
    return cn.last_inserted_id


def select_records(cn: ConnectionWrapper, cls: type, sql: str, *args: Any) -> list[Any]:
    """Run a query and decode every row into an instance of dataclass `cls`.
    """
    params = args[0] if len(args) == 1 and isinstance(args[0], dict) else args
    with cn.prepare(sql) as statement:
        statement.bind_many(params)
        return [row.decode(cls) for row in statement]


__all__ = [
    'connect',
    'ConnectionWrapper',
    'transaction',
    'DatabaseOptions',
    'prepare',
    'execute',
    'delete',
    'insert',
    'update',
    'select',
    'select_row',
    'select_row_or_none',
    'select_scalar',
    'select_scalar_or_none',
    'insert_record',
    'select_records',
    'encode',
    'decode',
    'Statement',
    'StepResult',
    'StepCode',
    'Row',
    'Value',
    'ValueKind',
    'StorageClass',
    'ArrayFormat',
    'DateFormat',
    'JournalMode',
    'AutoVacuum',
    'SecureDelete',
    'WalCheckpointMode',
    'DatabaseError',
    'EngineError',
    'TypeConversionError',
    'NullValueError',
    'CodingError',
    'EncodingError',
    'DecodingError',
    'ValidationError',
    'UnknownKeyError',
    'SequenceError',
    'MigrationError',
]
