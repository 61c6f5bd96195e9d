"""
SQLite connection handling.

This module provides:
1. The `connect()` function for opening a database from options
2. The `ConnectionWrapper` class that owns the sqlite3 connection, tracks
   prepared statements and exposes pragmas, transactions and migrations

The ConnectionWrapper is the primary database client, providing methods like:
- prepare(sql) - Compile a Statement for binding, stepping and decoding
- execute(sql, *args) - Run one or more statements that return no rows
- select(sql, *args) - Run a query and load the rows with the data loader
- migrate(version, fn) - Apply a numbered schema migration once
"""
import logging
import pathlib
import sqlite3
import weakref
from collections.abc import Callable
from dataclasses import fields
from typing import Any, Self

from rowcodec.exceptions import EngineError, MigrationError, SequenceError
from rowcodec.options import DatabaseOptions, use_iterdict_data_loader
from rowcodec.pragma import AutoVacuum, JournalMode, SecureDelete, WalCheckpointMode
from rowcodec.sql import split_statements
from rowcodec.statement import Statement
from rowcodec.transaction import Transaction

from libb import attrdict, load_options

__all__ = [
    'ConnectionWrapper',
    'connect',
    'unicode_upper',
]

logger = logging.getLogger(__name__)


def unicode_upper(value: Any) -> str | None:
    """Unicode-aware replacement for SQLite's ASCII-only UPPER().

    >>> unicode_upper('straße')
    'STRASSE'
    """
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode('utf-8', errors='replace')
    return str(value).upper()


def _database_target(options: DatabaseOptions) -> tuple[str, bool]:
    """Return the sqlite3.connect target and whether it is a URI."""
    if not options.read_only:
        return options.database, False
    if options.database == ':memory:':
        return 'file::memory:?mode=ro', True
    uri = pathlib.Path(options.database).absolute().as_uri()
    return f'{uri}?mode=ro', True


class ConnectionWrapper:
    """Wraps a sqlite3 connection to track calls, execution time and statements

    This class:
    1. Tracks query execution counts and timing
    2. Keeps weak references to prepared statements and finalizes them on close
    3. Supports context manager protocol for explicit resource management
    4. Provides access to the underlying DBAPI connection via dbapi_connection
    """

    def __init__(self, dbapi_connection: sqlite3.Connection,
                 options: DatabaseOptions) -> None:
        """Initialize a connection wrapper
        """
        self.dbapi_connection = dbapi_connection
        self.options = options
        self.calls = 0
        self.time = 0
        self._statements: weakref.WeakSet[Statement] = weakref.WeakSet()
        self._closed = False

    def __enter__(self) -> Self:
        """Support for context manager protocol
        """
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        """Close the connection when exiting the context manager
        """
        try:
            self.close()
            logger.debug('Closed connection via context manager')
        except Exception as e:
            logger.debug(f'Error closing connection in __exit__: {e}')

    def __repr__(self) -> str:
        state = 'closed' if self._closed else 'open'
        return f'<ConnectionWrapper {self.options.database!r} ({state})>'

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_transaction(self) -> bool:
        return self.dbapi_connection.in_transaction

    def _ensure_open(self) -> None:
        if self._closed:
            raise SequenceError('Connection has been closed')

    def _forget(self, statement: Statement) -> None:
        self._statements.discard(statement)

    # statements

    def prepare(self, sql: str) -> Statement:
        """Compile `sql` into a Statement; invalid SQL raises EngineError.
        """
        self._ensure_open()
        statement = Statement(self, sql)
        self._statements.add(statement)
        return statement

    def _execute_raw(self, sql: str) -> list[tuple]:
        """Run one statement without parameters and drain its rows."""
        statement = self.prepare(sql)
        try:
            return [tuple(row) for row in statement]
        finally:
            statement.finalize()

    def execute(self, sql: str, *args: Any) -> int:
        """Execute SQL that returns no rows; return the number of changed rows.

        Without arguments `sql` may hold several statements. With arguments
        it must be a single statement; a single dict binds by name, anything
        else binds by position.
        """
        self._ensure_open()
        if args:
            params = args[0] if len(args) == 1 and isinstance(args[0], dict) else args
            with self.prepare(sql) as statement:
                statement.bind_many(params)
                statement.perform()
            return self.changes
        for stmt in split_statements(sql):
            self._execute_raw(stmt)
        return self.changes

    def select(self, sql: str, *args: Any, **kwargs: Any) -> Any:
        """Execute a query and load its rows with the configured data loader.
        """
        self._ensure_open()
        params = args[0] if len(args) == 1 and isinstance(args[0], dict) else args
        with self.prepare(sql) as statement:
            statement.bind_many(params)
            data = [row.to_dict() for row in statement]
            columns = statement.column_info
        return self.options.data_loader(data, columns, **kwargs)

    @use_iterdict_data_loader
    def select_row(self, sql: str, *args: Any) -> attrdict:
        """Execute a query and return a single row as an attribute dictionary.

        Raises AssertionError if the query returns zero or multiple rows.
        """
        data = self.select(sql, *args)
        assert len(data) == 1, f'Expected one row, got {len(data)}'
        return data[0]

    @use_iterdict_data_loader
    def select_row_or_none(self, sql: str, *args: Any) -> attrdict | None:
        """Execute a query and return a single row or None if no rows found.
        """
        data = self.select(sql, *args)
        if len(data) == 1:
            return data[0]
        return None

    @use_iterdict_data_loader
    def select_scalar(self, sql: str, *args: Any) -> Any:
        """Execute a query and return a single scalar value.

        Raises AssertionError if the query returns zero or multiple rows.
        """
        data = self.select(sql, *args)
        assert len(data) == 1, f'Expected one row, got {len(data)}'
        return next(iter(data[0].values()))

    @use_iterdict_data_loader
    def select_scalar_or_none(self, sql: str, *args: Any) -> Any | None:
        """Execute a query and return a single scalar value or None if no rows found.
        """
        data = self.select(sql, *args)
        if len(data) == 1:
            return next(iter(data[0].values()))
        return None

    def _scalar(self, sql: str) -> Any:
        rows = self._execute_raw(sql)
        return rows[0][0] if rows else None

    # engine info

    @property
    def last_inserted_id(self) -> int:
        """Rowid of the most recent successful INSERT on this connection."""
        return self._scalar('SELECT last_insert_rowid()')

    @property
    def changes(self) -> int:
        """Rows changed by the most recent INSERT, UPDATE or DELETE."""
        return self._scalar('SELECT changes()')

    @property
    def sqlite_version(self) -> str:
        with self.prepare('SELECT sqlite_version()') as statement:
            return statement.step().row.get(0, str)

    @property
    def user_version(self) -> int:
        return self._scalar('PRAGMA user_version')

    @user_version.setter
    def user_version(self, version: int) -> None:
        self._execute_raw(f'PRAGMA user_version = {int(version)}')

    # pragmas

    @property
    def journal_mode(self) -> JournalMode:
        return JournalMode.from_value(self._scalar('PRAGMA journal_mode'))

    @journal_mode.setter
    def journal_mode(self, mode: JournalMode | str) -> None:
        mode = JournalMode.from_value(mode)
        result = JournalMode.from_value(self._scalar(f'PRAGMA journal_mode = {mode.pragma_value}'))
        if result is not mode:
            logger.debug(f'Journal mode {mode.value} requested, engine kept {result.value}')

    @property
    def auto_vacuum(self) -> AutoVacuum:
        return AutoVacuum.from_value(self._scalar('PRAGMA auto_vacuum'))

    @auto_vacuum.setter
    def auto_vacuum(self, mode: AutoVacuum | str | int) -> None:
        self._execute_raw(f'PRAGMA auto_vacuum = {AutoVacuum.from_value(mode).pragma_value}')

    @property
    def secure_delete(self) -> SecureDelete:
        return SecureDelete.from_value(self._scalar('PRAGMA secure_delete'))

    @secure_delete.setter
    def secure_delete(self, mode: SecureDelete | str | int | bool) -> None:
        self._execute_raw(f'PRAGMA secure_delete = {SecureDelete.from_value(mode).pragma_value}')

    def vacuum(self) -> None:
        self._execute_raw('VACUUM')

    def incremental_vacuum(self, pages: int | None = None) -> None:
        """Free up to `pages` pages from the freelist (all when None)."""
        if pages is None:
            self._execute_raw('PRAGMA incremental_vacuum')
        else:
            self._execute_raw(f'PRAGMA incremental_vacuum({int(pages)})')

    def wal_checkpoint(self, mode: WalCheckpointMode | str = WalCheckpointMode.PASSIVE) -> tuple[int, int, int]:
        """Run a WAL checkpoint; return (busy, log frames, checkpointed frames)."""
        mode = WalCheckpointMode.from_value(mode)
        rows = self._execute_raw(f'PRAGMA wal_checkpoint({mode.value})')
        busy, log_frames, checkpointed = rows[0]
        logger.debug(f'WAL checkpoint {mode.value}: busy={busy} log={log_frames} '
                     f'checkpointed={checkpointed}')
        return busy, log_frames, checkpointed

    # transactions

    def begin(self, mode: str = 'DEFERRED') -> None:
        self._execute_raw(f'BEGIN {mode}')

    def commit(self) -> None:
        self._execute_raw('COMMIT')

    def rollback(self) -> None:
        self._execute_raw('ROLLBACK')

    def transaction(self, mode: str = 'DEFERRED') -> Transaction:
        """Transaction context manager: commit on success, roll back on error."""
        return Transaction(self, mode)

    # migrations

    def needs_migration(self, target_version: int) -> bool:
        return self.user_version < target_version

    def migrate(self, version: int, migration: Callable[[Self], Any]) -> bool:
        """Apply migration `version` if it has not run yet.

        Returns True when the migration ran. Versions must be applied in
        order; skipping one raises MigrationError.
        """
        current = self.user_version
        if version <= current:
            logger.debug(f'Migration {version} already applied (user_version={current})')
            return False
        if version - current != 1:
            raise MigrationError(f'Migration {version} out of order; database is at version {current}')
        with self.transaction():
            migration(self)
            self.user_version = version
        logger.debug(f'Applied migration {version}')
        return True

    # lifecycle

    def close(self) -> None:
        """Finalize statements, checkpoint the WAL and close the connection.
        """
        if self._closed:
            return
        for statement in list(self._statements):
            statement.finalize()
        try:
            if not self.options.read_only and self.journal_mode is JournalMode.WAL:
                self.wal_checkpoint(WalCheckpointMode.TRUNCATE)
        finally:
            self.dbapi_connection.close()
            self._closed = True
            logger.debug(f'Closed connection to {self.options.database}')


def _configure(connection: ConnectionWrapper) -> None:
    """Apply options that need a live connection."""
    options = connection.options
    if options.register_functions:
        connection.dbapi_connection.create_function('UPPER', 1, unicode_upper, deterministic=True)
    if not options.read_only:
        connection.journal_mode = options.journal_mode


@load_options(cls=DatabaseOptions)
def connect(options: DatabaseOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> ConnectionWrapper:
    """Open a SQLite database

    Args:
        options: Can be:
                - DatabaseOptions object
                - String path to configuration
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options

    Returns
        ConnectionWrapper object for the database
    """
    if isinstance(options, DatabaseOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    else:
        options_func = load_options(cls=DatabaseOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    target, uri = _database_target(options)
    try:
        dbapi_connection = sqlite3.connect(target, timeout=options.timeout, uri=uri,
                                           autocommit=True, check_same_thread=False)
    except sqlite3.Error as err:
        raise EngineError.from_sqlite(err) from err

    connection = ConnectionWrapper(dbapi_connection, options)
    try:
        _configure(connection)
    except Exception:
        dbapi_connection.close()
        raise
    logger.debug(f'Opened connection to {options.database}')
    return connection
