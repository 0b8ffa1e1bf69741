"""
SQLite store for observable-sqlite.

This module provides the concrete store used by ``init()``, backed by the
standard library ``sqlite3`` driver.

Statements:
    sqlite3 has no explicit prepare step; the driver caches compiled
    statements per connection. ``SQLiteStatement`` therefore keeps the SQL
    text and its bound parameters, and the driver reuses the compiled form
    on each execution. Malformed SQL surfaces on first execution.

Thread Safety:
    A single connection is shared (``check_same_thread=False``) and every
    use is serialized with a lock, so ``execute_async`` may run writes on
    its worker pool while the event loop thread reads.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import sqlite3
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from observable_sqlite.core.config import ObservableConfig
from observable_sqlite.core.errors import StoreClosedError
from observable_sqlite.core.types import Primitive, SQL
from observable_sqlite.storage.engine import ExecutionResult, Row, Statement, Store

logger = logging.getLogger(__name__)


class SQLiteStatement(Statement):
    """A statement bound to one ``SQLiteStore``."""

    def __init__(self, store: "SQLiteStore", sql: SQL):
        self._store = store
        self._sql = sql
        self._parameters: tuple[Primitive, ...] = ()

    @property
    def sql(self) -> SQL:
        return self._sql

    @property
    def parameters(self) -> tuple[Primitive, ...]:
        """Get the currently bound parameters."""
        return self._parameters

    def bind(self, parameters: Sequence[Primitive]) -> None:
        self._parameters = tuple(parameters)

    def execute(self) -> list[Row]:
        return self._store.execute(self._sql, self._parameters).rows

    def __repr__(self) -> str:
        return f"SQLiteStatement({self._sql!r}, parameters={self._parameters!r})"


class SQLiteStore(Store):
    """
    SQLite-based store.

    Usage:
        ```python
        store = SQLiteStore(":memory:")
        store.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")

        statement = store.prepare("SELECT * FROM users WHERE id = ?")
        statement.bind([1])
        rows = statement.execute()

        result = await store.execute_async("DELETE FROM users WHERE id = ?", [1])
        ```
    """

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        timeout: float = 30.0,
        journal_mode: str = "WAL",
        foreign_keys: bool = True,
        async_workers: int = 1,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """
        Initialize SQLite store.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
            timeout: Connection timeout in seconds
            journal_mode: Journal mode pragma
            foreign_keys: Whether to enforce foreign keys
            async_workers: Worker count for the default executor
            executor: Optional executor for execute_async
        """
        self._db_path = str(db_path)
        self._timeout = timeout
        self._journal_mode = journal_mode
        self._foreign_keys = foreign_keys
        self._lock = threading.RLock()
        self._closed = False

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=async_workers,
            thread_name_prefix="observable-sqlite",
        )

        self._conn = self._connect()

    @classmethod
    def from_config(cls, config: ObservableConfig) -> "SQLiteStore":
        """Create a store from an ``ObservableConfig``."""
        return cls(
            config.database,
            timeout=config.timeout,
            journal_mode=config.journal_mode,
            foreign_keys=config.foreign_keys,
            async_workers=config.async_workers,
        )

    @property
    def path(self) -> str:
        """Get the database path."""
        return self._db_path

    @property
    def closed(self) -> bool:
        """Check if the store has been closed."""
        return self._closed

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._db_path,
            timeout=self._timeout,
            check_same_thread=False,
        )
        conn.execute(f"PRAGMA journal_mode={self._journal_mode}")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute(f"PRAGMA foreign_keys={'ON' if self._foreign_keys else 'OFF'}")
        conn.row_factory = sqlite3.Row
        logger.debug("Opened SQLite database %s", self._db_path)
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        with self._lock:
            if self._closed:
                raise StoreClosedError(f"Store {self._db_path!r} is closed")
            conn = self._conn
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def prepare(self, sql: SQL) -> SQLiteStatement:
        if self._closed:
            raise StoreClosedError(f"Store {self._db_path!r} is closed")
        return SQLiteStatement(self, sql)

    def execute(
        self,
        sql: SQL,
        parameters: Sequence[Primitive] = (),
    ) -> ExecutionResult:
        with self._transaction() as conn:
            cursor = conn.execute(sql, tuple(parameters))
            try:
                rows = [dict(row) for row in cursor.fetchall()]
                return ExecutionResult(
                    rows=rows,
                    rows_affected=max(cursor.rowcount, 0),
                    insert_id=cursor.lastrowid,
                )
            finally:
                cursor.close()

    async def execute_async(
        self,
        sql: SQL,
        parameters: Sequence[Primitive] = (),
    ) -> ExecutionResult:
        if self._closed:
            raise StoreClosedError(f"Store {self._db_path!r} is closed")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor,
            functools.partial(self.execute, sql, tuple(parameters)),
        )

    def close(self) -> None:
        """Close the connection and the executor it owns. Safe to call twice."""
        if self._closed:
            return
        # pending async writes finish before the connection goes away
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        with self._lock:
            self._closed = True
            self._conn.close()
        logger.debug("Closed SQLite database %s", self._db_path)

    def __enter__(self) -> "SQLiteStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
