"""
Pytest configuration and shared fixtures for observable-sqlite tests.

This module provides an in-memory SQLite store with a ``users`` table and
a recording fake store for counting statement executions.
"""

import pytest

from observable_sqlite.runtime.registry import ChangeRegistry
from observable_sqlite.storage.engine import ExecutionResult, Statement, Store
from observable_sqlite.storage.sqlite import SQLiteStore
from observable_sqlite.interface.client import ObservableDB


# =============================================================================
# Fake Store
# =============================================================================

class FakeStatement(Statement):
    """Statement returning canned rows and recording every call."""

    def __init__(self, store: "FakeStore", sql: str):
        self._store = store
        self._sql = sql
        self.bound: list[list] = []
        self.executions = 0

    @property
    def sql(self) -> str:
        return self._sql

    def bind(self, parameters) -> None:
        self.bound.append(list(parameters))

    def execute(self) -> list[dict]:
        self.executions += 1
        self._store.executed_sql.append(self._sql)
        if self._store.fail_with is not None:
            raise self._store.fail_with
        return list(self._store.rows.get(self._sql, []))


class FakeStore(Store):
    """In-process store that records prepares, executions and writes."""

    def __init__(self):
        self.rows: dict[str, list[dict]] = {}
        self.prepared: list[FakeStatement] = []
        self.executed_sql: list[str] = []
        self.writes: list[tuple[str, list]] = []
        self.fail_with = None
        self.fail_prepare_with = None

    @property
    def execution_count(self) -> int:
        return len(self.executed_sql)

    def prepare(self, sql: str) -> FakeStatement:
        if self.fail_prepare_with is not None:
            raise self.fail_prepare_with
        statement = FakeStatement(self, sql)
        self.prepared.append(statement)
        return statement

    def execute(self, sql, parameters=()) -> ExecutionResult:
        if self.fail_with is not None:
            raise self.fail_with
        self.writes.append((sql, list(parameters)))
        return ExecutionResult(rows_affected=1)

    async def execute_async(self, sql, parameters=()) -> ExecutionResult:
        return self.execute(sql, parameters)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_store():
    """Create a recording fake store."""
    return FakeStore()


@pytest.fixture
def registry():
    """Create an empty change registry."""
    return ChangeRegistry()


@pytest.fixture
def sqlite_store():
    """Create an in-memory SQLite store with a users table."""
    store = SQLiteStore(":memory:")
    store.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")
    yield store
    store.close()


@pytest.fixture
def db(sqlite_store):
    """Create an ObservableDB over the in-memory users store."""
    return ObservableDB(sqlite_store)


@pytest.fixture
def fake_db(fake_store):
    """Create an ObservableDB over the fake store."""
    return ObservableDB(fake_store)
