"""
Store boundary for observable-sqlite.

The reactive layer never talks to a database driver directly. It needs:

- ``prepare(sql)`` returning a ``Statement`` that can be bound and executed
- ``execute(sql, parameters)`` for one-off statements (mutations)
- ``execute_async(sql, parameters)`` for the awaitable mutation path

Design Philosophy:
    Storage is separated from reactivity. The store knows how to run SQL;
    it knows nothing about which queries depend on which tables.

Implementations:
    - SQLiteStore: the standard library sqlite3 driver
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, Optional

from pydantic import BaseModel, Field

from observable_sqlite.core.types import Primitive, SQL


Row = dict[str, Any]


class ExecutionResult(BaseModel):
    """Raw result of a one-off statement."""

    rows: list[Row] = Field(default_factory=list, description="Rows returned, if any")
    rows_affected: int = Field(default=0, description="Rows changed by the statement")
    insert_id: Optional[int] = Field(default=None, description="Last inserted row id")

    model_config = {"extra": "forbid"}


class Statement(ABC):
    """A prepared, re-executable statement."""

    @property
    @abstractmethod
    def sql(self) -> SQL:
        """Get the SQL text this statement was prepared from."""
        pass

    @abstractmethod
    def bind(self, parameters: Sequence[Primitive]) -> None:
        """
        Bind positional parameters for subsequent executions.

        Args:
            parameters: Values for the statement's ``?`` placeholders
        """
        pass

    @abstractmethod
    def execute(self) -> list[Row]:
        """
        Run the statement with the currently bound parameters.

        Returns:
            Result rows; an empty list when there are none
        """
        pass


class Store(ABC):
    """
    Abstract base class for stores.

    Stores must implement statement preparation and both execution paths.
    Errors raised by the underlying driver must propagate unchanged.
    """

    @abstractmethod
    def prepare(self, sql: SQL) -> Statement:
        """
        Prepare a parameterized statement.

        Args:
            sql: Raw SQL text

        Returns:
            A statement with no parameters bound
        """
        pass

    @abstractmethod
    def execute(
        self,
        sql: SQL,
        parameters: Sequence[Primitive] = (),
    ) -> ExecutionResult:
        """
        Execute a one-off statement and apply it durably.

        Args:
            sql: Raw SQL text
            parameters: Positional parameters

        Returns:
            Execution result
        """
        pass

    @abstractmethod
    async def execute_async(
        self,
        sql: SQL,
        parameters: Sequence[Primitive] = (),
    ) -> ExecutionResult:
        """
        Execute a one-off statement without blocking the event loop.

        The returned awaitable completes only once the write is applied.
        """
        pass

    def close(self) -> None:
        """Release resources held by the store."""
        pass
