"""
Main client interface for observable-sqlite.

Usage:
    ```python
    from observable_sqlite import init

    db = init(":memory:")
    db.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")

    users = db.query("SELECT * FROM users", [], {"users": "*"})
    unsubscribe = users.subscribe(lambda rows: print(rows))

    db.mutation("INSERT INTO users (id, name) VALUES (?, ?)", [1, "John"], {"users": [1]})
    await db.mutation_async("DELETE FROM users WHERE id = ?", [1], {"users": [1]})

    unsubscribe()
    db.close()
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Optional, Union

from observable_sqlite.core.config import ObservableConfig
from observable_sqlite.core.types import Primitive, SQL
from observable_sqlite.runtime.mutation import MutationGateway
from observable_sqlite.runtime.query import Query
from observable_sqlite.runtime.registry import ChangeRegistry, RegistryStats
from observable_sqlite.storage.engine import ExecutionResult, Store
from observable_sqlite.storage.sqlite import SQLiteStore

logger = logging.getLogger(__name__)


class ObservableDB:
    """
    A store wrapped with change tracking.

    Owns the one ``ChangeRegistry`` shared by every query created through
    it and by its mutation gateway. Writes that bypass ``mutation`` and
    ``mutation_async`` (including ``execute``) notify nobody.
    """

    def __init__(
        self,
        store: Store,
        registry: Optional[ChangeRegistry] = None,
        owns_store: bool = False,
    ):
        """
        Initialize the client.

        Args:
            store: Store to run statements against
            registry: Registry to use; a new one by default
            owns_store: Whether ``close()`` should close the store
        """
        self._store = store
        self._registry = registry or ChangeRegistry()
        self._gateway = MutationGateway(store, self._registry)
        self._owns_store = owns_store

    @property
    def store(self) -> Store:
        return self._store

    @property
    def registry(self) -> ChangeRegistry:
        return self._registry

    @property
    def stats(self) -> RegistryStats:
        return self._registry.stats

    # =========================================================================
    # Queries
    # =========================================================================

    def query(
        self,
        sql: SQL,
        parameters: Optional[Sequence[Primitive]] = None,
        dependencies: Optional[Mapping[str, Any]] = None,
    ) -> Query:
        """
        Create a live query. It stays inert until first subscribed.

        Args:
            sql: SQL text
            parameters: Positional parameters
            dependencies: Tables (and record ids) the result depends on

        Returns:
            The query handle
        """
        return Query(self._store, self._registry, sql, parameters, dependencies)

    # =========================================================================
    # Writes
    # =========================================================================

    def mutation(
        self,
        sql: SQL,
        parameters: Optional[Sequence[Primitive]] = None,
        changes: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionResult:
        """Execute a write and notify queries depending on ``changes``."""
        return self._gateway.mutation(sql, parameters, changes)

    async def mutation_async(
        self,
        sql: SQL,
        parameters: Optional[Sequence[Primitive]] = None,
        changes: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionResult:
        """Await a write, then notify queries depending on ``changes``."""
        return await self._gateway.mutation_async(sql, parameters, changes)

    def execute(
        self,
        sql: SQL,
        parameters: Optional[Sequence[Primitive]] = None,
    ) -> ExecutionResult:
        """Run a one-off statement (schema setup, reads) without notifying."""
        return self._store.execute(sql, list(parameters or []))

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Close the store if this client created it."""
        if self._owns_store:
            self._store.close()

    def __enter__(self) -> "ObservableDB":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def init(
    target: Union[Store, str, Path, None] = None,
    config: Optional[ObservableConfig] = None,
) -> ObservableDB:
    """
    Wrap a store (or open a SQLite database) for observable queries.

    Args:
        target: An existing ``Store``, a database path, or None to use
                ``config.database``
        config: Store settings used when a database is opened here

    Returns:
        An ``ObservableDB``. It owns (and closes) the store only when it
        opened it.
    """
    if isinstance(target, Store):
        return ObservableDB(target)

    config = config or ObservableConfig()
    if target is not None:
        config = config.model_copy(update={"database": str(target)})

    store = SQLiteStore.from_config(config)
    logger.debug("Initialized observable database at %s", config.database)
    return ObservableDB(store, owns_store=True)
