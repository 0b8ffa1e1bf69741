"""
Observable queries for observable-sqlite.

A ``Query`` keeps the result of one SQL statement in sync with the store.

Lifecycle:
    - Inert: created, no listeners, no registry entry, no cached result.
      Writes cost it nothing.
    - Observing: the first ``subscribe`` executes the statement and
      registers the query's refresh routine with the ``ChangeRegistry``.
      Every matching write re-executes it and pushes the new rows to all
      listeners.
    - Back to inert: when the last listener unsubscribes, the registry
      entry is removed. Subscribing again re-executes from scratch.

Reconfiguration:
    ``update()`` swaps SQL text, parameters or dependencies in place.
    Unchanged values are ignored; if anything changed while observing,
    the query re-executes exactly once.

Usage:
    ```python
    query = db.query("SELECT * FROM users WHERE active = ?", [True], {"users": "*"})

    unsubscribe = query.subscribe(lambda rows: print(len(rows)))
    db.mutation("UPDATE users SET active = ? WHERE id = ?", [False, 1], {"users": [1]})

    query.update(parameters=[False])
    unsubscribe()
    ```
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Generic, Optional, TypeVar

import ulid

from observable_sqlite.core.equality import dependencies_equal, parameters_equal
from observable_sqlite.core.types import Dependencies, Primitive, SQL, coerce_dependencies
from observable_sqlite.runtime.registry import ChangeRegistry, RegistrySubscription
from observable_sqlite.storage.engine import Statement, Store

logger = logging.getLogger(__name__)


T = TypeVar("T")

Listener = Callable[[list[T]], None]
Unsubscribe = Callable[[], None]


class Query(Generic[T]):
    """
    A live query over a store.

    Attributes:
        id: Unique identifier (ULID), used in log records
        sql: Current SQL text
        parameters: Current bound parameters
        dependencies: Current dependency declaration
        result: Last rows delivered, or None before the first execution
    """

    def __init__(
        self,
        store: Store,
        registry: ChangeRegistry,
        sql: SQL,
        parameters: Optional[Sequence[Primitive]] = None,
        dependencies: Optional[Mapping[str, Any]] = None,
    ):
        """
        Initialize a query. Nothing is executed until the first subscribe.

        Args:
            store: Store to prepare and run the statement against
            registry: Registry that delivers change notifications
            sql: SQL text
            parameters: Positional parameters
            dependencies: Tables/record ids the result depends on

        Raises:
            DependencyDeclarationError: If ``dependencies`` is malformed
        """
        self._id = str(ulid.new())
        self._store = store
        self._registry = registry

        self._sql = sql
        self._parameters: list[Primitive] = list(parameters or [])
        self._dependencies: Dependencies = coerce_dependencies(dependencies)

        self._statement: Statement = store.prepare(sql)
        if self._parameters:
            self._statement.bind(self._parameters)

        self._result: Optional[list[T]] = None
        self._listeners: dict[int, Listener] = {}
        self._listener_tokens = itertools.count(1)
        self._subscription: Optional[RegistrySubscription] = None
        self._execution_count = 0

    @property
    def id(self) -> str:
        """Get the query ID."""
        return self._id

    @property
    def sql(self) -> SQL:
        """Get the current SQL text."""
        return self._sql

    @property
    def parameters(self) -> list[Primitive]:
        """Get a copy of the bound parameters."""
        return list(self._parameters)

    @property
    def dependencies(self) -> Dependencies:
        """Get a copy of the dependency declaration."""
        return dict(self._dependencies)

    @property
    def result(self) -> Optional[list[T]]:
        """Get the last rows delivered, or None before the first execution."""
        return self._result

    @property
    def is_observing(self) -> bool:
        """Check if the query has listeners (and thus a registry entry)."""
        return bool(self._listeners)

    @property
    def listener_count(self) -> int:
        """Get the number of subscribed listeners."""
        return len(self._listeners)

    @property
    def execution_count(self) -> int:
        """Get how many times the statement has been executed."""
        return self._execution_count

    def subscribe(self, listener: Listener) -> Unsubscribe:
        """
        Add a listener and deliver the current result to it.

        The first listener activates the query: the statement runs and the
        query registers with the change registry. Store errors from that
        first execution propagate and leave the query inert.

        Args:
            listener: Called with the result rows on every execution

        Returns:
            Function removing this listener; calling it again is a no-op
        """
        if not self.is_observing:
            self._execute()
            self._subscription = self._registry.subscribe(self._dependencies, self._execute)
            logger.debug("Query %s activated", self._id)

        token = next(self._listener_tokens)
        self._listeners[token] = listener

        def unsubscribe() -> None:
            if self._listeners.pop(token, None) is None:
                return
            if not self._listeners:
                self._deactivate()

        try:
            listener(self._result)
        except Exception:
            # the caller never receives the handle, so nothing could remove it
            unsubscribe()
            raise

        return unsubscribe

    def update(
        self,
        sql: Optional[SQL] = None,
        parameters: Optional[Sequence[Primitive]] = None,
        dependencies: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Reconfigure the query in place.

        ``None`` (or an empty ``sql`` string) means "leave unchanged".
        Values equal to the current ones are ignored. If anything changed
        and the query is observing, it re-executes once. If preparing the
        new SQL fails, the query keeps its previous configuration.

        Args:
            sql: New SQL text
            parameters: New positional parameters
            dependencies: New dependency declaration

        Returns:
            True if any value changed
        """
        sql_changed = bool(sql) and sql != self._sql
        parameters_changed = parameters is not None and not parameters_equal(
            list(parameters), self._parameters
        )

        new_dependencies: Optional[Dependencies] = None
        if dependencies is not None:
            coerced = coerce_dependencies(dependencies)
            if not dependencies_equal(coerced, self._dependencies):
                new_dependencies = coerced

        new_parameters = list(parameters) if parameters_changed else self._parameters

        # prepare and bind before touching any state, so a store error leaves
        # the query as it was
        if sql_changed:
            statement = self._store.prepare(sql)
            if new_parameters:
                statement.bind(new_parameters)
        else:
            statement = self._statement
            if parameters_changed:
                statement.bind(new_parameters)

        self._parameters = new_parameters
        if sql_changed:
            self._sql = sql
            self._statement = statement
            logger.debug("Query %s re-prepared", self._id)

        if new_dependencies is not None:
            self._dependencies = new_dependencies
            if self._subscription is not None:
                self._subscription.update_dependencies(new_dependencies)

        changed = sql_changed or parameters_changed or new_dependencies is not None
        if changed and self.is_observing:
            self._execute()
        return changed

    def dispose(self) -> None:
        """Drop every listener and return to the inert state."""
        self._listeners.clear()
        self._deactivate()

    def _execute(self) -> None:
        rows = self._statement.execute()
        self._execution_count += 1
        self._result = rows
        generation = self._execution_count

        for token in list(self._listeners):
            # a listener re-executed the query; the nested run already
            # delivered newer rows to everyone still subscribed
            if self._execution_count != generation:
                break
            listener = self._listeners.get(token)
            if listener is None:
                continue
            listener(rows)

    def _deactivate(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
            logger.debug("Query %s deactivated", self._id)

    def __repr__(self) -> str:
        return (
            f"Query(id={self._id!r}, sql={self._sql!r}, "
            f"listeners={len(self._listeners)}, observing={self.is_observing})"
        )
