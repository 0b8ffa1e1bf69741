"""
Write gateway for observable-sqlite.

Every write goes through ``MutationGateway``: the statement runs against
the store first, then the caller-declared change set is handed to the
``ChangeRegistry``. Notification never precedes the write it describes,
and a write that raises notifies nobody.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Optional

from observable_sqlite.core.types import Primitive, SQL, coerce_change_set
from observable_sqlite.runtime.registry import ChangeRegistry
from observable_sqlite.storage.engine import ExecutionResult, Store

logger = logging.getLogger(__name__)


class MutationGateway:
    """Runs writes against a store and notifies the registry afterwards."""

    def __init__(self, store: Store, registry: ChangeRegistry):
        self._store = store
        self._registry = registry

    def mutation(
        self,
        sql: SQL,
        parameters: Optional[Sequence[Primitive]] = None,
        changes: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionResult:
        """
        Execute a write synchronously, then notify.

        Args:
            sql: SQL text of the write
            parameters: Positional parameters
            changes: Tables (and record ids) the write modified

        Returns:
            The store's raw execution result
        """
        change_set = coerce_change_set(changes)
        result = self._store.execute(sql, list(parameters or []))
        logger.debug("Mutation applied (%d row(s)), notifying tables %s", result.rows_affected, sorted(change_set))
        self._registry.notify(change_set)
        return result

    async def mutation_async(
        self,
        sql: SQL,
        parameters: Optional[Sequence[Primitive]] = None,
        changes: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionResult:
        """
        Execute a write without blocking the event loop, then notify.

        Notification runs synchronously on the awaiting thread once the
        store reports the write as applied.
        """
        change_set = coerce_change_set(changes)
        result = await self._store.execute_async(sql, list(parameters or []))
        logger.debug("Async mutation applied (%d row(s)), notifying tables %s", result.rows_affected, sorted(change_set))
        self._registry.notify(change_set)
        return result
