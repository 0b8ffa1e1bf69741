"""
Change notification registry for observable-sqlite.

This module decides, on every write, which live queries must recompute.

Each observing query registers a refresh callback together with the
``Dependencies`` it reads. A write reports a ``ChangeSet``; the registry
fires every callback whose dependencies overlap it.

Matching Rules:
    For a (change table, dependency table) pair with the same name, the
    entry matches when either side is the wildcard or the enumerated ids
    intersect. An entry fires at most once per notify pass, however many
    tables match.

Ordering:
    Entries are scanned in registration order. The entry list is
    snapshotted when a pass starts: entries registered during the pass are
    not fired by it, and entries removed before being reached are skipped.
    A notify issued from inside a pass (e.g. a listener that writes) is
    queued and runs after the current pass. A callback error aborts only
    its own pass: queued passes still run, then the first error is raised.

Thread Safety:
    None. The registry must only be used from the thread that owns the
    event loop.
"""

from __future__ import annotations

import itertools
import logging
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from observable_sqlite.core.types import (
    ChangeSet,
    Dependencies,
    Enumerated,
    Wildcard,
    coerce_change_set,
    coerce_dependencies,
)

logger = logging.getLogger(__name__)


RefreshCallback = Callable[[], None]


class RegistryStats(BaseModel):
    """Statistics for the registry."""

    subscriptions: int = Field(default=0, description="Entries ever registered")
    active: int = Field(default=0, description="Entries currently registered")
    notifications: int = Field(default=0, description="Notify passes run")
    callbacks_fired: int = Field(default=0, description="Refresh callbacks fired")
    deferred: int = Field(default=0, description="Notify passes queued behind another pass")


@dataclass
class _Entry:
    callback: RefreshCallback
    dependencies: Dependencies


def matches(dependencies: Dependencies, changes: ChangeSet) -> bool:
    """
    Check if a change set touches anything a dependency declaration reads.

    Args:
        dependencies: What a query reads
        changes: What a write touched

    Returns:
        True if at least one table pair matches
    """
    for table, record_ids in changes.items():
        depends_on = dependencies.get(table)
        if depends_on is None:
            continue
        if isinstance(depends_on, Wildcard) or isinstance(record_ids, Wildcard):
            return True
        if isinstance(depends_on, Enumerated) and depends_on.intersects(record_ids):
            return True
    return False


class RegistrySubscription:
    """
    Handle to one registry entry.

    Only the owner of the handle creates, updates or removes its entry.
    """

    def __init__(self, registry: "ChangeRegistry", token: int):
        self._registry = registry
        self._token = token

    @property
    def token(self) -> int:
        """Get the opaque token identifying this entry."""
        return self._token

    @property
    def active(self) -> bool:
        """Check if the entry is still registered."""
        return self._registry.is_subscribed(self._token)

    def unsubscribe(self) -> bool:
        """
        Remove the entry. Safe to call more than once.

        Returns:
            True if the entry existed and was removed
        """
        return self._registry._remove(self._token)

    def update_dependencies(self, dependencies: Mapping[str, Any]) -> None:
        """Replace the entry's dependencies, keeping its callback and position."""
        self._registry._update(self._token, coerce_dependencies(dependencies))

    def __repr__(self) -> str:
        return f"RegistrySubscription(token={self._token}, active={self.active})"


class ChangeRegistry:
    """
    Maps each observing query's refresh callback to its dependencies.

    One registry exists per store wrapper (see ``ObservableDB``); it is
    passed explicitly to every query and to the mutation gateway.

    Usage:
        ```python
        registry = ChangeRegistry()

        sub = registry.subscribe({"users": "*"}, refresh)
        registry.notify({"users": [1]})   # refresh() is called

        sub.update_dependencies({"todos": {3}})
        registry.notify({"users": [1]})   # nothing fires

        sub.unsubscribe()
        ```
    """

    def __init__(self):
        self._entries: dict[int, _Entry] = {}
        self._tokens = itertools.count(1)
        self._stats = RegistryStats()

        self._notifying = False
        self._pending: deque[ChangeSet] = deque()

    @property
    def subscription_count(self) -> int:
        """Get the number of registered entries."""
        return len(self._entries)

    @property
    def stats(self) -> RegistryStats:
        """Get a copy of the registry statistics."""
        return self._stats.model_copy(update={"active": len(self._entries)})

    def is_subscribed(self, token: int) -> bool:
        """Check if an entry is registered under ``token``."""
        return token in self._entries

    def dependencies_for(self, token: int) -> Optional[Dependencies]:
        """Get the dependencies stored for ``token``, if registered."""
        entry = self._entries.get(token)
        return dict(entry.dependencies) if entry else None

    def subscribe(
        self,
        dependencies: Mapping[str, Any],
        callback: RefreshCallback,
    ) -> RegistrySubscription:
        """
        Register a refresh callback under a dependency declaration.

        Args:
            dependencies: Tables (and optionally record ids) the callback reads
            callback: Called with no arguments when a matching change arrives

        Returns:
            Handle for removing the entry or updating its dependencies
        """
        token = next(self._tokens)
        self._entries[token] = _Entry(callback, coerce_dependencies(dependencies))
        self._stats.subscriptions += 1
        logger.debug("Registered entry %d on tables %s", token, sorted(self._entries[token].dependencies))
        return RegistrySubscription(self, token)

    def _remove(self, token: int) -> bool:
        entry = self._entries.pop(token, None)
        if entry is None:
            return False
        logger.debug("Removed entry %d", token)
        return True

    def _update(self, token: int, dependencies: Dependencies) -> None:
        entry = self._entries.get(token)
        if entry is None:
            return
        entry.dependencies = dependencies
        logger.debug("Updated entry %d to tables %s", token, sorted(dependencies))

    def notify(self, changes: Mapping[str, Any]) -> int:
        """
        Fire every callback whose dependencies overlap ``changes``.

        Args:
            changes: Tables (and record ids) touched by a write

        Returns:
            Number of callbacks fired by this call, including queued passes
            it drained. A call queued behind an active pass returns 0.

        Raises:
            Exception: The first error raised by a callback, once every
                queued pass has run
        """
        change_set = coerce_change_set(changes)

        if self._notifying:
            self._pending.append(change_set)
            self._stats.deferred += 1
            logger.debug("Deferred notify for tables %s", sorted(change_set))
            return 0

        fired = 0
        error: Optional[BaseException] = None
        self._pending.append(change_set)
        self._notifying = True
        try:
            # queued change sets describe committed writes, so every one of
            # them runs even after an earlier pass raised
            while self._pending:
                try:
                    fired += self._run_pass(self._pending.popleft())
                except Exception as exc:
                    if error is None:
                        error = exc
                    else:
                        logger.error("Queued notify pass failed after an earlier failure", exc_info=exc)
        finally:
            self._notifying = False

        if error is not None:
            raise error
        return fired

    def _run_pass(self, changes: ChangeSet) -> int:
        self._stats.notifications += 1
        if not changes:
            return 0

        fired = 0
        for token, entry in list(self._entries.items()):
            if token not in self._entries:
                continue
            if matches(entry.dependencies, changes):
                entry.callback()
                fired += 1

        self._stats.callbacks_fired += fired
        logger.debug("Notify on tables %s fired %d callback(s)", sorted(changes), fired)
        return fired
