"""
Runtime layer for observable-sqlite.

Provides execution-time features:
- Change notification registry
- Live queries
- The write gateway
"""

from observable_sqlite.runtime.mutation import MutationGateway
from observable_sqlite.runtime.query import Listener, Query, Unsubscribe
from observable_sqlite.runtime.registry import (
    ChangeRegistry,
    RegistryStats,
    RegistrySubscription,
    matches,
)

__all__ = [
    "MutationGateway",
    "Listener",
    "Query",
    "Unsubscribe",
    "ChangeRegistry",
    "RegistryStats",
    "RegistrySubscription",
    "matches",
]
