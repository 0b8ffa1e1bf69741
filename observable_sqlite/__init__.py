"""
observable-sqlite - Reactive queries over SQLite.

Queries declare the tables (and optionally record ids) they read; writes
declare what they changed. Every write re-runs exactly the live queries
whose dependencies it touches and pushes the new rows to their listeners.

Layers:
- Core: dependency/change-set types, equality helpers, config, errors
- Storage: the store boundary and the sqlite3-backed store
- Runtime: change registry, live queries, write gateway
- Interface: ``init()`` and the ``ObservableDB`` client
"""
from observable_sqlite.core.config import ObservableConfig
from observable_sqlite.core.equality import dependencies_equal, parameters_equal
from observable_sqlite.core.errors import (
    DependencyDeclarationError,
    ObservableSQLiteError,
    StoreClosedError,
)
from observable_sqlite.core.types import (
    WILDCARD,
    ChangeSet,
    Dependencies,
    Enumerated,
    Wildcard,
)
from observable_sqlite.storage.engine import ExecutionResult, Statement, Store
from observable_sqlite.storage.sqlite import SQLiteStore
from observable_sqlite.runtime.registry import ChangeRegistry, RegistrySubscription
from observable_sqlite.runtime.query import Query
from observable_sqlite.runtime.mutation import MutationGateway
from observable_sqlite.interface.client import ObservableDB, init

__version__ = "0.1.0"

__all__ = [
    # Config & errors
    "ObservableConfig",
    "ObservableSQLiteError",
    "DependencyDeclarationError",
    "StoreClosedError",
    # Types
    "WILDCARD",
    "Wildcard",
    "Enumerated",
    "ChangeSet",
    "Dependencies",
    "dependencies_equal",
    "parameters_equal",
    # Storage
    "Store",
    "Statement",
    "ExecutionResult",
    "SQLiteStore",
    # Runtime
    "ChangeRegistry",
    "RegistrySubscription",
    "Query",
    "MutationGateway",
    # Client
    "ObservableDB",
    "init",
]
