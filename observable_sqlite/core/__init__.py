"""
Core types for observable-sqlite.

Provides the dependency/change-set vocabulary, structural equality
helpers, configuration and the exception hierarchy.
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
    DependencySet,
    Enumerated,
    Primitive,
    RecordId,
    TableName,
    Wildcard,
    coerce_change_set,
    coerce_dependencies,
)

__all__ = [
    "ObservableConfig",
    "dependencies_equal",
    "parameters_equal",
    "DependencyDeclarationError",
    "ObservableSQLiteError",
    "StoreClosedError",
    "WILDCARD",
    "ChangeSet",
    "Dependencies",
    "DependencySet",
    "Enumerated",
    "Primitive",
    "RecordId",
    "TableName",
    "Wildcard",
    "coerce_change_set",
    "coerce_dependencies",
]
