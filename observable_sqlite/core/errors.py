"""
Exceptions raised by observable-sqlite.

Errors coming from the store itself (``sqlite3.Error`` and friends) are
never wrapped; they propagate to the caller unchanged.
"""

from typing import Any, Optional


class ObservableSQLiteError(Exception):
    """Base class for errors raised by this package."""
    pass


class DependencyDeclarationError(ObservableSQLiteError, ValueError):
    """
    Error raised for a malformed dependency declaration or change set.

    This includes:
    - Table names that are not strings
    - Values that are neither '*' nor an iterable of record ids
    - Record ids that are not str or int
    """

    def __init__(self, message: str, table: Optional[Any] = None):
        super().__init__(message)
        self.table = table


class StoreClosedError(ObservableSQLiteError):
    """Error raised when a closed store is used."""
    pass
