"""
Interface layer for observable-sqlite.

Provides the client facade and the ``init`` entry point.
"""

from observable_sqlite.interface.client import ObservableDB, init

__all__ = [
    "ObservableDB",
    "init",
]
