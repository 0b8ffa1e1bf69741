"""
Storage layer for observable-sqlite.

Defines the store boundary the reactive layer consumes, with the
sqlite3-backed implementation used by default.
"""

from observable_sqlite.storage.engine import ExecutionResult, Row, Statement, Store
from observable_sqlite.storage.sqlite import SQLiteStatement, SQLiteStore

__all__ = [
    "ExecutionResult",
    "Row",
    "Statement",
    "Store",
    "SQLiteStatement",
    "SQLiteStore",
]
