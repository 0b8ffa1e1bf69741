"""
Core data types for observable-sqlite.

Queries declare what they read as ``Dependencies`` and writes declare what
they touched as a ``ChangeSet``. Both are keyed by table name and hold either
the wildcard marker or a collection of record ids:

    Dependencies:  {"users": WILDCARD, "todos": Enumerated({1, 2})}
    ChangeSet:     {"users": (7,), "todos": WILDCARD}

Callers may pass plain Python values (``"*"``, sets, lists, tuples); the
``coerce_*`` helpers normalize them into the tagged variants used internally.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from observable_sqlite.core.errors import DependencyDeclarationError


Primitive = Union[str, int, float, bool, None]
RecordId = Union[str, int]
TableName = str
SQL = str


class Wildcard(str, Enum):
    """Marker matching every record of a table."""

    WILDCARD = "*"

    def __repr__(self) -> str:
        return "WILDCARD"


WILDCARD = Wildcard.WILDCARD


@dataclass(frozen=True)
class Enumerated:
    """A finite, unordered set of record ids within one table."""

    ids: frozenset[RecordId]

    def __contains__(self, record_id: object) -> bool:
        return record_id in self.ids

    def __len__(self) -> int:
        return len(self.ids)

    def intersects(self, record_ids: Iterable[RecordId]) -> bool:
        """Check if any of ``record_ids`` is a member of this set."""
        return any(record_id in self.ids for record_id in record_ids)


DependencySet = Union[Wildcard, Enumerated]
Dependencies = dict[TableName, DependencySet]
ChangeSet = dict[TableName, Union[Wildcard, tuple[RecordId, ...]]]


def _is_wildcard(value: Any) -> bool:
    return value is WILDCARD or (isinstance(value, str) and value == "*")


def _check_record_id(table: Any, record_id: Any) -> RecordId:
    # bool is an int subclass, but True is not a record id
    if isinstance(record_id, bool) or not isinstance(record_id, (str, int)):
        raise DependencyDeclarationError(
            f"Record id {record_id!r} for table {table!r} must be a str or int",
            table=table,
        )
    return record_id


def _check_table(table: Any) -> TableName:
    if not isinstance(table, str):
        raise DependencyDeclarationError(
            f"Table name {table!r} must be a string",
            table=table,
        )
    return table


def _record_ids(table: TableName, value: Any) -> list[RecordId]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise DependencyDeclarationError(
            f"Value {value!r} for table {table!r} must be '*' or an iterable of record ids",
            table=table,
        )
    return [_check_record_id(table, record_id) for record_id in value]


def coerce_dependencies(raw: Optional[Mapping[Any, Any]]) -> Dependencies:
    """
    Normalize a caller-supplied dependency declaration.

    Args:
        raw: Mapping of table name to ``"*"``/``WILDCARD`` or an iterable
             of record ids. ``None`` means "depends on nothing".

    Returns:
        A fresh ``Dependencies`` dict

    Raises:
        DependencyDeclarationError: If a table name or value is malformed
    """
    if raw is None:
        return {}

    dependencies: Dependencies = {}
    for table, value in raw.items():
        table = _check_table(table)
        if _is_wildcard(value):
            dependencies[table] = WILDCARD
        elif isinstance(value, Enumerated):
            dependencies[table] = value
        else:
            dependencies[table] = Enumerated(frozenset(_record_ids(table, value)))
    return dependencies


def coerce_change_set(raw: Optional[Mapping[Any, Any]]) -> ChangeSet:
    """
    Normalize a caller-supplied change set.

    Record ids keep the order the caller gave them in.

    Raises:
        DependencyDeclarationError: If a table name or value is malformed
    """
    if raw is None:
        return {}

    changes: ChangeSet = {}
    for table, value in raw.items():
        table = _check_table(table)
        if _is_wildcard(value):
            changes[table] = WILDCARD
        elif isinstance(value, Enumerated):
            changes[table] = tuple(value.ids)
        else:
            changes[table] = tuple(_record_ids(table, value))
    return changes
