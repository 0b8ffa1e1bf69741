"""
Structural equality for query configuration.

Used by ``Query.update`` to skip redundant re-binds, re-subscriptions and
re-executions when the caller passes values equal to the current ones.
"""

from __future__ import annotations

from collections.abc import Sequence

from observable_sqlite.core.types import Dependencies, Enumerated, Primitive, Wildcard


def _same_primitive(a: Primitive, b: Primitive) -> bool:
    # 1, 1.0 and True compare equal in Python but bind differently
    return type(a) is type(b) and a == b


def parameters_equal(a: Sequence[Primitive], b: Sequence[Primitive]) -> bool:
    """Check if two parameter sequences are positionally identical."""
    if a is b:
        return True
    if len(a) != len(b):
        return False
    return all(_same_primitive(x, y) for x, y in zip(a, b))


def dependencies_equal(a: Dependencies, b: Dependencies) -> bool:
    """
    Check if two dependency declarations are equivalent.

    Both must name the same tables, and per table either both are the
    wildcard or both enumerate the same record ids (order irrelevant).
    """
    if a is b:
        return True
    if a.keys() != b.keys():
        return False

    for table, ids in a.items():
        other = b[table]
        if isinstance(ids, Wildcard) or isinstance(other, Wildcard):
            if not (isinstance(ids, Wildcard) and isinstance(other, Wildcard)):
                return False
        elif isinstance(ids, Enumerated) and isinstance(other, Enumerated):
            if ids.ids != other.ids:
                return False
        else:
            return False
    return True
