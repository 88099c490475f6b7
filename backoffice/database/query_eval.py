"""
Predicate evaluation, ordering and resumption shared by the store backends.

The hosted datastore only accepts queries with a single inequality field
whose ordering leads the order-by list; `validate_query` reproduces those
rules so that the in-memory and SQL stores reject the same queries the
hosted one would.
"""

from __future__ import annotations

import functools
from typing import Any, Iterable, List, Sequence, Tuple

from backoffice.database.interfaces import (
    KEY_FIELD,
    MEMORY_ONLY_OPS,
    STORE_OPS,
    OrderBy,
    Predicate,
    Query,
    Snapshot,
)
from backoffice.errors import InvalidQueryError


def _type_rank(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1
    if isinstance(value, (int, float)):
        return 2
    if isinstance(value, str):
        return 3
    return 4


def compare_values(a: Any, b: Any) -> int:
    """Total order across mixed types: None < bool < number < str < other."""
    ra, rb = _type_rank(a), _type_rank(b)
    if ra != rb:
        return -1 if ra < rb else 1
    if ra == 0:
        return 0
    if ra == 4:
        a, b = str(a), str(b)
    if a == b:
        return 0
    return -1 if a < b else 1


def matches(snapshot: Snapshot, predicate: Predicate) -> bool:
    value = snapshot.get(predicate.field)
    target = predicate.value
    op = predicate.op

    if op == "==":
        return value == target
    if op == "!=":
        return value is not None and value != target
    if op == "in":
        return value in (target or ())
    if op == "array-contains":
        return isinstance(value, (list, tuple)) and target in value
    if op == "prefix":
        return isinstance(value, str) and value.startswith(str(target))
    if op == "contains":
        return isinstance(value, str) and str(target).lower() in value.lower()

    # Range operators never match a missing field or a value of another type.
    if value is None or _type_rank(value) != _type_rank(target):
        return False
    cmp = compare_values(value, target)
    if op == "<":
        return cmp < 0
    if op == "<=":
        return cmp <= 0
    if op == ">":
        return cmp > 0
    if op == ">=":
        return cmp >= 0
    raise InvalidQueryError(f"Unsupported operator '{op}'")


def matches_all(snapshot: Snapshot, predicates: Iterable[Predicate]) -> bool:
    return all(matches(snapshot, p) for p in predicates)


def with_key_tiebreak(order_by: Sequence[OrderBy]) -> List[OrderBy]:
    """Append the document key so every ordering is total."""
    ordering = list(order_by)
    if not any(o.field == KEY_FIELD for o in ordering):
        direction = ordering[-1].direction if ordering else "asc"
        ordering.append(OrderBy(KEY_FIELD, direction))
    return ordering


def position_of(snapshot: Snapshot, order_by: Sequence[OrderBy]) -> Tuple[Any, ...]:
    return tuple(snapshot.get(o.field) for o in order_by)


def compare_positions(a: Sequence[Any], b: Sequence[Any], order_by: Sequence[OrderBy]) -> int:
    for left, right, order in zip(a, b, order_by):
        cmp = compare_values(left, right)
        if cmp:
            return -cmp if order.descending else cmp
    return 0


def sort_snapshots(snapshots: List[Snapshot], order_by: Sequence[OrderBy]) -> List[Snapshot]:
    ordering = with_key_tiebreak(order_by)

    def _cmp(a: Snapshot, b: Snapshot) -> int:
        return compare_positions(position_of(a, ordering), position_of(b, ordering), ordering)

    return sorted(snapshots, key=functools.cmp_to_key(_cmp))


def validate_query(query: Query) -> None:
    inequality_fields = []
    for p in query.predicates:
        if p.op in MEMORY_ONLY_OPS:
            raise InvalidQueryError(f"Operator '{p.op}' is not supported by the datastore")
        if p.op not in STORE_OPS:
            raise InvalidQueryError(f"Unsupported operator '{p.op}'")
        if p.is_inequality and p.field not in inequality_fields:
            inequality_fields.append(p.field)

    if len(inequality_fields) > 1:
        raise InvalidQueryError(
            "Inequality filters on more than one field: " + ", ".join(inequality_fields)
        )
    if inequality_fields and query.order_by and query.order_by[0].field != inequality_fields[0]:
        raise InvalidQueryError(
            f"First order-by field must be '{inequality_fields[0]}' when it carries an inequality filter"
        )
    if query.limit is not None and query.limit < 0:
        raise InvalidQueryError("limit must not be negative")


def run_query(snapshots: Iterable[Snapshot], query: Query) -> List[Snapshot]:
    """Filter, order, resume and limit an in-process collection scan."""
    validate_query(query)
    ordering = with_key_tiebreak(query.order_by)
    rows = [s for s in snapshots if matches_all(s, query.predicates)]
    # Ordering by a field excludes documents that lack it, as the datastore does.
    for o in query.order_by:
        if o.field != KEY_FIELD:
            rows = [s for s in rows if o.field in s.data]
    rows = sort_snapshots(rows, ordering)

    if query.start_after is not None:
        anchor = tuple(query.start_after)
        if len(anchor) != len(ordering):
            raise InvalidQueryError("start_after must provide one value per order-by field")
        rows = [s for s in rows if compare_positions(position_of(s, ordering), anchor, ordering) > 0]

    if query.limit is not None:
        rows = rows[: query.limit]
    return rows
