"""
Query composition under the datastore's single-inequality rule.

The hosted datastore accepts range/prefix predicates on one field only, and
that field must lead the ordering. Callers, however, filter on whatever they
like (a date range plus a name prefix, a status plus a price band). The
composer decides which predicates the store can run and which ones have to
be applied to the fetched rows instead:

- equality predicates always go to the store;
- inequality/prefix predicates go to the store for one field only. The sort
  field wins when it carries one, otherwise the first such field in request
  order. Everything else is applied in memory;
- substring (`contains`) predicates are always applied in memory;
- None, blank strings and the "all" sentinel never become predicates.

Store ordering by the sort field is requested only when it cannot conflict
with the pushed inequality; otherwise rows come back in key order and are
re-sorted in memory by the executor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from backoffice.database.interfaces import (
    ASCENDING,
    DESCENDING,
    EQUALITY_OPS,
    INEQUALITY_OPS,
    MEMORY_ONLY_OPS,
    OrderBy,
    Predicate,
    Query,
)
from backoffice.errors import InvalidQueryError
from backoffice.validation import normalize_filter_value

logger = logging.getLogger(__name__)

SUPPORTED_OPS = EQUALITY_OPS | INEQUALITY_OPS | MEMORY_ONLY_OPS


@dataclass(frozen=True)
class SortSpec:
    field: str
    direction: str = ASCENDING

    def __post_init__(self) -> None:
        if self.direction not in (ASCENDING, DESCENDING):
            raise InvalidQueryError(f"Sort direction must be '{ASCENDING}' or '{DESCENDING}'")


@dataclass
class ComposedQuery:
    collection: str
    sort: SortSpec
    store_predicates: List[Predicate] = field(default_factory=list)
    memory_predicates: List[Predicate] = field(default_factory=list)
    # False when rows must be sorted in memory after the fetch.
    store_ordered: bool = True

    @property
    def predicates(self) -> List[Predicate]:
        return self.store_predicates + self.memory_predicates

    @property
    def order_by(self) -> List[OrderBy]:
        if self.store_ordered:
            return [OrderBy(self.sort.field, self.sort.direction)]
        return []

    def store_query(self, start_after=None, limit: Optional[int] = None) -> Query:
        return Query(
            collection=self.collection,
            predicates=list(self.store_predicates),
            order_by=self.order_by,
            start_after=start_after,
            limit=limit,
        )


def _keep(predicate: Predicate) -> Optional[Predicate]:
    if predicate.op not in SUPPORTED_OPS:
        raise InvalidQueryError(f"Unsupported operator '{predicate.op}'")
    if predicate.op == "in":
        raw_values = predicate.value
        if raw_values is None or isinstance(raw_values, str):
            raw_values = [raw_values]
        values = [v for v in raw_values if normalize_filter_value(v) is not None]
        return Predicate(predicate.field, predicate.op, values) if values else None
    value = normalize_filter_value(predicate.value)
    if value is None:
        return None
    return Predicate(predicate.field, predicate.op, value)


def compose(collection: str, filters: Iterable[Predicate], sort: SortSpec) -> ComposedQuery:
    kept: List[Predicate] = []
    for raw in filters:
        predicate = _keep(raw)
        if predicate is not None:
            kept.append(predicate)

    inequality_fields: List[str] = []
    for p in kept:
        if p.is_inequality and p.field not in inequality_fields:
            inequality_fields.append(p.field)

    pushed_field: Optional[str] = None
    if sort.field in inequality_fields:
        pushed_field = sort.field
    elif inequality_fields:
        pushed_field = inequality_fields[0]

    composed = ComposedQuery(collection=collection, sort=sort)
    for p in kept:
        if p.op in MEMORY_ONLY_OPS or (p.is_inequality and p.field != pushed_field):
            composed.memory_predicates.append(p)
        else:
            composed.store_predicates.append(p)

    composed.store_ordered = pushed_field is None or pushed_field == sort.field
    if composed.memory_predicates or not composed.store_ordered:
        logger.debug(
            "Composed %s query: %d store predicates, %d in-memory, store_ordered=%s",
            collection,
            len(composed.store_predicates),
            len(composed.memory_predicates),
            composed.store_ordered,
        )
    return composed
