"""
Document store contracts.

Defines the shapes exchanged with the hosted document datastore:
- snapshots of stored documents
- query predicates, ordering and resumption positions
- write batches committed as a single all-or-nothing unit
- unique constraints the store enforces at commit time

Both the in-memory store (docstore.py) and the SQLAlchemy-backed store
(docstore_real.py) implement `DocumentStore`. Services never talk to a
backend directly; they receive a `DocumentStore` instance.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

# Pseudo-field used to order by (and resume after) the document key.
KEY_FIELD = "__key__"

EQUALITY_OPS = frozenset({"==", "in", "array-contains"})
INEQUALITY_OPS = frozenset({"!=", "<", "<=", ">", ">=", "prefix"})
STORE_OPS = EQUALITY_OPS | INEQUALITY_OPS
# Applied by callers after the fetch; the store never executes these.
MEMORY_ONLY_OPS = frozenset({"contains"})

ASCENDING = "asc"
DESCENDING = "desc"


@dataclass(frozen=True)
class Snapshot:
    collection: str
    key: str
    data: Dict[str, Any]

    def get(self, field_name: str, default: Any = None) -> Any:
        if field_name == KEY_FIELD:
            return self.key
        return self.data.get(field_name, default)


@dataclass(frozen=True)
class Predicate:
    field: str
    op: str
    value: Any

    @property
    def is_inequality(self) -> bool:
        return self.op in INEQUALITY_OPS


@dataclass(frozen=True)
class OrderBy:
    field: str
    direction: str = ASCENDING

    @property
    def descending(self) -> bool:
        return self.direction == DESCENDING


@dataclass
class Query:
    """A single store listing request.

    `start_after` holds one value per entry in `order_by` (after the key
    tie-breaker has been appended), so a listing resumes strictly after that
    position under the same ordering.
    """

    collection: str
    predicates: List[Predicate] = field(default_factory=list)
    order_by: List[OrderBy] = field(default_factory=list)
    start_after: Optional[Tuple[Any, ...]] = None
    limit: Optional[int] = None

    def where(self, field_name: str, op: str, value: Any) -> "Query":
        self.predicates.append(Predicate(field_name, op, value))
        return self

    def ordered(self, field_name: str, direction: str = ASCENDING) -> "Query":
        self.order_by.append(OrderBy(field_name, direction))
        return self


@dataclass(frozen=True)
class UniqueConstraint:
    """At most one document in `collection` may share the values of `fields`
    among documents matching every `where` equality."""

    name: str
    collection: str
    fields: Tuple[str, ...]
    where: Tuple[Tuple[str, Any], ...] = ()

    def applies_to(self, data: Dict[str, Any]) -> bool:
        return all(data.get(k) == v for k, v in self.where)

    def key_for(self, data: Dict[str, Any]) -> Optional[str]:
        if not self.applies_to(data):
            return None
        values = [data.get(f) for f in self.fields]
        if any(v is None for v in values):
            return None
        return "|".join(str(v) for v in values)


# --------------------------------------------------------------------------- #
# Write batches
# --------------------------------------------------------------------------- #
CREATE = "create"
SET = "set"
UPDATE = "update"
DELETE = "delete"


@dataclass(frozen=True)
class WriteOp:
    kind: str
    collection: str
    key: str
    data: Optional[Dict[str, Any]] = None
    merge: bool = False


class WriteBatch:
    """Accumulates writes; nothing reaches the store until it is committed."""

    def __init__(self) -> None:
        self.ops: List[WriteOp] = []

    def create(self, collection: str, key: str, data: Dict[str, Any]) -> "WriteBatch":
        self.ops.append(WriteOp(CREATE, collection, key, dict(data)))
        return self

    def set(self, collection: str, key: str, data: Dict[str, Any], merge: bool = False) -> "WriteBatch":
        self.ops.append(WriteOp(SET, collection, key, dict(data), merge))
        return self

    def update(self, collection: str, key: str, data: Dict[str, Any]) -> "WriteBatch":
        self.ops.append(WriteOp(UPDATE, collection, key, dict(data)))
        return self

    def delete(self, collection: str, key: str) -> "WriteBatch":
        self.ops.append(WriteOp(DELETE, collection, key))
        return self

    def __len__(self) -> int:
        return len(self.ops)


# --------------------------------------------------------------------------- #
# Abstract store interface
# --------------------------------------------------------------------------- #
class DocumentStore(ABC):
    """Every document store backend must implement this interface."""

    def batch(self) -> WriteBatch:
        return WriteBatch()

    def new_key(self) -> str:
        """Client-side key for a document that will be written in a batch."""
        return uuid4().hex[:20]

    @abstractmethod
    async def get(self, collection: str, key: str) -> Optional[Snapshot]:
        """Fetch a single document, or None when absent."""

    @abstractmethod
    async def query(self, query: Query) -> List[Snapshot]:
        """Run a filtered, ordered, optionally resumed and limited listing."""

    @abstractmethod
    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Insert a document under a store-assigned key and return the key."""

    @abstractmethod
    async def commit_batch(self, batch: WriteBatch) -> None:
        """Apply every write in the batch, or none of them."""

    @abstractmethod
    async def next_sequence(self, name: str, floor: int = 0) -> int:
        """Atomically advance a named counter to max(current, floor) + 1."""

    async def exists(self, query: Query) -> bool:
        probe = Query(query.collection, list(query.predicates), list(query.order_by), limit=1)
        return bool(await self.query(probe))

    async def ping(self) -> bool:
        return True
