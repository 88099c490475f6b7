"""
Document store layer.

- interfaces: snapshots, queries, write batches, unique constraints, the
  abstract DocumentStore
- docstore / docstore_real: in-memory and SQLAlchemy backends
- redis / redis_real: in-memory and Redis caches for search session state
"""

from .interfaces import DocumentStore, Predicate, Query, Snapshot, UniqueConstraint, WriteBatch

__all__ = [
    "DocumentStore",
    "Predicate",
    "Query",
    "Snapshot",
    "UniqueConstraint",
    "WriteBatch",
]
