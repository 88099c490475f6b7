"""
Lightweight in-memory document store for local development and tests.

Implements the full `DocumentStore` interface so the services and the API
can run without a real database. Batches are staged on a copy of the
affected collections and swapped in only when every write and every unique
constraint checks out, which makes a commit all-or-nothing.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Dict, Iterable, List, Optional

from backoffice.database.interfaces import (
    CREATE,
    DELETE,
    SET,
    UPDATE,
    DocumentStore,
    Query,
    Snapshot,
    UniqueConstraint,
    WriteBatch,
)
from backoffice.database.query_eval import run_query
from backoffice.errors import DocumentExistsError, DocumentMissingError, UniqueConstraintViolation

logger = logging.getLogger(__name__)


class InMemoryDocumentStore(DocumentStore):
    """
    In-memory stand-in for the hosted document datastore.

    Collections are plain dicts of key -> document; documents handed out are
    deep copies so callers can never mutate stored state.
    """

    def __init__(self, constraints: Iterable[UniqueConstraint] = ()) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._sequences: Dict[str, int] = {}
        self._constraints: List[UniqueConstraint] = list(constraints)
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    async def get(self, collection: str, key: str) -> Optional[Snapshot]:
        doc = self._collections.get(collection, {}).get(key)
        if doc is None:
            return None
        return Snapshot(collection, key, copy.deepcopy(doc))

    async def query(self, query: Query) -> List[Snapshot]:
        docs = self._collections.get(query.collection, {})
        snapshots = [Snapshot(query.collection, k, copy.deepcopy(v)) for k, v in docs.items()]
        return run_query(snapshots, query)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #
    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        key = self.new_key()
        await self.commit_batch(self.batch().create(collection, key, data))
        return key

    async def commit_batch(self, batch: WriteBatch) -> None:
        async with self._lock:
            touched = {op.collection for op in batch.ops}
            staged = {name: copy.deepcopy(self._collections.get(name, {})) for name in touched}

            for op in batch.ops:
                docs = staged[op.collection]
                if op.kind == CREATE:
                    if op.key in docs:
                        raise DocumentExistsError(op.collection, op.key)
                    docs[op.key] = copy.deepcopy(op.data)
                elif op.kind == SET:
                    if op.merge and op.key in docs:
                        docs[op.key].update(copy.deepcopy(op.data))
                    else:
                        docs[op.key] = copy.deepcopy(op.data)
                elif op.kind == UPDATE:
                    if op.key not in docs:
                        raise DocumentMissingError(op.collection, op.key)
                    docs[op.key].update(copy.deepcopy(op.data))
                elif op.kind == DELETE:
                    docs.pop(op.key, None)

            for constraint in self._constraints:
                if constraint.collection in staged:
                    self._check_constraint(constraint, staged[constraint.collection])

            self._collections.update(staged)
        logger.debug("Committed batch of %d writes across %s", len(batch), sorted(touched))

    async def next_sequence(self, name: str, floor: int = 0) -> int:
        async with self._lock:
            value = max(self._sequences.get(name, 0), floor) + 1
            self._sequences[name] = value
            return value

    @staticmethod
    def _check_constraint(constraint: UniqueConstraint, docs: Dict[str, Dict[str, Any]]) -> None:
        seen: Dict[str, str] = {}
        for key, data in docs.items():
            unique_key = constraint.key_for(data)
            if unique_key is None:
                continue
            if unique_key in seen:
                raise UniqueConstraintViolation(constraint.name, unique_key)
            seen[unique_key] = key

    # ------------------------------------------------------------------ #
    # Seeding helpers (tests, local demos)
    # ------------------------------------------------------------------ #
    def seed(self, collection: str, key: str, data: Dict[str, Any]) -> None:
        """Write a document directly, bypassing batches and constraints."""
        self._collections.setdefault(collection, {})[key] = copy.deepcopy(data)

    def count(self, collection: str) -> int:
        return len(self._collections.get(collection, {}))
