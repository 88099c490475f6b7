"""
SQL-backed document store for production when the store backend is "sql" and
DATABASE_URL is set (Postgres via psycopg2; SQLite works for local runs).
Implements the same interface as backoffice.database.docstore (in-memory stub).
"""

from __future__ import annotations

import asyncio
import logging
import re
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import ColumnElement, create_engine, delete, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from backoffice.database.interfaces import (
    CREATE,
    DELETE,
    KEY_FIELD,
    SET,
    UPDATE,
    DocumentStore,
    Predicate,
    Query,
    Snapshot,
    UniqueConstraint,
    WriteBatch,
)
from backoffice.database.models import Base, DocumentRow, SequenceRow, UniqueKeyRow
from backoffice.database.query_eval import run_query, validate_query
from backoffice.errors import (
    DatastoreError,
    DocumentExistsError,
    DocumentMissingError,
    UniqueConstraintViolation,
)

logger = logging.getLogger(__name__)


def _normalize_connection_string(s: str) -> str:
    """Strip common mistakes: 'psql \'...\'', extra quotes, whitespace."""
    s = s.strip()
    if re.match(r"^psql\s+", s, re.IGNORECASE):
        s = re.sub(r"^psql\s+", "", s, flags=re.IGNORECASE).strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        s = s[1:-1].strip()
    return s


def _pushdown_clause(predicate: Predicate) -> Optional[ColumnElement[bool]]:
    """SQL form of a string equality or `in` predicate; None when it stays in Python."""
    if predicate.field == KEY_FIELD:
        column = DocumentRow.key
    else:
        column = DocumentRow.data[predicate.field].as_string()
    if predicate.op == "==" and isinstance(predicate.value, str):
        return column == predicate.value
    if predicate.op == "in" and predicate.value and all(isinstance(v, str) for v in predicate.value):
        return column.in_(list(predicate.value))
    return None


class SQLDocumentStore(DocumentStore):
    """
    Document store on top of SQLAlchemy. Every blocking database call runs
    in a worker thread so the event loop stays responsive.
    """

    def __init__(self, connection_string: str, constraints: Iterable[UniqueConstraint] = ()) -> None:
        connection_string = _normalize_connection_string(connection_string)
        if connection_string.startswith("sqlite"):
            self.engine = create_engine(connection_string, connect_args={"check_same_thread": False})
        else:
            self.engine = create_engine(connection_string, pool_pre_ping=True, pool_size=5, max_overflow=10)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine, expire_on_commit=False)
        self._constraints: List[UniqueConstraint] = list(constraints)

    def create_tables(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def _session(self) -> Session:
        s = self.SessionLocal()
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    async def _run(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as exc:
            raise DatastoreError(f"Database error: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    def _get_sync(self, collection: str, key: str) -> Optional[Snapshot]:
        with self._session() as s:
            row = s.get(DocumentRow, (collection, key))
            if row is None:
                return None
            return Snapshot(collection, key, dict(row.data))

    async def get(self, collection: str, key: str) -> Optional[Snapshot]:
        return await self._run(self._get_sync, collection, key)

    def _scan_sync(self, query: Query) -> List[Snapshot]:
        stmt = select(DocumentRow.key, DocumentRow.data).where(DocumentRow.collection == query.collection)
        clauses = [_pushdown_clause(p) for p in query.predicates]
        pushed = [c for c in clauses if c is not None]
        if pushed:
            stmt = stmt.where(*pushed)
        # Unordered listings filtered entirely in SQL can stop at the limit.
        if query.limit is not None and not query.order_by and query.start_after is None and len(pushed) == len(clauses):
            stmt = stmt.order_by(DocumentRow.key).limit(query.limit)
        with self._session() as s:
            return [Snapshot(query.collection, key, dict(data)) for key, data in s.execute(stmt).all()]

    async def query(self, query: Query) -> List[Snapshot]:
        # Reject up front so invalid queries fail without touching the database.
        validate_query(query)
        snapshots = await self._run(self._scan_sync, query)
        # Every predicate is re-checked in process; SQL only narrows the scan.
        return run_query(snapshots, query)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #
    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        key = self.new_key()
        await self.commit_batch(self.batch().create(collection, key, data))
        return key

    def _commit_sync(self, batch: WriteBatch) -> None:
        with self._session() as s:
            final: Dict[Tuple[str, str], Optional[Dict[str, Any]]] = {}
            for op in batch.ops:
                ident = (op.collection, op.key)
                if ident in final:
                    current = final[ident]
                else:
                    row = s.get(DocumentRow, ident)
                    current = dict(row.data) if row is not None else None

                if op.kind == CREATE:
                    if current is not None:
                        raise DocumentExistsError(op.collection, op.key)
                    final[ident] = dict(op.data)
                elif op.kind == SET:
                    final[ident] = {**current, **op.data} if (op.merge and current is not None) else dict(op.data)
                elif op.kind == UPDATE:
                    if current is None:
                        raise DocumentMissingError(op.collection, op.key)
                    final[ident] = {**current, **op.data}
                elif op.kind == DELETE:
                    final[ident] = None

            for (collection, key), data in final.items():
                row = s.get(DocumentRow, (collection, key))
                if data is None:
                    if row is not None:
                        s.delete(row)
                elif row is None:
                    s.add(DocumentRow(collection=collection, key=key, data=data))
                else:
                    row.data = data
            s.flush()

            self._sync_unique_keys(s, final)

    def _sync_unique_keys(self, s: Session, final: Dict[Tuple[str, str], Optional[Dict[str, Any]]]) -> None:
        for constraint in self._constraints:
            touched = [(key, data) for (collection, key), data in final.items() if collection == constraint.collection]
            if not touched:
                continue
            s.execute(
                delete(UniqueKeyRow)
                .where(UniqueKeyRow.constraint_name == constraint.name)
                .where(UniqueKeyRow.doc_key.in_([key for key, _ in touched]))
            )
            for key, data in touched:
                value = constraint.key_for(data) if data is not None else None
                if value is None:
                    continue
                try:
                    s.execute(
                        insert(UniqueKeyRow).values(
                            constraint_name=constraint.name,
                            value=value,
                            collection=constraint.collection,
                            doc_key=key,
                        )
                    )
                except IntegrityError as exc:
                    raise UniqueConstraintViolation(constraint.name, value) from exc

    async def commit_batch(self, batch: WriteBatch) -> None:
        await self._run(self._commit_sync, batch)
        logger.debug("Committed batch of %d writes", len(batch))

    def _next_sequence_sync(self, name: str, floor: int) -> int:
        with self._session() as s:
            stmt = select(SequenceRow).where(SequenceRow.name == name).with_for_update()
            row = s.execute(stmt).scalar_one_or_none()
            if row is None:
                row = SequenceRow(name=name, value=floor + 1)
                s.add(row)
            else:
                row.value = max(row.value, floor) + 1
            s.flush()
            return row.value

    async def next_sequence(self, name: str, floor: int = 0) -> int:
        return await self._run(self._next_sequence_sync, name, floor)

    def _ping_sync(self) -> bool:
        with self._session() as s:
            s.execute(select(1))
        return True

    async def ping(self) -> bool:
        try:
            return await self._run(self._ping_sync)
        except DatastoreError:
            logger.warning("SQL document store ping failed", exc_info=True)
            return False
