"""
SQLAlchemy models backing the SQL document store.
Used by docstore_real when the store backend is configured as "sql".

Documents are kept as JSON blobs keyed by (collection, key); unique
constraints are materialised in their own table so the database rejects a
duplicate inside the same transaction that writes the document.
"""
from __future__ import annotations
from typing import Any, Dict
from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class DocumentRow(Base):
    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(128), primary_key=True)
    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    data: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)


class UniqueKeyRow(Base):
    __tablename__ = "document_unique_keys"

    constraint_name: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(String(512), primary_key=True)
    collection: Mapped[str] = mapped_column(String(128), nullable=False)
    doc_key: Mapped[str] = mapped_column(String(128), nullable=False, index=True)


class SequenceRow(Base):
    __tablename__ = "document_sequences"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
