"""
Service wiring for the HTTP surface.

Backends are chosen here and nowhere else: the in-memory store and cache for
local development and tests, the SQL store and Redis cache when the
configuration asks for them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Header, Request

from backoffice.aggregation.fan_out import FanOutAssembler
from backoffice.aggregation.identifiers import IdentifierGenerator
from backoffice.aggregation.relationships import RelationshipResolver
from backoffice.aggregation.writer import AtomicWriteCoordinator
from backoffice.config import BackOfficeConfig, load_backoffice_config
from backoffice.database.interfaces import DocumentStore
from backoffice.records.contracts import MEMBER_CONSTRAINTS, RELATIONSHIP_CONSTRAINTS
from backoffice.search.cursor import CursorManager
from backoffice.search.executor import PagedExecutor
from backoffice.services.catalogue_service import CatalogueService
from backoffice.services.claims_service import ClaimService
from backoffice.services.contracts_service import ContractService
from backoffice.services.payments_service import PaymentService

logger = logging.getLogger(__name__)

STORE_CONSTRAINTS = RELATIONSHIP_CONSTRAINTS + MEMBER_CONSTRAINTS


@dataclass
class Services:
    config: BackOfficeConfig
    store: DocumentStore
    cache: Any
    claims: ClaimService
    contracts: ContractService
    catalogue: CatalogueService
    payments: PaymentService


def build_store(cfg: BackOfficeConfig) -> DocumentStore:
    if cfg.store.backend == "sql":
        from backoffice.database.docstore_real import SQLDocumentStore

        store = SQLDocumentStore(cfg.store.database_url, constraints=STORE_CONSTRAINTS)
        if cfg.store.create_tables:
            store.create_tables()
        logger.info("Using SQL document store")
        return store

    from backoffice.database.docstore import InMemoryDocumentStore

    logger.info("Using in-memory document store")
    return InMemoryDocumentStore(constraints=STORE_CONSTRAINTS)


def build_cache(cfg: BackOfficeConfig) -> Any:
    if cfg.cache.backend == "redis" and cfg.cache.redis_url:
        from backoffice.database.redis_real import RedisCache

        return RedisCache(url=cfg.cache.redis_url, default_ttl=cfg.cache.session_ttl_seconds)

    from backoffice.database.redis import RedisCache

    return RedisCache(default_ttl=cfg.cache.session_ttl_seconds)


def build_services(
    cfg: Optional[BackOfficeConfig] = None,
    store: Optional[DocumentStore] = None,
    cache: Any = None,
) -> Services:
    cfg = cfg or load_backoffice_config()
    store = store or build_store(cfg)
    cache = cache if cache is not None else build_cache(cfg)

    relationships = RelationshipResolver(store)
    assembler = FanOutAssembler(store, relationships, concurrency_limit=cfg.search.fan_out_concurrency)
    writer = AtomicWriteCoordinator(store, IdentifierGenerator(store))
    cursors = CursorManager(cache, session_ttl=cfg.cache.session_ttl_seconds)
    executor = PagedExecutor(store, cursors)

    return Services(
        config=cfg,
        store=store,
        cache=cache,
        claims=ClaimService(store, writer, assembler, executor, cfg.search),
        contracts=ContractService(store, writer, assembler, relationships, executor, cfg.search),
        catalogue=CatalogueService(store, writer, executor, cfg.search),
        payments=PaymentService(store, writer, cfg.search),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_role(x_user_role: Optional[str] = Header(default=None, alias="X-User-Role")) -> Optional[str]:
    return x_user_role
