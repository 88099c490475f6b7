"""
Catalogue maintenance: policies, catering options, categories and features.

Entries get generated ids (POL001, CAT001, CTG001, FEX001). Deletes are
refused while another record still references the entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from backoffice.aggregation.identifiers import CATEGORY_ID, CATERING_ID, FEATURE_ID, POLICY_ID, IdentifierFormat
from backoffice.aggregation.writer import AtomicWriteCoordinator
from backoffice.config import SearchConfig
from backoffice.database.interfaces import ASCENDING, KEY_FIELD, DocumentStore, Predicate, Query, Snapshot
from backoffice.errors import NotFoundError, ReferentialConflictError
from backoffice.records.catalogue import (
    CATEGORY,
    CATERING,
    FEATURES,
    POLICIES,
    POLICY_STATUSES,
    Category,
    CateringOption,
    Feature,
    Policy,
)
from backoffice.records.contracts import CONTRACTS
from backoffice.search.executor import PagedExecutor
from backoffice.search.query_composer import SortSpec, compose
from backoffice.services.common import SearchResult, require_write_role, resolve_page_size, resolve_sort
from backoffice.validation import (
    add_error,
    optional_str,
    parse_amount,
    parse_int,
    parse_str_list,
    raise_if_errors,
    require_str,
    validate_in,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceGuard:
    """Documents in `collection` whose `field` matches the entry block its deletion."""

    collection: str
    field: str
    op: str
    label: str


@dataclass(frozen=True)
class CatalogueKind:
    name: str
    fmt: IdentifierFormat
    from_snapshot: Callable[[Snapshot], Any]
    guards: Tuple[ReferenceGuard, ...]


POLICY_KIND = CatalogueKind(
    "policy",
    POLICY_ID,
    Policy.from_snapshot,
    (ReferenceGuard(CONTRACTS, "policiesId", "==", "contracts"),),
)
CATERING_KIND = CatalogueKind(
    "catering option",
    CATERING_ID,
    CateringOption.from_snapshot,
    (ReferenceGuard(CONTRACTS, "cateringOptionIds", "array-contains", "contracts"),),
)
CATEGORY_KIND = CatalogueKind(
    "category",
    CATEGORY_ID,
    Category.from_snapshot,
    (
        ReferenceGuard(POLICIES, "categoryId", "==", "policies"),
        ReferenceGuard(CATERING, "categoryId", "==", "catering options"),
    ),
)
FEATURE_KIND = CatalogueKind(
    "feature",
    FEATURE_ID,
    Feature.from_snapshot,
    (
        ReferenceGuard(POLICIES, "features", "array-contains", "policies"),
        ReferenceGuard(CATERING, "features", "array-contains", "catering options"),
    ),
)

POLICY_SORT_FIELDS = {
    "name": "name",
    "premium": "premium",
    "coverAmount": "coverAmount",
    "maxDependents": "maxDependents",
    "status": "status",
}
DEFAULT_POLICY_SORT = SortSpec("name", ASCENDING)


class CatalogueService:
    def __init__(
        self,
        store: DocumentStore,
        writer: AtomicWriteCoordinator,
        executor: PagedExecutor,
        search_cfg: Optional[SearchConfig] = None,
    ) -> None:
        self.store = store
        self.writer = writer
        self.executor = executor
        self.search_cfg = search_cfg or SearchConfig()

    # ------------------------------------------------------------------ #
    # Shared plumbing
    # ------------------------------------------------------------------ #
    async def _list(self, kind: CatalogueKind) -> List[Any]:
        snaps = await self.store.query(Query(kind.fmt.collection).ordered(KEY_FIELD))
        return [kind.from_snapshot(s) for s in snaps]

    async def _create(self, kind: CatalogueKind, document: Dict[str, Any]) -> Any:
        entry_id = await self.writer.write_catalogue_entry(kind.fmt, document)
        snap = await self.store.get(kind.fmt.collection, entry_id)
        return kind.from_snapshot(snap)

    async def _check_references(self, ids: List[str], collection: str, field_name: str, errors: Dict[str, str]) -> None:
        for entry_id in ids:
            if await self.store.get(collection, entry_id) is None:
                add_error(errors, field_name, f"{entry_id} does not exist")

    async def _delete(self, kind: CatalogueKind, entry_id: str, role: Optional[str]) -> None:
        require_write_role(role, f"delete a {kind.name}")
        if await self.store.get(kind.fmt.collection, entry_id) is None:
            raise NotFoundError(kind.fmt.collection, entry_id, f"{kind.name.capitalize()} {entry_id} not found")
        for guard in kind.guards:
            if await self.store.exists(Query(guard.collection).where(guard.field, guard.op, entry_id)):
                logger.info("Refusing to delete %s %s: still referenced by %s", kind.name, entry_id, guard.label)
                raise ReferentialConflictError(
                    kind.fmt.collection,
                    entry_id,
                    guard.label,
                    f"This {kind.name} is linked to existing {guard.label} and cannot be deleted.",
                )
        await self.writer.delete_catalogue_entry(kind.fmt.collection, entry_id)

    # ------------------------------------------------------------------ #
    # Policies
    # ------------------------------------------------------------------ #
    async def create_policy(self, payload: Dict[str, Any], role: Optional[str]) -> Policy:
        require_write_role(role, "create policies")
        errors: Dict[str, str] = {}
        name = require_str(payload, "name", errors, label="Name")
        premium = parse_amount(payload, "premium", errors, min_value=0, required=True)
        cover_amount = parse_amount(payload, "coverAmount", errors, min_value=0, required=True)
        max_dependents = parse_int(payload, "maxDependents", errors, min_value=0)
        status = validate_in(payload.get("status") or "active", POLICY_STATUSES, errors, "status")
        features = parse_str_list(payload.get("features"), errors, "features")
        category_id = optional_str(payload, "categoryId")
        raise_if_errors(errors)

        await self._check_references(features, FEATURES, "features", errors)
        if category_id:
            await self._check_references([category_id], CATEGORY, "categoryId", errors)
        raise_if_errors(errors)

        policy = Policy(
            policy_id="",
            name=name,
            description=optional_str(payload, "description"),
            premium=premium,
            cover_amount=cover_amount,
            max_dependents=max_dependents,
            status=status,
            features=features,
            category_id=category_id,
        )
        return await self._create(POLICY_KIND, policy.to_document())

    async def list_policies(self) -> List[Policy]:
        return await self._list(POLICY_KIND)

    async def get_policy(self, policy_id: str) -> Policy:
        snap = await self.store.get(POLICIES, policy_id)
        if snap is None:
            raise NotFoundError(POLICIES, policy_id, f"Policy {policy_id} not found")
        return Policy.from_snapshot(snap)

    async def search_policies(
        self,
        *,
        name: Optional[str] = None,
        status: Optional[str] = None,
        category_id: Optional[str] = None,
        min_premium: Optional[float] = None,
        max_premium: Optional[float] = None,
        min_cover: Optional[float] = None,
        max_cover: Optional[float] = None,
        min_dependents: Optional[int] = None,
        sort: Optional[str] = None,
        direction: Optional[str] = None,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> SearchResult:
        filters = [
            Predicate("name", "contains", name),
            Predicate("status", "==", status),
            Predicate("categoryId", "==", category_id),
            Predicate("premium", ">=", min_premium),
            Predicate("premium", "<=", max_premium),
            Predicate("coverAmount", ">=", min_cover),
            Predicate("coverAmount", "<=", max_cover),
            Predicate("maxDependents", ">=", min_dependents),
        ]
        sort_spec = resolve_sort(sort, direction, POLICY_SORT_FIELDS, DEFAULT_POLICY_SORT)
        size = resolve_page_size(page_size, self.search_cfg)
        page = await self.executor.run(compose(POLICIES, filters, sort_spec), size, cursor)
        return SearchResult(rows=[Policy.from_snapshot(s) for s in page.rows], cursor=page.cursor, has_more=page.has_more)

    async def delete_policy(self, policy_id: str, role: Optional[str]) -> None:
        await self._delete(POLICY_KIND, policy_id, role)

    # ------------------------------------------------------------------ #
    # Catering options
    # ------------------------------------------------------------------ #
    async def create_catering_option(self, payload: Dict[str, Any], role: Optional[str]) -> CateringOption:
        require_write_role(role, "create catering options")
        errors: Dict[str, str] = {}
        name = require_str(payload, "name", errors, label="Name")
        price = parse_amount(payload, "price", errors, min_value=0, required=True)
        features = parse_str_list(payload.get("features"), errors, "features")
        category_id = optional_str(payload, "categoryId")
        raise_if_errors(errors)

        await self._check_references(features, FEATURES, "features", errors)
        if category_id:
            await self._check_references([category_id], CATEGORY, "categoryId", errors)
        raise_if_errors(errors)

        option = CateringOption(
            option_id="",
            name=name,
            price=price,
            description=optional_str(payload, "description"),
            category_id=category_id,
            features=features,
        )
        return await self._create(CATERING_KIND, option.to_document())

    async def list_catering_options(self) -> List[CateringOption]:
        return await self._list(CATERING_KIND)

    async def delete_catering_option(self, option_id: str, role: Optional[str]) -> None:
        await self._delete(CATERING_KIND, option_id, role)

    # ------------------------------------------------------------------ #
    # Categories and features
    # ------------------------------------------------------------------ #
    async def create_category(self, payload: Dict[str, Any], role: Optional[str]) -> Category:
        require_write_role(role, "create categories")
        errors: Dict[str, str] = {}
        name = require_str(payload, "name", errors, label="Name")
        raise_if_errors(errors)
        return await self._create(CATEGORY_KIND, Category(category_id="", name=name).to_document())

    async def list_categories(self) -> List[Category]:
        return await self._list(CATEGORY_KIND)

    async def delete_category(self, category_id: str, role: Optional[str]) -> None:
        await self._delete(CATEGORY_KIND, category_id, role)

    async def create_feature(self, payload: Dict[str, Any], role: Optional[str]) -> Feature:
        require_write_role(role, "create features")
        errors: Dict[str, str] = {}
        name = require_str(payload, "name", errors, label="Name")
        raise_if_errors(errors)
        feature = Feature(feature_id="", name=name, description=optional_str(payload, "description"))
        return await self._create(FEATURE_KIND, feature.to_document())

    async def list_features(self) -> List[Feature]:
        return await self._list(FEATURE_KIND)

    async def delete_feature(self, feature_id: str, role: Optional[str]) -> None:
        await self._delete(FEATURE_KIND, feature_id, role)
