"""
Claims: filing, retrieval, search and status changes.

A claim is a root document in `Claims` plus four satellites keyed by the
claim number. Filing validates the whole submission first and then writes
root and satellites in one batch; reads rebuild the claim through the
fan-out assembler.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from backoffice.aggregation.fan_out import FanOutAssembler
from backoffice.aggregation.writer import AtomicWriteCoordinator
from backoffice.config import SearchConfig
from backoffice.database.interfaces import DESCENDING, DocumentStore, Predicate, Query
from backoffice.errors import NotFoundError
from backoffice.records.claims import (
    CLAIM_STATUSES,
    CLAIMS,
    MANDATORY_DOCUMENT_TYPES,
    BankDetails,
    ClaimDocument,
    ClaimRecord,
    ClaimSubmission,
    DeceasedInfo,
    PolicySnapshot,
)
from backoffice.records.contracts import CONTRACTS
from backoffice.search.executor import PagedExecutor
from backoffice.search.query_composer import SortSpec, compose
from backoffice.services.common import SearchResult, require_write_role, resolve_page_size, resolve_sort
from backoffice.validation import (
    add_error,
    optional_str,
    parse_amount,
    parse_date_bound,
    raise_if_errors,
    require_str,
    validate_date_iso,
    validate_in,
)

logger = logging.getLogger(__name__)

# Accepted sort names -> stored field
CLAIM_SORT_FIELDS = {
    "createdAt": "createdAt",
    "updatedAt": "updatedAt",
    "status": "status",
    "claimantName": "claimantName",
    "contractNumber": "contractNumber",
    "claimNumber": "claimNumber",
    "dateSubmitted": "createdAt",
    "lastUpdated": "updatedAt",
}
DEFAULT_CLAIM_SORT = SortSpec("createdAt", DESCENDING)


def _section(payload: Dict[str, Any], name: str, errors: Dict[str, str]) -> Dict[str, Any]:
    value = payload.get(name)
    if value is None:
        add_error(errors, name, f"{name} is required")
        return {}
    if not isinstance(value, dict):
        add_error(errors, name, f"{name} must be an object")
        return {}
    return value


def _prefixed(errors: Dict[str, str], prefix: str, section_errors: Dict[str, str]) -> None:
    for field_name, message in section_errors.items():
        add_error(errors, f"{prefix}.{field_name}", message)


def validate_claim_submission(payload: Dict[str, Any]) -> ClaimSubmission:
    """Check a claim form and turn it into a `ClaimSubmission`.

    Raises FormValidationError listing every problem found; nothing is
    written in that case.
    """
    errors: Dict[str, str] = {}

    contract_number = require_str(payload, "contractNumber", errors, label="Contract number")
    claimant_name = require_str(payload, "claimantName", errors, label="Claimant name")
    relationship = require_str(payload, "relationship", errors, label="Relationship")
    service_date = validate_date_iso(payload.get("serviceDate"), errors, "serviceDate")
    service_provider = require_str(payload, "serviceProvider", errors, label="Service provider")
    location = require_str(payload, "location", errors, label="Location")

    policy_errors: Dict[str, str] = {}
    policy_data = _section(payload, "policy", errors)
    policy = PolicySnapshot(
        policy_number=require_str(policy_data, "policyNumber", policy_errors, label="Policy number"),
        holder_name=optional_str(policy_data, "holderName"),
        coverage_amount=parse_amount(policy_data, "coverageAmount", policy_errors, min_value=0),
    )
    _prefixed(errors, "policy", policy_errors)

    # Deceased details are optional; when sent they must be complete.
    deceased: Optional[DeceasedInfo] = None
    if payload.get("deceased") is not None:
        deceased_errors: Dict[str, str] = {}
        deceased_data = _section(payload, "deceased", errors)
        deceased = DeceasedInfo(
            first_name=require_str(deceased_data, "firstName", deceased_errors, label="First name"),
            last_name=require_str(deceased_data, "lastName", deceased_errors, label="Last name"),
            id_number=require_str(deceased_data, "idNumber", deceased_errors, label="ID number"),
            date_of_death=validate_date_iso(deceased_data.get("dateOfDeath"), deceased_errors, "dateOfDeath", not_future=True),
            cause_of_death=optional_str(deceased_data, "causeOfDeath"),
            place_of_death=optional_str(deceased_data, "placeOfDeath"),
            relationship=optional_str(deceased_data, "relationship"),
        )
        _prefixed(errors, "deceased", deceased_errors)

    bank_errors: Dict[str, str] = {}
    bank_data = _section(payload, "bankDetails", errors)
    bank_details = BankDetails(
        account_holder=require_str(bank_data, "accountHolder", bank_errors, label="Account holder"),
        bank_name=require_str(bank_data, "bankName", bank_errors, label="Bank name"),
        account_type=require_str(bank_data, "accountType", bank_errors, label="Account type"),
        account_number=require_str(bank_data, "accountNumber", bank_errors, label="Account number"),
        branch_code=require_str(bank_data, "branchCode", bank_errors, label="Branch code"),
    )
    if bank_details.account_number and not bank_details.account_number.isdigit():
        add_error(bank_errors, "accountNumber", "Account number must contain digits only")
    _prefixed(errors, "bankDetails", bank_errors)

    documents: List[ClaimDocument] = []
    raw_documents = payload.get("documents") or []
    if not isinstance(raw_documents, list):
        add_error(errors, "documents", "documents must be a list")
        raw_documents = []
    for i, doc in enumerate(raw_documents):
        doc = doc if isinstance(doc, dict) else {}
        doc_type = optional_str(doc, "type")
        url = optional_str(doc, "url")
        if not doc_type or not url:
            add_error(errors, f"documents.{i}", "Each document needs a type and a url")
            continue
        documents.append(ClaimDocument(type=doc_type, url=url))
    missing = [t for t in MANDATORY_DOCUMENT_TYPES if not any(d.type == t for d in documents)]
    if missing:
        add_error(errors, "documents", "Missing required documents: " + ", ".join(missing))

    raise_if_errors(errors)
    return ClaimSubmission(
        contract_number=contract_number,
        claimant_name=claimant_name,
        relationship=relationship,
        service_date=service_date,
        service_provider=service_provider,
        location=location,
        policy=policy,
        bank_details=bank_details,
        documents=documents,
        deceased=deceased,
    )


class ClaimService:
    def __init__(
        self,
        store: DocumentStore,
        writer: AtomicWriteCoordinator,
        assembler: FanOutAssembler,
        executor: PagedExecutor,
        search_cfg: Optional[SearchConfig] = None,
    ) -> None:
        self.store = store
        self.writer = writer
        self.assembler = assembler
        self.executor = executor
        self.search_cfg = search_cfg or SearchConfig()

    async def _contract_exists(self, contract_number: str) -> bool:
        return await self.store.exists(Query(CONTRACTS).where("contractNumber", "==", contract_number))

    async def submit_claim(self, payload: Dict[str, Any], role: Optional[str]) -> ClaimRecord:
        require_write_role(role, "file claims")
        submission = validate_claim_submission(payload)
        if not await self._contract_exists(submission.contract_number):
            raise_if_errors({"contractNumber": f"Contract {submission.contract_number} does not exist"})
        claim_number = await self.writer.write_claim(submission)
        return await self.get_claim(claim_number)

    async def get_claim(self, claim_number: str) -> ClaimRecord:
        root = await self.store.get(CLAIMS, claim_number)
        if root is None:
            raise NotFoundError(CLAIMS, claim_number, f"Claim {claim_number} not found")
        return await self.assembler.assemble_claim(root)

    async def search_claims(
        self,
        *,
        contract_number: Optional[str] = None,
        claim_id: Optional[str] = None,
        status: Optional[str] = None,
        date_from: Any = None,
        date_to: Any = None,
        claimant_name: Optional[str] = None,
        claim_type: Optional[str] = None,
        sort: Optional[str] = None,
        direction: Optional[str] = None,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
        session_id: Optional[str] = None,
        load_more: bool = False,
    ) -> SearchResult:
        errors: Dict[str, str] = {}
        lower = parse_date_bound(date_from, errors, "dateFrom")
        upper = parse_date_bound(date_to, errors, "dateTo", end_of_day=True)
        raise_if_errors(errors)

        filters = [
            Predicate("contractNumber", "==", contract_number),
            Predicate("claimNumber", "==", claim_id),
            Predicate("status", "==", status),
            Predicate("createdAt", ">=", lower),
            Predicate("createdAt", "<=", upper),
            Predicate("claimantName", "contains", claimant_name),
            Predicate("serviceProvider", "==", claim_type),
        ]
        sort_spec = resolve_sort(sort, direction, CLAIM_SORT_FIELDS, DEFAULT_CLAIM_SORT)
        size = resolve_page_size(page_size, self.search_cfg)

        composed = compose(CLAIMS, filters, sort_spec)
        page = await self.executor.run(composed, size, cursor, session_id=session_id, load_more=load_more)
        rows = await self.assembler.assemble_claims(page.rows, self.search_cfg.fan_out_concurrency or size)
        return SearchResult(rows=rows, cursor=page.cursor, has_more=page.has_more)

    async def update_status(self, claim_number: str, status: str, role: Optional[str]) -> ClaimRecord:
        require_write_role(role, "update claim status")
        errors: Dict[str, str] = {}
        status = validate_in(status, CLAIM_STATUSES, errors, "status")
        raise_if_errors(errors)

        if await self.store.get(CLAIMS, claim_number) is None:
            raise NotFoundError(CLAIMS, claim_number, f"Claim {claim_number} not found")
        await self.writer.write_claim_status(claim_number, status)
        logger.info("Claim %s moved to status %s", claim_number, status)
        return await self.get_claim(claim_number)

    async def recent_claims_for_contract(self, contract_number: str, limit: Optional[int] = None) -> List[ClaimRecord]:
        composed = compose(CLAIMS, [Predicate("contractNumber", "==", contract_number)], DEFAULT_CLAIM_SORT)
        page = await self.executor.run(composed, limit or self.search_cfg.recent_claims_limit)
        return await self.assembler.assemble_claims(page.rows)
