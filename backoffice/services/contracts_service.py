"""
Contracts: creation with role-tagged member edges, retrieval, search and
member maintenance.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from backoffice.aggregation.fan_out import FanOutAssembler
from backoffice.aggregation.relationships import MainMemberCheck, RelationshipResolver
from backoffice.aggregation.writer import AtomicWriteCoordinator
from backoffice.config import SearchConfig
from backoffice.database.interfaces import DESCENDING, DocumentStore, Predicate, Query, Snapshot
from backoffice.errors import NotFoundError
from backoffice.records.catalogue import CATERING, POLICIES
from backoffice.records.contracts import (
    CONTRACTS,
    DEFAULT_CONTRACT_STATUS,
    ID_TYPES,
    MEMBERS,
    BeneficiaryLink,
    Contact,
    ContractMembers,
    ContractRecord,
    ContractSubmission,
    Member,
    MemberAddress,
    MemberSubmission,
)
from backoffice.search.executor import PagedExecutor
from backoffice.search.query_composer import SortSpec, compose
from backoffice.services.common import SearchResult, require_write_role, resolve_page_size, resolve_sort
from backoffice.validation import (
    add_error,
    optional_str,
    parse_amount,
    parse_str_list,
    raise_if_errors,
    require_str,
    validate_date_iso,
    validate_in,
)

logger = logging.getLogger(__name__)

CONTRACT_SORT_FIELDS = {
    "createdAt": "createdAt",
    "contractNumber": "contractNumber",
    "status": "status",
}
DEFAULT_CONTRACT_SORT = SortSpec("createdAt", DESCENDING)


def _parse_beneficiaries(value: Any, errors: Dict[str, str]) -> List[BeneficiaryLink]:
    if value is None:
        return []
    if not isinstance(value, list):
        add_error(errors, "beneficiaries", "beneficiaries must be a list")
        return []
    links: List[BeneficiaryLink] = []
    for i, item in enumerate(value):
        if isinstance(item, str):
            item = {"memberId": item}
        if not isinstance(item, dict):
            add_error(errors, f"beneficiaries.{i}", "Each beneficiary needs a memberId")
            continue
        member_id = optional_str(item, "memberId")
        if not member_id:
            add_error(errors, f"beneficiaries.{i}.memberId", "memberId is required")
            continue
        percentage = None
        if item.get("benefitPercentage") not in (None, ""):
            item_errors: Dict[str, str] = {}
            percentage = parse_amount(item, "benefitPercentage", item_errors, min_value=0)
            if not item_errors and percentage > 100:
                add_error(item_errors, "benefitPercentage", "benefitPercentage must be at most 100")
            for field_name, message in item_errors.items():
                add_error(errors, f"beneficiaries.{i}.{field_name}", message)
        links.append(
            BeneficiaryLink(
                member_id=member_id,
                relationship_type=optional_str(item, "relationshipType") or None,
                benefit_percentage=percentage,
            )
        )
    total = sum(link.benefit_percentage or 0 for link in links)
    if total > 100:
        add_error(errors, "beneficiaries", "Benefit percentages must not add up to more than 100")
    return links


def validate_member_links(payload: Dict[str, Any], errors: Dict[str, str]) -> Tuple[str, List[str], List[BeneficiaryLink]]:
    main_member_id = require_str(payload, "mainMemberId", errors, label="Main member")
    dependent_ids = parse_str_list(payload.get("dependentIds"), errors, "dependentIds")
    beneficiaries = _parse_beneficiaries(payload.get("beneficiaries"), errors)

    all_ids = [main_member_id] + dependent_ids + [b.member_id for b in beneficiaries]
    all_ids = [i for i in all_ids if i]
    if len(set(all_ids)) != len(all_ids):
        add_error(errors, "members", "Duplicate member IDs found")
    return main_member_id, dependent_ids, beneficiaries


def _parse_contacts(value: Any, errors: Dict[str, str]) -> List[Contact]:
    if value is None:
        return []
    if not isinstance(value, list):
        add_error(errors, "contacts", "contacts must be a list")
        return []
    contacts: List[Contact] = []
    for i, item in enumerate(value):
        if not isinstance(item, dict):
            add_error(errors, f"contacts.{i}", "Each contact needs a type and a value")
            continue
        item_errors: Dict[str, str] = {}
        contact_type = require_str(item, "type", item_errors, label="Contact type")
        contact_value = require_str(item, "value", item_errors, label="Contact value")
        for field_name, message in item_errors.items():
            add_error(errors, f"contacts.{i}.{field_name}", message)
        contacts.append(Contact(type=contact_type, value=contact_value))
    return contacts


def validate_member_submission(payload: Dict[str, Any]) -> MemberSubmission:
    """Personal info is required; contacts and address are optional."""
    errors: Dict[str, str] = {}
    first_name = require_str(payload, "firstName", errors, label="First name")
    last_name = require_str(payload, "lastName", errors, label="Last name")
    id_number = require_str(payload, "idNumber", errors, label="ID number")
    id_type = validate_in(payload.get("idType"), ID_TYPES, errors, "idType", required=False) or ID_TYPES[0]
    if id_number and id_type == ID_TYPES[0] and not re.fullmatch(r"\d{13}", id_number):
        add_error(errors, "idNumber", "South African ID number must be 13 digits")
    date_of_birth = validate_date_iso(payload.get("dateOfBirth"), errors, "dateOfBirth", required=False, not_future=True)
    contacts = _parse_contacts(payload.get("contacts"), errors)

    address: Optional[MemberAddress] = None
    raw_address = payload.get("address")
    if isinstance(raw_address, dict):
        address = MemberAddress(
            street=optional_str(raw_address, "street"),
            city=optional_str(raw_address, "city"),
            province=optional_str(raw_address, "province"),
            postal_code=optional_str(raw_address, "postalCode"),
        )
    elif raw_address is not None:
        add_error(errors, "address", "address must be an object")
    raise_if_errors(errors)

    return MemberSubmission(
        id_number=id_number,
        first_name=first_name,
        last_name=last_name,
        id_type=id_type,
        date_of_birth=date_of_birth,
        gender=optional_str(payload, "gender"),
        contacts=contacts,
        address=address,
    )


class ContractService:
    def __init__(
        self,
        store: DocumentStore,
        writer: AtomicWriteCoordinator,
        assembler: FanOutAssembler,
        relationships: RelationshipResolver,
        executor: PagedExecutor,
        search_cfg: Optional[SearchConfig] = None,
    ) -> None:
        self.store = store
        self.writer = writer
        self.assembler = assembler
        self.relationships = relationships
        self.executor = executor
        self.search_cfg = search_cfg or SearchConfig()

    async def _check_members_exist(self, member_ids: List[str], errors: Dict[str, str]) -> Dict[str, Snapshot]:
        found: Dict[str, Snapshot] = {}
        for member_id in dict.fromkeys(member_ids):
            snap = await self.store.get(MEMBERS, member_id)
            if snap is None:
                add_error(errors, "members", f"Member with ID {member_id} not found")
            else:
                found[member_id] = snap
        return found

    async def _validate_submission(
        self, payload: Dict[str, Any], *, with_products: bool, current_contract: Optional[str] = None
    ) -> Tuple[ContractSubmission, Snapshot]:
        errors: Dict[str, str] = {}
        policies_id = ""
        catering_ids: List[str] = []
        if with_products:
            policies_id = require_str(payload, "policiesId", errors, label="Policy")
            catering_ids = parse_str_list(payload.get("cateringOptionIds"), errors, "cateringOptionIds")
        main_member_id, dependent_ids, beneficiaries = validate_member_links(payload, errors)
        raise_if_errors(errors)

        members = await self._check_members_exist(
            [main_member_id] + dependent_ids + [b.member_id for b in beneficiaries], errors
        )
        if with_products:
            if await self.store.get(POLICIES, policies_id) is None:
                add_error(errors, "policiesId", f"Policy {policies_id} does not exist")
            for option_id in catering_ids:
                if await self.store.get(CATERING, option_id) is None:
                    add_error(errors, "cateringOptionIds", f"Catering option {option_id} does not exist")
        raise_if_errors(errors)

        main_member = members[main_member_id]
        check = await self.relationships.check_main_member_existing_contract(main_member.get("idNumber") or "")
        if check.exists and check.member_id == main_member_id and check.contract_number != current_contract:
            raise_if_errors(
                {"mainMemberId": f"Member is already the main member of contract {check.contract_number}"}
            )

        submission = ContractSubmission(
            policies_id=policies_id,
            catering_option_ids=catering_ids,
            main_member_id=main_member_id,
            dependent_ids=dependent_ids,
            beneficiaries=beneficiaries,
            status=optional_str(payload, "status") or DEFAULT_CONTRACT_STATUS,
        )
        return submission, main_member

    async def create_contract(self, payload: Dict[str, Any], role: Optional[str]) -> ContractRecord:
        require_write_role(role, "create contracts")
        submission, main_member = await self._validate_submission(payload, with_products=True)
        contract_key, _ = await self.writer.write_contract(submission, main_member.get("idNumber") or "")
        return await self.get_contract(contract_key)

    async def get_contract(self, contract_id: str) -> ContractRecord:
        root = await self.store.get(CONTRACTS, contract_id)
        if root is None:
            raise NotFoundError(CONTRACTS, contract_id, f"Contract {contract_id} not found")
        return await self.assembler.assemble_contract(root)

    async def _root_by_number(self, contract_number: str) -> Snapshot:
        query = Query(CONTRACTS).where("contractNumber", "==", contract_number)
        query.limit = 1
        found = await self.store.query(query)
        if not found:
            raise NotFoundError(CONTRACTS, contract_number, f"Contract {contract_number} not found")
        return found[0]

    async def get_contract_by_number(self, contract_number: str) -> ContractRecord:
        return await self.assembler.assemble_contract(await self._root_by_number(contract_number))

    async def search_contracts(
        self,
        *,
        contract_number: Optional[str] = None,
        status: Optional[str] = None,
        policies_id: Optional[str] = None,
        member_id_number: Optional[str] = None,
        sort: Optional[str] = None,
        direction: Optional[str] = None,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
        session_id: Optional[str] = None,
        load_more: bool = False,
    ) -> SearchResult:
        filters = [
            Predicate("contractNumber", "prefix", contract_number),
            Predicate("status", "==", status),
            Predicate("policiesId", "==", policies_id),
            Predicate("memberIdNumber", "==", member_id_number),
        ]
        sort_spec = resolve_sort(sort, direction, CONTRACT_SORT_FIELDS, DEFAULT_CONTRACT_SORT)
        size = resolve_page_size(page_size, self.search_cfg)
        composed = compose(CONTRACTS, filters, sort_spec)
        page = await self.executor.run(composed, size, cursor, session_id=session_id, load_more=load_more)
        rows = await self.assembler.assemble_contracts(
            page.rows, include_members=False, limit=self.search_cfg.fan_out_concurrency or size
        )
        return SearchResult(rows=rows, cursor=page.cursor, has_more=page.has_more)

    async def contract_members(self, contract_number: str) -> ContractMembers:
        await self._root_by_number(contract_number)
        return await self.relationships.resolve(contract_number)

    async def replace_members(self, contract_number: str, payload: Dict[str, Any], role: Optional[str]) -> ContractMembers:
        require_write_role(role, "amend contract members")
        root = await self._root_by_number(contract_number)
        submission, main_member = await self._validate_submission(
            payload, with_products=False, current_contract=contract_number
        )
        old_edges = await self.relationships.edges_for_contract(contract_number)
        old_details = await self.relationships.edge_details(old_edges)
        await self.writer.write_member_replacement(
            root.key, contract_number, old_edges, old_details, submission, main_member.get("idNumber") or ""
        )
        return await self.relationships.resolve(contract_number)

    async def member_role(self, member_id: str, contract_number: str) -> Optional[str]:
        return await self.relationships.get_member_role(member_id, contract_number)

    async def main_member_existing_contract(self, id_number: str) -> MainMemberCheck:
        return await self.relationships.check_main_member_existing_contract(id_number)

    # ------------------------------------------------------------------ #
    # Members
    # ------------------------------------------------------------------ #
    async def _member_snapshot(self, id_number: str) -> Snapshot:
        snap = await self.relationships.find_member_by_id_number(id_number)
        if snap is None:
            raise NotFoundError(MEMBERS, id_number, f"Member with ID number {id_number} not found")
        return snap

    async def create_member(self, payload: Dict[str, Any], role: Optional[str]) -> Member:
        require_write_role(role, "add members")
        submission = validate_member_submission(payload)
        if await self.relationships.find_member_by_id_number(submission.id_number) is not None:
            raise_if_errors({"idNumber": f"A member with ID number {submission.id_number} already exists"})
        member_key = await self.writer.write_member(submission)
        return await self.relationships.member_details(await self.store.get(MEMBERS, member_key))

    async def get_member(self, id_number: str) -> Member:
        return await self.relationships.member_details(await self._member_snapshot(id_number))

    async def update_member(self, id_number: str, payload: Dict[str, Any], role: Optional[str]) -> Member:
        """Personal info, contacts and address are all replaced by the submitted ones."""
        require_write_role(role, "update members")
        snap = await self._member_snapshot(id_number)
        submission = validate_member_submission({**payload, "idNumber": payload.get("idNumber") or id_number})
        if submission.id_number != id_number:
            raise_if_errors({"idNumber": "ID number cannot be changed"})
        old_satellites = await self.relationships.member_satellites(snap.key)
        await self.writer.write_member_update(snap.key, old_satellites, submission)
        return await self.get_member(id_number)
