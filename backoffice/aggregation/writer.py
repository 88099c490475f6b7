"""
Atomic Write Coordinator.

Takes an already validated composite record, assigns its identifier,
decomposes it into one document per collection (all keyed by, or pointing
at, that identifier) and commits everything as a single batch. Either the
root and every satellite appear, or none of them do.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from backoffice.aggregation.identifiers import (
    CLAIM_NUMBER,
    CONTRACT_NUMBER,
    PAYMENT_REFERENCE,
    IdentifierFormat,
    IdentifierGenerator,
)
from backoffice.database.interfaces import DocumentStore, Snapshot, WriteBatch
from backoffice.records.claims import (
    CLAIM_BANK_DETAILS,
    CLAIM_DECEASED,
    CLAIM_DOCUMENTS,
    CLAIM_POLICIES,
    CLAIMS,
    ClaimStatus,
    ClaimSubmission,
)
from backoffice.records.contracts import (
    ADDRESS,
    BENEFIT,
    CONTACTS,
    CONTRACTS,
    MEMBER_CONTRACT_RELATIONSHIPS,
    MEMBERS,
    RELATIONSHIP,
    BeneficiaryLink,
    ContractSubmission,
    MemberRole,
    MemberSubmission,
)
from backoffice.records.payments import PAYMENTS, Payment
from backoffice.utils.time import utc_now_iso

logger = logging.getLogger(__name__)


class AtomicWriteCoordinator:
    def __init__(self, store: DocumentStore, ids: Optional[IdentifierGenerator] = None) -> None:
        self.store = store
        self.ids = ids or IdentifierGenerator(store)

    # ------------------------------------------------------------------ #
    # Claims
    # ------------------------------------------------------------------ #
    def decompose_claim(self, claim_number: str, submission: ClaimSubmission, now: str) -> WriteBatch:
        common = {
            "claimNumber": claim_number,
            "contractNumber": submission.contract_number,
            "createdAt": now,
        }
        batch = self.store.batch()
        # `create` so that an identifier collision fails the whole batch.
        batch.create(
            CLAIMS,
            claim_number,
            {
                "claimNumber": claim_number,
                "contractNumber": submission.contract_number,
                "claimantName": submission.claimant_name,
                "relationship": submission.relationship,
                "serviceDate": submission.service_date,
                "serviceProvider": submission.service_provider,
                "location": submission.location,
                "status": ClaimStatus.FNOL.value,
                "createdAt": now,
                "updatedAt": now,
            },
        )
        batch.set(CLAIM_POLICIES, claim_number, {**submission.policy.to_document(), **common})
        if submission.deceased is not None:
            batch.set(CLAIM_DECEASED, claim_number, {**submission.deceased.to_document(), **common})
        batch.set(CLAIM_BANK_DETAILS, claim_number, {**submission.bank_details.to_document(), **common})
        batch.set(
            CLAIM_DOCUMENTS,
            claim_number,
            {"documents": [d.to_document() for d in submission.documents], **common},
        )
        return batch

    async def write_claim(self, submission: ClaimSubmission) -> str:
        claim_number = await self.ids.next_id(CLAIM_NUMBER)
        batch = self.decompose_claim(claim_number, submission, utc_now_iso())
        await self.store.commit_batch(batch)
        logger.info("Filed claim %s for contract %s (%d documents written)", claim_number, submission.contract_number, len(batch))
        return claim_number

    async def write_claim_status(self, claim_number: str, status: str) -> str:
        """Touches only the root's status and updatedAt; satellites are left alone."""
        now = utc_now_iso()
        await self.store.commit_batch(self.store.batch().update(CLAIMS, claim_number, {"status": status, "updatedAt": now}))
        return now

    # ------------------------------------------------------------------ #
    # Members
    # ------------------------------------------------------------------ #
    def _member_satellite_writes(self, batch: WriteBatch, member_key: str, submission: MemberSubmission, now: str) -> None:
        link = {"memberId": member_key, "memberIdNumber": submission.id_number, "createdAt": now, "updatedAt": now}
        for contact in submission.contacts:
            batch.create(CONTACTS, self.store.new_key(), {**contact.to_dict(), **link})
        if submission.address is not None:
            batch.create(ADDRESS, self.store.new_key(), {**submission.address.to_dict(), **link})

    async def write_member(self, submission: MemberSubmission) -> str:
        """Member, contacts and address in one batch; returns the member key."""
        member_key = self.store.new_key()
        now = utc_now_iso()
        batch = self.store.batch()
        batch.create(MEMBERS, member_key, {**submission.personal_info(), "createdAt": now, "updatedAt": now})
        self._member_satellite_writes(batch, member_key, submission, now)
        await self.store.commit_batch(batch)
        logger.info("Created member %s with %d contacts", member_key, len(submission.contacts))
        return member_key

    async def write_member_update(self, member_key: str, old_satellites: List[Snapshot], submission: MemberSubmission) -> None:
        """Merge personal info and replace contacts and address in one batch."""
        now = utc_now_iso()
        batch = self.store.batch()
        batch.update(MEMBERS, member_key, {**submission.personal_info(), "updatedAt": now})
        for snap in old_satellites:
            batch.delete(snap.collection, snap.key)
        self._member_satellite_writes(batch, member_key, submission, now)
        await self.store.commit_batch(batch)
        logger.info("Updated member %s (%d contact/address documents replaced)", member_key, len(old_satellites))

    # ------------------------------------------------------------------ #
    # Contracts and member edges
    # ------------------------------------------------------------------ #
    def _edge_writes(
        self, batch: WriteBatch, contract_number: str, submission: ContractSubmission, now: str
    ) -> None:
        # Edges of one batch share `created_at`; `position` keeps submission order.
        positions = iter(range(1 + len(submission.dependent_ids) + len(submission.beneficiaries)))

        def add_edge(member_id: str, role: MemberRole) -> str:
            edge_key = self.store.new_key()
            batch.create(
                MEMBER_CONTRACT_RELATIONSHIPS,
                edge_key,
                {
                    "member_id": member_id,
                    "contract_number": contract_number,
                    "role": role.value,
                    "position": next(positions),
                    "created_at": now,
                    "updated_at": now,
                },
            )
            return edge_key

        add_edge(submission.main_member_id, MemberRole.MAIN_MEMBER)
        for dependent_id in submission.dependent_ids:
            add_edge(dependent_id, MemberRole.DEPENDENT)
        for link in submission.beneficiaries:
            edge_key = add_edge(link.member_id, MemberRole.BENEFICIARY)
            self._beneficiary_writes(batch, edge_key, link, now)

    def _beneficiary_writes(self, batch: WriteBatch, edge_key: str, link: BeneficiaryLink, now: str) -> None:
        if link.relationship_type:
            batch.create(
                RELATIONSHIP,
                self.store.new_key(),
                {
                    "member_contract_relationship_id": edge_key,
                    "relationshipType": link.relationship_type,
                    "createdAt": now,
                    "updatedAt": now,
                },
            )
        if link.benefit_percentage is not None:
            batch.create(
                BENEFIT,
                self.store.new_key(),
                {
                    "member_contract_relationship_id": edge_key,
                    "percentage": link.benefit_percentage,
                    "createdAt": now,
                    "updatedAt": now,
                },
            )

    async def write_contract(self, submission: ContractSubmission, main_member_id_number: str) -> Tuple[str, str]:
        """Returns (contract key, contract number)."""
        contract_number = await self.ids.next_id(CONTRACT_NUMBER)
        contract_key = self.store.new_key()
        now = utc_now_iso()

        batch = self.store.batch()
        batch.create(
            CONTRACTS,
            contract_key,
            {
                "contractNumber": contract_number,
                "policiesId": submission.policies_id,
                "cateringOptionIds": list(submission.catering_option_ids),
                "status": submission.status,
                "memberIdNumber": main_member_id_number,
                "createdAt": now,
                "updatedAt": now,
            },
        )
        self._edge_writes(batch, contract_number, submission, now)
        await self.store.commit_batch(batch)
        logger.info("Created contract %s with %d member edges", contract_number, 1 + len(submission.dependent_ids) + len(submission.beneficiaries))
        return contract_key, contract_number

    async def write_member_replacement(
        self,
        contract_key: str,
        contract_number: str,
        old_edges: List[Snapshot],
        old_edge_details: List[Snapshot],
        submission: ContractSubmission,
        main_member_id_number: str,
    ) -> None:
        """Swap every member edge of a contract in one batch."""
        now = utc_now_iso()
        batch = self.store.batch()
        for snap in old_edge_details:
            batch.delete(snap.collection, snap.key)
        for edge in old_edges:
            batch.delete(MEMBER_CONTRACT_RELATIONSHIPS, edge.key)
        self._edge_writes(batch, contract_number, submission, now)
        batch.update(CONTRACTS, contract_key, {"memberIdNumber": main_member_id_number, "updatedAt": now})
        await self.store.commit_batch(batch)
        logger.info("Replaced members of contract %s (%d old edges removed)", contract_number, len(old_edges))

    # ------------------------------------------------------------------ #
    # Catalogue and payments
    # ------------------------------------------------------------------ #
    async def write_catalogue_entry(self, fmt: IdentifierFormat, data: Dict[str, Any]) -> str:
        entry_id = await self.ids.next_id(fmt)
        now = utc_now_iso()
        await self.store.commit_batch(
            self.store.batch().create(fmt.collection, entry_id, {**data, "createdAt": now, "updatedAt": now})
        )
        logger.info("Created %s entry %s", fmt.collection, entry_id)
        return entry_id

    async def delete_catalogue_entry(self, collection: str, entry_id: str) -> None:
        await self.store.commit_batch(self.store.batch().delete(collection, entry_id))
        logger.info("Deleted %s entry %s", collection, entry_id)

    async def write_payment(self, payment: Payment) -> Payment:
        payment.reference = await self.ids.next_id(PAYMENT_REFERENCE)
        payment.payment_date = payment.payment_date or utc_now_iso()
        await self.store.commit_batch(self.store.batch().create(PAYMENTS, payment.reference, payment.to_document()))
        logger.info("Recorded payment %s for contract %s", payment.reference, payment.contract_number)
        return payment
