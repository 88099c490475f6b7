"""
Fan-Out Assembler: one coherent Claim or Contract view from its satellites.

Every satellite lookup for a root is issued concurrently and each one is
independently optional. A lookup that fails or finds nothing leaves the
sub-record absent (named in `absent`) instead of failing the assembly. The
claim's policy snapshot is the exception in shape only: when missing it
comes back zero-valued, and is still reported in `absent`.

Read-only; nothing here writes to the store.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from backoffice.aggregation.relationships import RelationshipResolver
from backoffice.database.interfaces import DocumentStore, Snapshot
from backoffice.records.catalogue import CATERING, POLICIES, Policy
from backoffice.records.claims import (
    CLAIM_SATELLITES,
    BankDetails,
    ClaimRecord,
    DeceasedInfo,
    PolicySnapshot,
    documents_from_document,
)
from backoffice.records.contracts import CateringSelection, ContractMembers, ContractRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNKNOWN_CATERING_OPTION = "Unknown Option"


class FanOutAssembler:
    def __init__(
        self,
        store: DocumentStore,
        relationships: Optional[RelationshipResolver] = None,
        concurrency_limit: Optional[int] = None,
    ) -> None:
        self.store = store
        self.relationships = relationships or RelationshipResolver(store)
        self.concurrency_limit = concurrency_limit

    async def _lookup(self, collection: str, key: str) -> Optional[Snapshot]:
        try:
            return await self.store.get(collection, key)
        except Exception as e:
            logger.warning("Lookup of %s/%s failed; treating as absent: %s", collection, key, e, exc_info=True)
            return None

    async def _bounded(self, coros: List[Awaitable[T]], limit: Optional[int]) -> List[T]:
        if not coros:
            return []
        semaphore = asyncio.Semaphore(limit or self.concurrency_limit or len(coros))

        async def _run(coro: Awaitable[T]) -> T:
            async with semaphore:
                return await coro

        return list(await asyncio.gather(*(_run(c) for c in coros)))

    async def _satellite(self, collection: str, key: str, parser: Callable[[Snapshot], T]) -> Optional[T]:
        """Fetch and parse one satellite; a failed lookup or a malformed document leaves it absent."""
        snap = await self._lookup(collection, key)
        if snap is None:
            return None
        try:
            return parser(snap)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("Malformed document %s/%s; treating as absent: %s", collection, key, e)
            return None

    # ------------------------------------------------------------------ #
    # Claims
    # ------------------------------------------------------------------ #
    async def assemble_claim(self, root: Snapshot) -> ClaimRecord:
        parsers: Dict[str, Callable[[Snapshot], Any]] = {
            "policy": lambda snap: PolicySnapshot.from_document(snap.data),
            "deceased": lambda snap: DeceasedInfo.from_document(snap.data),
            "bankDetails": lambda snap: BankDetails.from_document(snap.data),
            "documents": lambda snap: documents_from_document(snap.data),
        }
        names = list(CLAIM_SATELLITES)
        parts = await asyncio.gather(
            *(self._satellite(CLAIM_SATELLITES[n], root.key, parsers[n]) for n in names)
        )
        found = dict(zip(names, parts))

        record = ClaimRecord.from_root(root)
        record.absent = [n for n in names if found[n] is None]
        record.policy = found["policy"] or PolicySnapshot()
        record.deceased = found["deceased"]
        record.bank_details = found["bankDetails"]
        record.documents = found["documents"]
        return record

    async def assemble_claims(self, roots: List[Snapshot], limit: Optional[int] = None) -> List[ClaimRecord]:
        """One fan-out per root; row order follows `roots`."""
        return await self._bounded([self.assemble_claim(r) for r in roots], limit)

    # ------------------------------------------------------------------ #
    # Contracts
    # ------------------------------------------------------------------ #
    async def _catering_selection(self, option_id: str) -> CateringSelection:
        def _parse(snap: Snapshot) -> CateringSelection:
            return CateringSelection(
                option_id=option_id,
                name=snap.get("name") or UNKNOWN_CATERING_OPTION,
                price=float(snap.get("price") or 0),
            )

        selection = await self._satellite(CATERING, option_id, _parse)
        if selection is None:
            return CateringSelection(option_id=option_id, name=UNKNOWN_CATERING_OPTION, price=0.0)
        return selection

    async def _members(self, contract_number: str) -> Optional[ContractMembers]:
        try:
            return await self.relationships.resolve(contract_number)
        except Exception as e:
            logger.warning("Member resolution for contract %s failed; treating as absent: %s", contract_number, e, exc_info=True)
            return None

    async def assemble_contract(self, root: Snapshot, include_members: bool = True) -> ContractRecord:
        record = ContractRecord.from_root(root)

        async def _none() -> None:
            return None

        policy_task = (
            self._satellite(POLICIES, record.policies_id, Policy.from_snapshot) if record.policies_id else _none()
        )
        members_task = self._members(record.contract_number) if include_members else _none()
        policy, members, catering = await asyncio.gather(
            policy_task,
            members_task,
            asyncio.gather(*(self._catering_selection(cid) for cid in record.catering_option_ids)),
        )

        if policy is not None:
            record.policy = policy
        else:
            record.absent.append("policy")
        record.catering_options = list(catering)
        record.absent.extend(
            f"catering:{c.option_id}" for c in record.catering_options if c.name == UNKNOWN_CATERING_OPTION
        )
        if include_members:
            record.members = members
            if members is None:
                record.absent.append("members")
        return record

    async def assemble_contracts(
        self, roots: List[Snapshot], include_members: bool = True, limit: Optional[int] = None
    ) -> List[ContractRecord]:
        return await self._bounded([self.assemble_contract(r, include_members) for r in roots], limit)
