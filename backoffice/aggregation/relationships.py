"""
Relationship Resolver: role-tagged member edges for a contract.

Edges live in `member_contract_relationships` and point at members by key.
Resolution reads the edges (oldest first, then by position within a
batch), fetches every distinct member concurrently, then fetches each
member's contacts and address concurrently.
Beneficiary edges additionally carry a relationship type and a benefit
percentage, stored in their own collections against the edge key.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from backoffice.database.interfaces import KEY_FIELD, DocumentStore, OrderBy, Query, Snapshot
from backoffice.database.query_eval import sort_snapshots
from backoffice.records.contracts import (
    ADDRESS,
    BENEFIT,
    CONTACTS,
    MEMBER_CONTRACT_RELATIONSHIPS,
    MEMBERS,
    RELATIONSHIP,
    Contact,
    ContractMembers,
    Member,
    MemberAddress,
    MemberRole,
)

logger = logging.getLogger(__name__)


@dataclass
class MainMemberCheck:
    exists: bool
    contract_number: Optional[str] = None
    member_id: Optional[str] = None


class RelationshipResolver:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    # ------------------------------------------------------------------ #
    # Edge queries
    # ------------------------------------------------------------------ #
    async def edges_for_contract(self, contract_number: str) -> List[Snapshot]:
        query = (
            Query(MEMBER_CONTRACT_RELATIONSHIPS)
            .where("contract_number", "==", contract_number)
            .ordered("created_at")
        )
        edges = await self.store.query(query)
        # Edges written before `position` existed sort first within their timestamp.
        return sort_snapshots(edges, [OrderBy("created_at"), OrderBy("position")])

    async def edge_details(self, edges: List[Snapshot]) -> List[Snapshot]:
        """Relationship and Benefit documents hanging off the given edges."""
        lookups = []
        for edge in edges:
            for collection in (RELATIONSHIP, BENEFIT):
                lookups.append(
                    self.store.query(Query(collection).where("member_contract_relationship_id", "==", edge.key))
                )
        results = await asyncio.gather(*lookups)
        return [snap for snaps in results for snap in snaps]

    async def get_member_role(self, member_id: str, contract_number: str) -> Optional[str]:
        query = (
            Query(MEMBER_CONTRACT_RELATIONSHIPS)
            .where("member_id", "==", member_id)
            .where("contract_number", "==", contract_number)
            .ordered("created_at")
        )
        query.limit = 1
        edges = await self.store.query(query)
        return edges[0].get("role") if edges else None

    async def find_member_by_id_number(self, id_number: str) -> Optional[Snapshot]:
        query = Query(MEMBERS).where("idNumber", "==", id_number)
        query.limit = 1
        found = await self.store.query(query)
        return found[0] if found else None

    async def check_main_member_existing_contract(self, id_number: str) -> MainMemberCheck:
        member = await self.find_member_by_id_number(id_number)
        if member is None:
            return MainMemberCheck(exists=False)
        query = (
            Query(MEMBER_CONTRACT_RELATIONSHIPS)
            .where("member_id", "==", member.key)
            .where("role", "==", MemberRole.MAIN_MEMBER.value)
            .ordered("created_at")
        )
        query.limit = 1
        edges = await self.store.query(query)
        if not edges:
            return MainMemberCheck(exists=False, member_id=member.key)
        return MainMemberCheck(exists=True, contract_number=edges[0].get("contract_number"), member_id=member.key)

    # ------------------------------------------------------------------ #
    # Member resolution
    # ------------------------------------------------------------------ #
    async def member_details(self, snap: Snapshot) -> Member:
        member = Member.from_snapshot(snap)
        contacts, addresses = await asyncio.gather(
            self.store.query(Query(CONTACTS).where("memberId", "==", snap.key)),
            self.store.query(Query(ADDRESS).where("memberId", "==", snap.key).ordered(KEY_FIELD)),
        )
        member.contacts = [Contact(type=c.get("type") or "", value=c.get("value") or "") for c in contacts]
        member.address = MemberAddress.from_document(addresses[0].data) if addresses else None
        return member

    async def member_satellites(self, member_id: str) -> List[Snapshot]:
        """Contacts and address documents hanging off one member."""
        contacts, addresses = await asyncio.gather(
            self.store.query(Query(CONTACTS).where("memberId", "==", member_id)),
            self.store.query(Query(ADDRESS).where("memberId", "==", member_id)),
        )
        return list(contacts) + list(addresses)

    async def load_members(self, member_ids: List[str]) -> Dict[str, Member]:
        """Fetch members (with contacts and address) by key; unknown keys are skipped."""
        snaps = await asyncio.gather(*(self.store.get(MEMBERS, mid) for mid in member_ids))
        found = []
        for member_id, snap in zip(member_ids, snaps):
            if snap is None:
                logger.warning("Member %s referenced by a contract edge does not exist; skipping", member_id)
                continue
            found.append(snap)
        members = await asyncio.gather(*(self.member_details(s) for s in found))
        return {m.member_id: m for m in members}

    async def resolve(self, contract_number: str) -> ContractMembers:
        edges = await self.edges_for_contract(contract_number)

        main_edge: Optional[Snapshot] = None
        kept: List[Snapshot] = []
        for edge in edges:
            role = edge.get("role")
            if role == MemberRole.MAIN_MEMBER.value:
                if main_edge is not None:
                    logger.warning(
                        "Contract %s has more than one Main Member edge; ignoring %s",
                        contract_number,
                        edge.key,
                    )
                    continue
                main_edge = edge
            elif role not in (MemberRole.DEPENDENT.value, MemberRole.BENEFICIARY.value):
                logger.warning("Ignoring edge %s with unknown role %r", edge.key, role)
                continue
            kept.append(edge)

        member_ids = list(dict.fromkeys(e.get("member_id") for e in kept if e.get("member_id")))
        beneficiary_edges = [e for e in kept if e.get("role") == MemberRole.BENEFICIARY.value]
        members, details = await asyncio.gather(
            self.load_members(member_ids),
            self.edge_details(beneficiary_edges),
        )

        relationship_types: Dict[str, str] = {}
        benefit_percentages: Dict[str, float] = {}
        for snap in details:
            edge_key = snap.get("member_contract_relationship_id")
            if snap.collection == RELATIONSHIP:
                relationship_types.setdefault(edge_key, snap.get("relationshipType"))
            elif snap.collection == BENEFIT and snap.get("percentage") is not None:
                benefit_percentages.setdefault(edge_key, float(snap.get("percentage")))

        result = ContractMembers()
        for edge in kept:
            member = members.get(edge.get("member_id"))
            if member is None:
                continue
            # Separate copies: one member may hold several roles on a contract.
            member = copy.deepcopy(member)
            role = edge.get("role")
            if role == MemberRole.MAIN_MEMBER.value:
                result.main_member = member
            elif role == MemberRole.DEPENDENT.value:
                result.dependents.append(member)
            else:
                member.relationship_type = relationship_types.get(edge.key)
                member.benefit_percentage = benefit_percentages.get(edge.key)
                result.beneficiaries.append(member)
        return result
