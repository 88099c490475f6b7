"""Pytest fixtures for the back-office store, services and API tests."""

from typing import Any, Dict, List, Optional

import pytest

from backoffice.api.dependencies import STORE_CONSTRAINTS, build_services
from backoffice.config import BackOfficeConfig
from backoffice.database.docstore import InMemoryDocumentStore
from backoffice.database.redis import RedisCache
from backoffice.records.catalogue import CATERING, POLICIES
from backoffice.records.claims import (
    CLAIM_BANK_DETAILS,
    CLAIM_DECEASED,
    CLAIM_DOCUMENTS,
    CLAIM_POLICIES,
    CLAIMS,
)
from backoffice.records.contracts import ADDRESS, CONTACTS, CONTRACTS, MEMBER_CONTRACT_RELATIONSHIPS, MEMBERS


@pytest.fixture
def store():
    """In-memory document store with the production unique constraints."""
    return InMemoryDocumentStore(constraints=STORE_CONSTRAINTS)


@pytest.fixture
def cache():
    return RedisCache()


@pytest.fixture
def config():
    return BackOfficeConfig()


@pytest.fixture
def services(config, store, cache):
    return build_services(cfg=config, store=store, cache=cache)


@pytest.fixture
def seed_member(store):
    def _seed(member_id: str, id_number: str, first_name: str = "Thandi", last_name: str = "Mokoena") -> str:
        store.seed(
            MEMBERS,
            member_id,
            {
                "idNumber": id_number,
                "idType": "South African ID",
                "firstName": first_name,
                "lastName": last_name,
                "dateOfBirth": "1970-05-14",
                "gender": "Female",
            },
        )
        return member_id

    return _seed


@pytest.fixture
def seed_catalogue(store):
    def _seed() -> None:
        store.seed(
            POLICIES,
            "POL001",
            {
                "name": "Family Funeral Plan",
                "description": "Cover for the main member and family",
                "premium": 250.0,
                "coverAmount": 30000.0,
                "maxDependents": 6,
                "status": "active",
                "features": [],
                "categoryId": "",
            },
        )
        store.seed(CATERING, "CAT001", {"name": "Tea and Sandwiches", "price": 1500.0, "features": []})

    return _seed


@pytest.fixture
def seed_contract(store, seed_member, seed_catalogue):
    """Contract CNT000001 with a main member, one dependent and a beneficiary."""

    def _seed(contract_number: str = "CNT000001", catering_ids: Optional[List[str]] = None) -> str:
        seed_catalogue()
        seed_member("m-main", "7005140123087", "Thandi", "Mokoena")
        seed_member("m-dep", "9501015800086", "Sipho", "Mokoena")
        seed_member("m-ben", "6802020456081", "Lerato", "Dlamini")
        store.seed(CONTACTS, "c-1", {"memberId": "m-main", "type": "phone", "value": "0821234567"})
        store.seed(CONTACTS, "c-2", {"memberId": "m-main", "type": "email", "value": "thandi@example.com"})
        store.seed(
            ADDRESS,
            "a-1",
            {"memberId": "m-main", "street": "12 Long St", "city": "Cape Town", "province": "Western Cape", "postalCode": "8001"},
        )
        store.seed(
            CONTRACTS,
            "k-" + contract_number,
            {
                "contractNumber": contract_number,
                "policiesId": "POL001",
                "cateringOptionIds": catering_ids if catering_ids is not None else ["CAT001"],
                "status": "Active",
                "memberIdNumber": "7005140123087",
                "createdAt": "2024-01-01T08:00:00.000Z",
                "updatedAt": "2024-01-01T08:00:00.000Z",
            },
        )
        edges = [
            ("e-1", "m-main", "Main Member", "2024-01-01T08:00:00.000Z"),
            ("e-2", "m-dep", "Dependent", "2024-01-01T08:00:01.000Z"),
            ("e-3", "m-ben", "Beneficiary", "2024-01-01T08:00:02.000Z"),
        ]
        for key, member_id, role, created_at in edges:
            store.seed(
                MEMBER_CONTRACT_RELATIONSHIPS,
                f"{key}-{contract_number}",
                {"member_id": member_id, "contract_number": contract_number, "role": role, "created_at": created_at},
            )
        return contract_number

    return _seed


@pytest.fixture
def seed_claim(store):
    """Write a claim root (and optionally its satellites) directly into the store."""

    def _seed(
        claim_number: str,
        contract_number: str = "CNT000001",
        created_at: str = "2024-02-01T10:00:00.000Z",
        status: str = "FNOL",
        claimant_name: str = "Sipho Mokoena",
        service_provider: str = "Doves Funerals",
        with_satellites: bool = True,
    ) -> str:
        store.seed(
            CLAIMS,
            claim_number,
            {
                "claimNumber": claim_number,
                "contractNumber": contract_number,
                "claimantName": claimant_name,
                "relationship": "Son",
                "serviceDate": "2024-01-28",
                "serviceProvider": service_provider,
                "location": "Soweto",
                "status": status,
                "createdAt": created_at,
                "updatedAt": created_at,
            },
        )
        if with_satellites:
            common = {"claimNumber": claim_number, "contractNumber": contract_number, "createdAt": created_at}
            store.seed(CLAIM_POLICIES, claim_number, {"policyNumber": "POL001", "holderName": "Thandi Mokoena", "coverageAmount": 30000.0, **common})
            store.seed(
                CLAIM_DECEASED,
                claim_number,
                {"firstName": "Thandi", "lastName": "Mokoena", "idNumber": "7005140123087", "dateOfDeath": "2024-01-20", **common},
            )
            store.seed(
                CLAIM_BANK_DETAILS,
                claim_number,
                {"accountHolder": "Sipho Mokoena", "bankName": "FNB", "accountType": "Cheque", "accountNumber": "62001234567", "branchCode": "250655", **common},
            )
            store.seed(
                CLAIM_DOCUMENTS,
                claim_number,
                {
                    "documents": [
                        {"type": "Death Certificate", "url": "https://files.example.com/dc.pdf"},
                        {"type": "ID Document", "url": "https://files.example.com/id.pdf"},
                        {"type": "Bank Statement", "url": "https://files.example.com/bs.pdf"},
                    ],
                    **common,
                },
            )
        return claim_number

    return _seed


@pytest.fixture
def claim_payload():
    def _payload(contract_number: str = "CNT000001", **overrides: Any) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contractNumber": contract_number,
            "claimantName": "Sipho Mokoena",
            "relationship": "Son",
            "serviceDate": "2024-01-28",
            "serviceProvider": "Doves Funerals",
            "location": "Soweto",
            "policy": {"policyNumber": "POL001", "holderName": "Thandi Mokoena", "coverageAmount": 30000},
            "deceased": {
                "firstName": "Thandi",
                "lastName": "Mokoena",
                "idNumber": "7005140123087",
                "dateOfDeath": "2024-01-20",
                "causeOfDeath": "Natural causes",
                "placeOfDeath": "Home",
                "relationship": "Mother",
            },
            "bankDetails": {
                "accountHolder": "Sipho Mokoena",
                "bankName": "FNB",
                "accountType": "Cheque",
                "accountNumber": "62001234567",
                "branchCode": "250655",
            },
            "documents": [
                {"type": "Death Certificate", "url": "https://files.example.com/dc.pdf"},
                {"type": "ID Document", "url": "https://files.example.com/id.pdf"},
                {"type": "Bank Statement", "url": "https://files.example.com/bs.pdf"},
            ],
        }
        payload.update(overrides)
        return payload

    return _payload
