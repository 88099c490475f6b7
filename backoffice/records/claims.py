from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from backoffice.database.interfaces import Snapshot

# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------

CLAIMS = "Claims"
CLAIM_POLICIES = "ClaimPolicies"
CLAIM_DECEASED = "ClaimDeceased"
CLAIM_BANK_DETAILS = "ClaimBankDetails"
CLAIM_DOCUMENTS = "ClaimDocuments"

# Satellite name (as reported in `absent`) -> collection
CLAIM_SATELLITES: Dict[str, str] = {
    "policy": CLAIM_POLICIES,
    "deceased": CLAIM_DECEASED,
    "bankDetails": CLAIM_BANK_DETAILS,
    "documents": CLAIM_DOCUMENTS,
}


class ClaimStatus(str, Enum):
    FNOL = "FNOL"
    UNDER_INVESTIGATION = "under investigation"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"


CLAIM_STATUSES = tuple(s.value for s in ClaimStatus)

MANDATORY_DOCUMENT_TYPES = ("Death Certificate", "ID Document", "Bank Statement")


# ---------------------------------------------------------------------------
# Satellite records
# ---------------------------------------------------------------------------

@dataclass
class PolicySnapshot:
    """Point-in-time copy of the policy taken when the claim was filed."""

    policy_number: str = ""
    holder_name: str = ""
    coverage_amount: float = 0.0

    def to_document(self) -> Dict[str, Any]:
        return {
            "policyNumber": self.policy_number,
            "holderName": self.holder_name,
            "coverageAmount": self.coverage_amount,
        }

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "PolicySnapshot":
        return cls(
            policy_number=data.get("policyNumber") or "",
            holder_name=data.get("holderName") or "",
            coverage_amount=float(data.get("coverageAmount") or 0),
        )


@dataclass
class DeceasedInfo:
    first_name: str
    last_name: str
    id_number: str
    date_of_death: str
    cause_of_death: str = ""
    place_of_death: str = ""
    relationship: str = ""

    def to_document(self) -> Dict[str, Any]:
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "idNumber": self.id_number,
            "dateOfDeath": self.date_of_death,
            "causeOfDeath": self.cause_of_death,
            "placeOfDeath": self.place_of_death,
            "relationship": self.relationship,
        }

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "DeceasedInfo":
        return cls(
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            id_number=data.get("idNumber") or "",
            date_of_death=data.get("dateOfDeath") or "",
            cause_of_death=data.get("causeOfDeath") or "",
            place_of_death=data.get("placeOfDeath") or "",
            relationship=data.get("relationship") or "",
        )


@dataclass
class BankDetails:
    account_holder: str
    bank_name: str
    account_type: str
    account_number: str
    branch_code: str

    def to_document(self) -> Dict[str, Any]:
        return {
            "accountHolder": self.account_holder,
            "bankName": self.bank_name,
            "accountType": self.account_type,
            "accountNumber": self.account_number,
            "branchCode": self.branch_code,
        }

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "BankDetails":
        return cls(
            account_holder=data.get("accountHolder") or "",
            bank_name=data.get("bankName") or "",
            account_type=data.get("accountType") or "",
            account_number=data.get("accountNumber") or "",
            branch_code=data.get("branchCode") or "",
        )


@dataclass
class ClaimDocument:
    type: str
    url: str

    def to_document(self) -> Dict[str, Any]:
        return {"type": self.type, "url": self.url}


def documents_from_document(data: Dict[str, Any]) -> List[ClaimDocument]:
    return [
        ClaimDocument(type=str(d.get("type") or ""), url=str(d.get("url") or ""))
        for d in (data.get("documents") or [])
        if isinstance(d, dict)
    ]


# ---------------------------------------------------------------------------
# Composite records
# ---------------------------------------------------------------------------

@dataclass
class ClaimSubmission:
    """A validated claim ready to be decomposed and written."""

    contract_number: str
    claimant_name: str
    relationship: str
    service_date: str
    service_provider: str
    location: str
    policy: PolicySnapshot
    bank_details: BankDetails
    documents: List[ClaimDocument]
    deceased: Optional[DeceasedInfo] = None


@dataclass
class ClaimRecord:
    claim_number: str
    contract_number: str
    claimant_name: str
    relationship: str
    service_date: str
    service_provider: str
    location: str
    status: str
    created_at: Optional[str]
    updated_at: Optional[str]
    policy: PolicySnapshot = field(default_factory=PolicySnapshot)
    deceased: Optional[DeceasedInfo] = None
    bank_details: Optional[BankDetails] = None
    documents: Optional[List[ClaimDocument]] = None
    absent: List[str] = field(default_factory=list)

    @classmethod
    def from_root(cls, snap: Snapshot) -> "ClaimRecord":
        data = snap.data
        return cls(
            claim_number=data.get("claimNumber") or snap.key,
            contract_number=data.get("contractNumber") or "",
            claimant_name=data.get("claimantName") or "",
            relationship=data.get("relationship") or "",
            service_date=data.get("serviceDate") or "",
            service_provider=data.get("serviceProvider") or "",
            location=data.get("location") or "",
            status=data.get("status") or ClaimStatus.FNOL.value,
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "claimNumber": self.claim_number,
            "contractNumber": self.contract_number,
            "claimantName": self.claimant_name,
            "claimType": self.service_provider,
            "relationship": self.relationship,
            "serviceDate": self.service_date,
            "serviceProvider": self.service_provider,
            "location": self.location,
            "status": self.status,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "policy": self.policy.to_document(),
            "deceased": self.deceased.to_document() if self.deceased else None,
            "bankDetails": self.bank_details.to_document() if self.bank_details else None,
            "documents": [d.to_document() for d in self.documents] if self.documents is not None else None,
            "absent": list(self.absent),
        }
