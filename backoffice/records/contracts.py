from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from backoffice.database.interfaces import Snapshot, UniqueConstraint
from backoffice.records.catalogue import Policy

# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------

CONTRACTS = "Contracts"
MEMBERS = "Members"
CONTACTS = "Contacts"
ADDRESS = "Address"
MEMBER_CONTRACT_RELATIONSHIPS = "member_contract_relationships"
# Beneficiary edge satellites, keyed by `member_contract_relationship_id`.
RELATIONSHIP = "Relationship"
BENEFIT = "Benefit"


class MemberRole(str, Enum):
    MAIN_MEMBER = "Main Member"
    DEPENDENT = "Dependent"
    BENEFICIARY = "Beneficiary"


DEFAULT_CONTRACT_STATUS = "Active"

ONE_MAIN_MEMBER_PER_CONTRACT = UniqueConstraint(
    name="one_main_member_per_contract",
    collection=MEMBER_CONTRACT_RELATIONSHIPS,
    fields=("contract_number",),
    where=(("role", MemberRole.MAIN_MEMBER.value),),
)

UNIQUE_MEMBER_ROLE_PER_CONTRACT = UniqueConstraint(
    name="unique_member_role_per_contract",
    collection=MEMBER_CONTRACT_RELATIONSHIPS,
    fields=("member_id", "contract_number", "role"),
)

RELATIONSHIP_CONSTRAINTS = (ONE_MAIN_MEMBER_PER_CONTRACT, UNIQUE_MEMBER_ROLE_PER_CONTRACT)

UNIQUE_MEMBER_ID_NUMBER = UniqueConstraint(
    name="unique_member_id_number",
    collection=MEMBERS,
    fields=("idNumber",),
)

MEMBER_CONSTRAINTS = (UNIQUE_MEMBER_ID_NUMBER,)

ID_TYPES = ("South African ID", "Passport")


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@dataclass
class Contact:
    type: str
    value: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "value": self.value}


@dataclass
class MemberAddress:
    street: str = ""
    city: str = ""
    province: str = ""
    postal_code: str = ""

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "MemberAddress":
        return cls(
            street=data.get("street") or "",
            city=data.get("city") or "",
            province=data.get("province") or "",
            postal_code=data.get("postalCode") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "street": self.street,
            "city": self.city,
            "province": self.province,
            "postalCode": self.postal_code,
        }


@dataclass
class Member:
    member_id: str
    id_number: str
    id_type: str = ""
    first_name: str = ""
    last_name: str = ""
    date_of_birth: str = ""
    gender: str = ""
    contacts: List[Contact] = field(default_factory=list)
    address: Optional[MemberAddress] = None
    # Beneficiary-only edge details
    relationship_type: Optional[str] = None
    benefit_percentage: Optional[float] = None

    @classmethod
    def from_snapshot(cls, snap: Snapshot) -> "Member":
        data = snap.data
        return cls(
            member_id=snap.key,
            id_number=data.get("idNumber") or "",
            id_type=data.get("idType") or "",
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            date_of_birth=data.get("dateOfBirth") or "",
            gender=data.get("gender") or "",
        )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "memberId": self.member_id,
            "idNumber": self.id_number,
            "idType": self.id_type,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "dateOfBirth": self.date_of_birth,
            "gender": self.gender,
            "contacts": [c.to_dict() for c in self.contacts],
            "address": self.address.to_dict() if self.address else None,
        }
        if self.relationship_type is not None:
            out["relationshipType"] = self.relationship_type
        if self.benefit_percentage is not None:
            out["benefitPercentage"] = self.benefit_percentage
        return out


@dataclass
class MemberSubmission:
    """Validated personal info with the contacts and address written alongside it."""

    id_number: str
    first_name: str
    last_name: str
    id_type: str = ID_TYPES[0]
    date_of_birth: str = ""
    gender: str = ""
    contacts: List[Contact] = field(default_factory=list)
    address: Optional[MemberAddress] = None

    def personal_info(self) -> Dict[str, Any]:
        return {
            "idNumber": self.id_number,
            "idType": self.id_type,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "dateOfBirth": self.date_of_birth,
            "gender": self.gender,
        }


@dataclass
class ContractMembers:
    main_member: Optional[Member] = None
    dependents: List[Member] = field(default_factory=list)
    beneficiaries: List[Member] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mainMember": self.main_member.to_dict() if self.main_member else None,
            "dependents": [m.to_dict() for m in self.dependents],
            "beneficiaries": [m.to_dict() for m in self.beneficiaries],
        }


@dataclass
class BeneficiaryLink:
    member_id: str
    relationship_type: Optional[str] = None
    benefit_percentage: Optional[float] = None


@dataclass
class ContractSubmission:
    """A validated contract with the members it links, ready to be written."""

    policies_id: str
    catering_option_ids: List[str]
    main_member_id: str
    dependent_ids: List[str] = field(default_factory=list)
    beneficiaries: List[BeneficiaryLink] = field(default_factory=list)
    status: str = DEFAULT_CONTRACT_STATUS


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------

@dataclass
class CateringSelection:
    option_id: str
    name: str
    price: float

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.option_id, "name": self.name, "price": self.price}


@dataclass
class ContractRecord:
    contract_id: str
    contract_number: str
    policies_id: str
    catering_option_ids: List[str]
    status: str
    member_id_number: str
    created_at: Optional[str]
    updated_at: Optional[str]
    policy: Optional[Policy] = None
    catering_options: List[CateringSelection] = field(default_factory=list)
    members: Optional[ContractMembers] = None
    absent: List[str] = field(default_factory=list)

    @classmethod
    def from_root(cls, snap: Snapshot) -> "ContractRecord":
        data = snap.data
        return cls(
            contract_id=snap.key,
            contract_number=data.get("contractNumber") or "",
            policies_id=data.get("policiesId") or "",
            catering_option_ids=list(data.get("cateringOptionIds") or []),
            status=data.get("status") or "",
            member_id_number=data.get("memberIdNumber") or "",
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    @property
    def catering_total(self) -> float:
        return sum(c.price for c in self.catering_options)

    @property
    def total_cost(self) -> float:
        premium = self.policy.premium if self.policy else 0.0
        return premium + self.catering_total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.contract_id,
            "contractNumber": self.contract_number,
            "policiesId": self.policies_id,
            "cateringOptionIds": list(self.catering_option_ids),
            "status": self.status,
            "memberIdNumber": self.member_id_number,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "policy": self.policy.to_dict() if self.policy else None,
            "cateringOptions": [c.to_dict() for c in self.catering_options],
            "cateringTotal": self.catering_total,
            "totalCost": self.total_cost,
            "members": self.members.to_dict() if self.members else None,
            "absent": list(self.absent),
        }
