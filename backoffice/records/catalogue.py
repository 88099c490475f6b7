from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from backoffice.database.interfaces import Snapshot

# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------

POLICIES = "Policies"
CATERING = "catering"
CATEGORY = "Category"
FEATURES = "features"

POLICY_STATUSES = ("active", "inactive")


@dataclass
class Policy:
    policy_id: str
    name: str
    description: str = ""
    premium: float = 0.0
    cover_amount: float = 0.0
    max_dependents: int = 0
    status: str = "active"
    features: List[str] = field(default_factory=list)
    category_id: str = ""

    @classmethod
    def from_snapshot(cls, snap: Snapshot) -> "Policy":
        data = snap.data
        return cls(
            policy_id=snap.key,
            name=data.get("name") or "",
            description=data.get("description") or "",
            premium=float(data.get("premium") or 0),
            cover_amount=float(data.get("coverAmount") or 0),
            max_dependents=int(data.get("maxDependents") or 0),
            status=data.get("status") or "inactive",
            features=list(data.get("features") or []),
            category_id=data.get("categoryId") or "",
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "premium": self.premium,
            "coverAmount": self.cover_amount,
            "maxDependents": self.max_dependents,
            "status": self.status,
            "features": list(self.features),
            "categoryId": self.category_id,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.policy_id, **self.to_document()}


@dataclass
class CateringOption:
    option_id: str
    name: str
    price: float = 0.0
    description: str = ""
    category_id: str = ""
    features: List[str] = field(default_factory=list)

    @classmethod
    def from_snapshot(cls, snap: Snapshot) -> "CateringOption":
        data = snap.data
        return cls(
            option_id=snap.key,
            name=data.get("name") or "",
            price=float(data.get("price") or 0),
            description=data.get("description") or "",
            category_id=data.get("categoryId") or "",
            features=list(data.get("features") or []),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "price": self.price,
            "description": self.description,
            "categoryId": self.category_id,
            "features": list(self.features),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.option_id, **self.to_document()}


@dataclass
class Category:
    category_id: str
    name: str

    @classmethod
    def from_snapshot(cls, snap: Snapshot) -> "Category":
        return cls(category_id=snap.key, name=snap.data.get("name") or "")

    def to_document(self) -> Dict[str, Any]:
        return {"name": self.name}

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.category_id, **self.to_document()}


@dataclass
class Feature:
    feature_id: str
    name: str
    description: str = ""

    @classmethod
    def from_snapshot(cls, snap: Snapshot) -> "Feature":
        return cls(
            feature_id=snap.key,
            name=snap.data.get("name") or "",
            description=snap.data.get("description") or "",
        )

    def to_document(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description}

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.feature_id, **self.to_document()}
