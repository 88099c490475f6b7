from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from backoffice.database.interfaces import Snapshot

PAYMENTS = "Payments"

PAYMENT_COMPLETED = "Completed"
PAYMENT_METHODS = ("Cash", "Credit Card", "Debit Card", "Bank Transfer")


@dataclass
class Payment:
    reference: str
    contract_number: str
    amount: float
    payment_method: str
    receipt_url: str
    status: str = PAYMENT_COMPLETED
    payment_date: Optional[str] = None

    @classmethod
    def from_snapshot(cls, snap: Snapshot) -> "Payment":
        data = snap.data
        return cls(
            reference=snap.key,
            contract_number=data.get("contractNumber") or "",
            amount=float(data.get("amount") or 0),
            payment_method=data.get("paymentMethod") or "",
            receipt_url=data.get("receiptUrl") or "",
            status=data.get("status") or PAYMENT_COMPLETED,
            payment_date=data.get("paymentDate"),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "reference": self.reference,
            "contractNumber": self.contract_number,
            "amount": self.amount,
            "paymentMethod": self.payment_method,
            "receiptUrl": self.receipt_url,
            "status": self.status,
            "paymentDate": self.payment_date,
        }
