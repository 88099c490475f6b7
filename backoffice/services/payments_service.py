"""
Payments recorded against contracts.

Payment references are `ref-` followed by a ten-digit sequence number.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from backoffice.aggregation.writer import AtomicWriteCoordinator
from backoffice.config import SearchConfig
from backoffice.database.interfaces import DESCENDING, DocumentStore, Query
from backoffice.errors import NotFoundError
from backoffice.records.contracts import CONTRACTS
from backoffice.records.payments import PAYMENT_METHODS, PAYMENTS, Payment
from backoffice.services.common import require_write_role
from backoffice.validation import parse_amount, raise_if_errors, require_str, validate_in

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, store: DocumentStore, writer: AtomicWriteCoordinator, search_cfg: Optional[SearchConfig] = None) -> None:
        self.store = store
        self.writer = writer
        self.search_cfg = search_cfg or SearchConfig()

    async def record_payment(self, payload: Dict[str, Any], role: Optional[str]) -> Payment:
        require_write_role(role, "record payments")
        errors: Dict[str, str] = {}
        contract_number = require_str(payload, "contractNumber", errors, label="Contract number")
        amount = parse_amount(payload, "amount", errors, min_value=0, exclusive_min=True, required=True)
        method = validate_in(payload.get("paymentMethod"), PAYMENT_METHODS, errors, "paymentMethod")
        receipt_url = require_str(payload, "receiptUrl", errors, label="Receipt")
        raise_if_errors(errors)

        if not await self.store.exists(Query(CONTRACTS).where("contractNumber", "==", contract_number)):
            raise_if_errors({"contractNumber": f"Contract {contract_number} does not exist"})

        payment = Payment(
            reference="",
            contract_number=contract_number,
            amount=amount,
            payment_method=method,
            receipt_url=receipt_url,
        )
        return await self.writer.write_payment(payment)

    async def get_payment(self, reference: str) -> Payment:
        snap = await self.store.get(PAYMENTS, reference)
        if snap is None:
            raise NotFoundError(PAYMENTS, reference, f"Payment {reference} not found")
        return Payment.from_snapshot(snap)

    async def payments_for_contract(self, contract_number: str, limit: Optional[int] = None) -> List[Payment]:
        """Newest first."""
        query = (
            Query(PAYMENTS)
            .where("contractNumber", "==", contract_number)
            .ordered("paymentDate", DESCENDING)
        )
        query.limit = limit or self.search_cfg.recent_payments_limit
        return [Payment.from_snapshot(s) for s in await self.store.query(query)]
