"""
API endpoints for payments recorded against contracts.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from backoffice.api.dependencies import Services, get_role, get_services

api = APIRouter()


@api.post("/payments", tags=["Payments"], status_code=201)
async def record_payment(payload: dict = Body(...), services: Services = Depends(get_services), role: Optional[str] = Depends(get_role)):
    payment = await services.payments.record_payment(payload, role)
    return payment.to_document()


@api.get("/payments/{reference}", tags=["Payments"])
async def get_payment(reference: str, services: Services = Depends(get_services)):
    payment = await services.payments.get_payment(reference)
    return payment.to_document()


@api.get("/contracts/by-number/{contract_number}/payments", tags=["Payments"])
async def list_contract_payments(
    contract_number: str,
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    services: Services = Depends(get_services),
):
    payments = await services.payments.payments_for_contract(contract_number, limit)
    return [p.to_document() for p in payments]
