"""
API endpoints for claims: filing, lookup, search and status changes.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from backoffice.api.dependencies import Services, get_role, get_services

api = APIRouter()


@api.post("/claims", tags=["Claims"], status_code=201)
async def submit_claim(payload: dict = Body(...), services: Services = Depends(get_services), role: Optional[str] = Depends(get_role)):
    claim = await services.claims.submit_claim(payload, role)
    return claim.to_dict()


@api.get("/claims/search", tags=["Claims"])
async def search_claims(
    contract_number: Optional[str] = Query(default=None, alias="contractNumber"),
    claim_id: Optional[str] = Query(default=None, alias="claimId"),
    status: Optional[str] = None,
    date_from: Optional[str] = Query(default=None, alias="dateFrom"),
    date_to: Optional[str] = Query(default=None, alias="dateTo"),
    claimant_name: Optional[str] = Query(default=None, alias="claimantName"),
    claim_type: Optional[str] = Query(default=None, alias="claimType"),
    sort: str = "createdAt",
    direction: str = "desc",
    cursor: Optional[str] = None,
    page_size: Optional[int] = Query(default=None, alias="pageSize"),
    session_id: Optional[str] = None,
    load_more: bool = Query(default=False, alias="loadMore"),
    services: Services = Depends(get_services),
):
    result = await services.claims.search_claims(
        contract_number=contract_number,
        claim_id=claim_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        claimant_name=claimant_name,
        claim_type=claim_type,
        sort=sort,
        direction=direction,
        cursor=cursor,
        page_size=page_size,
        session_id=session_id,
        load_more=load_more,
    )
    return result.to_dict()


@api.get("/claims/{claim_number}", tags=["Claims"])
async def get_claim(claim_number: str, services: Services = Depends(get_services)):
    claim = await services.claims.get_claim(claim_number)
    return claim.to_dict()


@api.patch("/claims/{claim_number}/status", tags=["Claims"])
async def update_claim_status(
    claim_number: str,
    payload: dict = Body(...),
    services: Services = Depends(get_services),
    role: Optional[str] = Depends(get_role),
):
    claim = await services.claims.update_status(claim_number, payload.get("status"), role)
    return claim.to_dict()
