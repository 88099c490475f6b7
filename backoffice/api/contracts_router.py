"""
API endpoints for contracts and their members.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from backoffice.api.dependencies import Services, get_role, get_services

api = APIRouter()


@api.post("/contracts", tags=["Contracts"], status_code=201)
async def create_contract(payload: dict = Body(...), services: Services = Depends(get_services), role: Optional[str] = Depends(get_role)):
    contract = await services.contracts.create_contract(payload, role)
    return contract.to_dict()


@api.get("/contracts/search", tags=["Contracts"])
async def search_contracts(
    contract_number: Optional[str] = Query(default=None, alias="contractNumber"),
    status: Optional[str] = None,
    policies_id: Optional[str] = Query(default=None, alias="policiesId"),
    member_id_number: Optional[str] = Query(default=None, alias="memberIdNumber"),
    sort: str = "createdAt",
    direction: str = "desc",
    cursor: Optional[str] = None,
    page_size: Optional[int] = Query(default=None, alias="pageSize"),
    session_id: Optional[str] = None,
    load_more: bool = Query(default=False, alias="loadMore"),
    services: Services = Depends(get_services),
):
    result = await services.contracts.search_contracts(
        contract_number=contract_number,
        status=status,
        policies_id=policies_id,
        member_id_number=member_id_number,
        sort=sort,
        direction=direction,
        cursor=cursor,
        page_size=page_size,
        session_id=session_id,
        load_more=load_more,
    )
    return result.to_dict()


@api.get("/contracts/main-member-check/{id_number}", tags=["Contracts"])
async def main_member_check(id_number: str, services: Services = Depends(get_services)):
    check = await services.contracts.main_member_existing_contract(id_number)
    return {"exists": check.exists, "contractNumber": check.contract_number}


@api.get("/contracts/by-number/{contract_number}", tags=["Contracts"])
async def get_contract_by_number(contract_number: str, services: Services = Depends(get_services)):
    contract = await services.contracts.get_contract_by_number(contract_number)
    payload = contract.to_dict()
    recent = await services.claims.recent_claims_for_contract(contract_number)
    payload["recentClaims"] = [c.to_dict() for c in recent]
    return payload


@api.get("/contracts/by-number/{contract_number}/members", tags=["Contracts"])
async def get_contract_members(contract_number: str, services: Services = Depends(get_services)):
    members = await services.contracts.contract_members(contract_number)
    return members.to_dict()


@api.put("/contracts/by-number/{contract_number}/members", tags=["Contracts"])
async def replace_contract_members(
    contract_number: str,
    payload: dict = Body(...),
    services: Services = Depends(get_services),
    role: Optional[str] = Depends(get_role),
):
    members = await services.contracts.replace_members(contract_number, payload, role)
    return members.to_dict()


@api.get("/contracts/by-number/{contract_number}/members/{member_id}/role", tags=["Contracts"])
async def get_member_role(contract_number: str, member_id: str, services: Services = Depends(get_services)):
    role = await services.contracts.member_role(member_id, contract_number)
    return {"memberId": member_id, "contractNumber": contract_number, "role": role}


@api.get("/contracts/{contract_id}", tags=["Contracts"])
async def get_contract(contract_id: str, services: Services = Depends(get_services)):
    contract = await services.contracts.get_contract(contract_id)
    return contract.to_dict()


@api.post("/members", tags=["Members"], status_code=201)
async def create_member(payload: dict = Body(...), services: Services = Depends(get_services), role: Optional[str] = Depends(get_role)):
    member = await services.contracts.create_member(payload, role)
    return member.to_dict()


@api.get("/members/{id_number}", tags=["Members"])
async def get_member(id_number: str, services: Services = Depends(get_services)):
    member = await services.contracts.get_member(id_number)
    return member.to_dict()


@api.put("/members/{id_number}", tags=["Members"])
async def update_member(
    id_number: str,
    payload: dict = Body(...),
    services: Services = Depends(get_services),
    role: Optional[str] = Depends(get_role),
):
    member = await services.contracts.update_member(id_number, payload, role)
    return member.to_dict()
