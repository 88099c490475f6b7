"""
API endpoints to maintain the product catalogue
(policies, catering options, categories, features).
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from backoffice.api.dependencies import Services, get_role, get_services

api = APIRouter()


# --------------------------------------------------------------------------- #
# Policies
# --------------------------------------------------------------------------- #
@api.get("/catalogue/policies", tags=["Catalogue"])
async def list_policies(services: Services = Depends(get_services)):
    return [p.to_dict() for p in await services.catalogue.list_policies()]


@api.get("/catalogue/policies/search", tags=["Catalogue"])
async def search_policies(
    name: Optional[str] = None,
    status: Optional[str] = None,
    category_id: Optional[str] = Query(default=None, alias="categoryId"),
    min_premium: Optional[float] = Query(default=None, alias="minPremium"),
    max_premium: Optional[float] = Query(default=None, alias="maxPremium"),
    min_cover: Optional[float] = Query(default=None, alias="minCover"),
    max_cover: Optional[float] = Query(default=None, alias="maxCover"),
    min_dependents: Optional[int] = Query(default=None, alias="minDependents"),
    sort: str = "name",
    direction: str = "asc",
    cursor: Optional[str] = None,
    page_size: Optional[int] = Query(default=None, alias="pageSize"),
    services: Services = Depends(get_services),
):
    result = await services.catalogue.search_policies(
        name=name,
        status=status,
        category_id=category_id,
        min_premium=min_premium,
        max_premium=max_premium,
        min_cover=min_cover,
        max_cover=max_cover,
        min_dependents=min_dependents,
        sort=sort,
        direction=direction,
        cursor=cursor,
        page_size=page_size,
    )
    return result.to_dict()


@api.get("/catalogue/policies/{policy_id}", tags=["Catalogue"])
async def get_policy(policy_id: str, services: Services = Depends(get_services)):
    policy = await services.catalogue.get_policy(policy_id)
    return policy.to_dict()


@api.post("/catalogue/policies", tags=["Catalogue"], status_code=201)
async def create_policy(payload: dict = Body(...), services: Services = Depends(get_services), role: Optional[str] = Depends(get_role)):
    policy = await services.catalogue.create_policy(payload, role)
    return policy.to_dict()


@api.delete("/catalogue/policies/{policy_id}", tags=["Catalogue"])
async def delete_policy(policy_id: str, services: Services = Depends(get_services), role: Optional[str] = Depends(get_role)):
    await services.catalogue.delete_policy(policy_id, role)
    return {"deleted": True}


# --------------------------------------------------------------------------- #
# Catering options
# --------------------------------------------------------------------------- #
@api.get("/catalogue/catering", tags=["Catalogue"])
async def list_catering_options(services: Services = Depends(get_services)):
    return [c.to_dict() for c in await services.catalogue.list_catering_options()]


@api.post("/catalogue/catering", tags=["Catalogue"], status_code=201)
async def create_catering_option(payload: dict = Body(...), services: Services = Depends(get_services), role: Optional[str] = Depends(get_role)):
    option = await services.catalogue.create_catering_option(payload, role)
    return option.to_dict()


@api.delete("/catalogue/catering/{option_id}", tags=["Catalogue"])
async def delete_catering_option(option_id: str, services: Services = Depends(get_services), role: Optional[str] = Depends(get_role)):
    await services.catalogue.delete_catering_option(option_id, role)
    return {"deleted": True}


# --------------------------------------------------------------------------- #
# Categories
# --------------------------------------------------------------------------- #
@api.get("/catalogue/categories", tags=["Catalogue"])
async def list_categories(services: Services = Depends(get_services)):
    return [c.to_dict() for c in await services.catalogue.list_categories()]


@api.post("/catalogue/categories", tags=["Catalogue"], status_code=201)
async def create_category(payload: dict = Body(...), services: Services = Depends(get_services), role: Optional[str] = Depends(get_role)):
    category = await services.catalogue.create_category(payload, role)
    return category.to_dict()


@api.delete("/catalogue/categories/{category_id}", tags=["Catalogue"])
async def delete_category(category_id: str, services: Services = Depends(get_services), role: Optional[str] = Depends(get_role)):
    await services.catalogue.delete_category(category_id, role)
    return {"deleted": True}


# --------------------------------------------------------------------------- #
# Features
# --------------------------------------------------------------------------- #
@api.get("/catalogue/features", tags=["Catalogue"])
async def list_features(services: Services = Depends(get_services)):
    return [f.to_dict() for f in await services.catalogue.list_features()]


@api.post("/catalogue/features", tags=["Catalogue"], status_code=201)
async def create_feature(payload: dict = Body(...), services: Services = Depends(get_services), role: Optional[str] = Depends(get_role)):
    feature = await services.catalogue.create_feature(payload, role)
    return feature.to_dict()


@api.delete("/catalogue/features/{feature_id}", tags=["Catalogue"])
async def delete_feature(feature_id: str, services: Services = Depends(get_services), role: Optional[str] = Depends(get_role)):
    await services.catalogue.delete_feature(feature_id, role)
    return {"deleted": True}
