import pytest

from backoffice.errors import FormValidationError, NotFoundError, PermissionDeniedError, ReferentialConflictError
from backoffice.records.catalogue import CATEGORY, FEATURES, POLICIES


@pytest.mark.asyncio
async def test_created_entries_get_sequential_ids(services):
    feature = await services.catalogue.create_feature({"name": "Repatriation"}, "Admin")
    category = await services.catalogue.create_category({"name": "Funeral"}, "Admin")
    policy = await services.catalogue.create_policy(
        {
            "name": "Family Plan",
            "premium": "250",
            "coverAmount": 30000,
            "maxDependents": 6,
            "features": [feature.feature_id],
            "categoryId": category.category_id,
        },
        "Admin",
    )
    second = await services.catalogue.create_policy({"name": "Single Plan", "premium": 99, "coverAmount": 10000}, "Admin")
    option = await services.catalogue.create_catering_option({"name": "Platters", "price": 800}, "Admin")

    assert feature.feature_id == "FEX001"
    assert category.category_id == "CTG001"
    assert policy.policy_id == "POL001"
    assert second.policy_id == "POL002"
    assert option.option_id == "CAT001"
    assert policy.premium == 250.0
    assert policy.status == "active"
    assert [p.policy_id for p in await services.catalogue.list_policies()] == ["POL001", "POL002"]


@pytest.mark.asyncio
async def test_ids_continue_from_highest_existing(services, store):
    store.seed(POLICIES, "POL007", {"name": "Legacy"})
    store.seed(POLICIES, "POL003", {"name": "Older"})
    store.seed(FEATURES, "custom-feature", {"name": "Imported"})

    policy = await services.catalogue.create_policy({"name": "New", "premium": 1, "coverAmount": 1}, "Admin")
    feature = await services.catalogue.create_feature({"name": "Fresh"}, "Admin")
    assert policy.policy_id == "POL008"
    assert feature.feature_id == "FEX001"


@pytest.mark.asyncio
async def test_create_validation(services, store):
    with pytest.raises(FormValidationError) as exc:
        await services.catalogue.create_policy(
            {"name": "", "premium": "-5", "coverAmount": "lots", "status": "paused"}, "Admin"
        )
    errors = exc.value.field_errors
    assert set(errors) == {"name", "premium", "coverAmount", "status"}

    with pytest.raises(FormValidationError) as exc:
        await services.catalogue.create_catering_option({"name": "Buffet", "price": 10, "features": ["FEX404"]}, "Admin")
    assert "features" in exc.value.field_errors
    assert store.count(POLICIES) == 0

    with pytest.raises(PermissionDeniedError):
        await services.catalogue.create_category({"name": "Funeral"}, "View Only")


@pytest.mark.asyncio
async def test_delete_guarded_by_references(services, store, seed_contract):
    seed_contract()
    with pytest.raises(ReferentialConflictError) as exc:
        await services.catalogue.delete_policy("POL001", "Admin")
    assert str(exc.value) == "This policy is linked to existing contracts and cannot be deleted."

    with pytest.raises(ReferentialConflictError):
        await services.catalogue.delete_catering_option("CAT001", "Admin")

    unused = await services.catalogue.create_policy({"name": "Unused", "premium": 1, "coverAmount": 1}, "Admin")
    await services.catalogue.delete_policy(unused.policy_id, "Admin")
    assert await store.get(POLICIES, unused.policy_id) is None


@pytest.mark.asyncio
async def test_category_and_feature_deletes(services, store):
    category = await services.catalogue.create_category({"name": "Funeral"}, "Admin")
    feature = await services.catalogue.create_feature({"name": "Tent"}, "Admin")
    await services.catalogue.create_catering_option(
        {"name": "Buffet", "price": 10, "categoryId": category.category_id, "features": [feature.feature_id]}, "Admin"
    )

    with pytest.raises(ReferentialConflictError) as exc:
        await services.catalogue.delete_category(category.category_id, "Admin")
    assert exc.value.referenced_by == "catering options"
    with pytest.raises(ReferentialConflictError):
        await services.catalogue.delete_feature(feature.feature_id, "Admin")
    with pytest.raises(NotFoundError):
        await services.catalogue.delete_feature("FEX404", "Admin")
    assert store.count(CATEGORY) == 1


@pytest.mark.asyncio
async def test_search_policies_with_ranges(services, store):
    for key, name, premium, cover, deps in [
        ("POL001", "Bronze", 100, 10000, 2),
        ("POL002", "Silver", 200, 20000, 4),
        ("POL003", "Gold", 300, 30000, 6),
        ("POL004", "Platinum", 400, 50000, 8),
    ]:
        store.seed(
            POLICIES,
            key,
            {"name": name, "premium": premium, "coverAmount": cover, "maxDependents": deps, "status": "active", "categoryId": ""},
        )

    result = await services.catalogue.search_policies(min_premium=150, max_cover=30000)
    assert [p.name for p in result.rows] == ["Gold", "Silver"]

    result = await services.catalogue.search_policies(sort="premium", direction="desc", min_dependents=4, page_size=2)
    assert [p.name for p in result.rows] == ["Platinum", "Gold"]
    assert result.has_more is True
    result = await services.catalogue.search_policies(
        sort="premium", direction="desc", min_dependents=4, page_size=2, cursor=result.cursor
    )
    assert [p.name for p in result.rows] == ["Silver"]

    result = await services.catalogue.search_policies(name="PLAT")
    assert [p.policy_id for p in result.rows] == ["POL004"]

    with pytest.raises(NotFoundError):
        await services.catalogue.get_policy("POL404")
