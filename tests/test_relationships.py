import pytest

from backoffice.aggregation.relationships import RelationshipResolver
from backoffice.records.contracts import BENEFIT, MEMBER_CONTRACT_RELATIONSHIPS, RELATIONSHIP


@pytest.mark.asyncio
async def test_resolve_groups_members_by_role(store, seed_contract):
    seed_contract()
    members = await RelationshipResolver(store).resolve("CNT000001")

    assert members.main_member.full_name == "Thandi Mokoena"
    assert [c.type for c in members.main_member.contacts] == ["phone", "email"]
    assert members.main_member.address.city == "Cape Town"
    assert [m.member_id for m in members.dependents] == ["m-dep"]
    assert [m.member_id for m in members.beneficiaries] == ["m-ben"]
    assert members.dependents[0].address is None


@pytest.mark.asyncio
async def test_beneficiary_edge_details_are_attached(store, seed_contract):
    seed_contract()
    store.seed(RELATIONSHIP, "r-1", {"member_contract_relationship_id": "e-3-CNT000001", "relationshipType": "Sister"})
    store.seed(BENEFIT, "b-1", {"member_contract_relationship_id": "e-3-CNT000001", "percentage": 60})

    members = await RelationshipResolver(store).resolve("CNT000001")
    beneficiary = members.beneficiaries[0]
    assert beneficiary.relationship_type == "Sister"
    assert beneficiary.benefit_percentage == 60.0
    assert beneficiary.to_dict()["benefitPercentage"] == 60.0
    assert "relationshipType" not in members.main_member.to_dict()


@pytest.mark.asyncio
async def test_first_main_member_edge_wins(store, seed_contract, seed_member):
    seed_contract()
    seed_member("m-late", "8001015009087", "Late", "Comer")
    store.seed(
        MEMBER_CONTRACT_RELATIONSHIPS,
        "e-9",
        {"member_id": "m-late", "contract_number": "CNT000001", "role": "Main Member", "created_at": "2024-06-01T00:00:00.000Z"},
    )
    members = await RelationshipResolver(store).resolve("CNT000001")
    assert members.main_member.member_id == "m-main"


@pytest.mark.asyncio
async def test_member_with_two_roles_appears_in_both(store, seed_contract):
    seed_contract()
    store.seed(
        MEMBER_CONTRACT_RELATIONSHIPS,
        "e-4",
        {"member_id": "m-dep", "contract_number": "CNT000001", "role": "Beneficiary", "created_at": "2024-01-01T08:00:03.000Z"},
    )
    store.seed(BENEFIT, "b-4", {"member_contract_relationship_id": "e-4", "percentage": 40})

    members = await RelationshipResolver(store).resolve("CNT000001")
    assert [m.member_id for m in members.dependents] == ["m-dep"]
    assert [m.member_id for m in members.beneficiaries] == ["m-ben", "m-dep"]
    assert members.dependents[0].benefit_percentage is None
    assert members.beneficiaries[1].benefit_percentage == 40.0


@pytest.mark.asyncio
async def test_dangling_member_edge_is_skipped(store, seed_contract):
    seed_contract()
    store.seed(
        MEMBER_CONTRACT_RELATIONSHIPS,
        "e-5",
        {"member_id": "m-gone", "contract_number": "CNT000001", "role": "Dependent", "created_at": "2024-01-02T00:00:00.000Z"},
    )
    members = await RelationshipResolver(store).resolve("CNT000001")
    assert [m.member_id for m in members.dependents] == ["m-dep"]


@pytest.mark.asyncio
async def test_member_role_lookup(store, seed_contract):
    seed_contract()
    resolver = RelationshipResolver(store)
    assert await resolver.get_member_role("m-dep", "CNT000001") == "Dependent"
    assert await resolver.get_member_role("m-dep", "CNT999999") is None


@pytest.mark.asyncio
async def test_main_member_existing_contract(store, seed_contract, seed_member):
    seed_contract()
    seed_member("m-new", "9912315800084", "New", "Person")
    resolver = RelationshipResolver(store)

    check = await resolver.check_main_member_existing_contract("7005140123087")
    assert check.exists is True
    assert check.contract_number == "CNT000001"
    assert check.member_id == "m-main"

    # A dependent is not a main member anywhere
    assert (await resolver.check_main_member_existing_contract("9501015800086")).exists is False
    assert (await resolver.check_main_member_existing_contract("9912315800084")).exists is False
    assert (await resolver.check_main_member_existing_contract("0000000000000")).member_id is None
