import asyncio

import pytest

from backoffice.errors import FormValidationError, NotFoundError, PermissionDeniedError
from backoffice.records.claims import CLAIM_BANK_DETAILS, CLAIM_DECEASED, CLAIM_DOCUMENTS, CLAIM_POLICIES, CLAIMS

CLAIM_COLLECTIONS = (CLAIMS, CLAIM_POLICIES, CLAIM_DECEASED, CLAIM_BANK_DETAILS, CLAIM_DOCUMENTS)


@pytest.mark.asyncio
async def test_submit_claim_writes_root_and_satellites(services, store, seed_contract, claim_payload):
    seed_contract()
    claim = await services.claims.submit_claim(claim_payload(), "Admin")

    assert claim.claim_number == "CLM000001"
    assert claim.status == "FNOL"
    assert claim.absent == []
    for collection in CLAIM_COLLECTIONS:
        snap = await store.get(collection, "CLM000001")
        assert snap is not None, collection
    policy = await store.get(CLAIM_POLICIES, "CLM000001")
    assert policy.data["claimNumber"] == "CLM000001"
    assert policy.data["contractNumber"] == "CNT000001"


@pytest.mark.asyncio
async def test_invalid_claim_writes_nothing(services, store, seed_contract, claim_payload):
    seed_contract()
    payload = claim_payload(
        claimantName="",
        bankDetails={"accountHolder": "S", "bankName": "FNB", "accountType": "Cheque", "accountNumber": "12ab", "branchCode": ""},
        documents=[{"type": "Death Certificate", "url": "https://files.example.com/dc.pdf"}],
    )
    with pytest.raises(FormValidationError) as exc:
        await services.claims.submit_claim(payload, "Admin")

    errors = exc.value.field_errors
    assert "claimantName" in errors
    assert "bankDetails.accountNumber" in errors
    assert "bankDetails.branchCode" in errors
    assert errors["documents"] == "Missing required documents: ID Document, Bank Statement"
    for collection in CLAIM_COLLECTIONS:
        assert store.count(collection) == 0


@pytest.mark.asyncio
async def test_claim_without_deceased_skips_that_satellite(services, store, seed_contract, claim_payload):
    seed_contract()
    payload = claim_payload()
    del payload["deceased"]
    claim = await services.claims.submit_claim(payload, "Admin")

    assert claim.deceased is None
    assert claim.absent == ["deceased"]
    assert await store.get(CLAIM_DECEASED, claim.claim_number) is None
    assert await store.get(CLAIM_BANK_DETAILS, claim.claim_number) is not None


@pytest.mark.asyncio
async def test_partial_deceased_section_is_rejected(services, store, seed_contract, claim_payload):
    seed_contract()
    with pytest.raises(FormValidationError) as exc:
        await services.claims.submit_claim(claim_payload(deceased={"firstName": "Thandi"}), "Admin")
    assert "deceased.lastName" in exc.value.field_errors
    assert "deceased.idNumber" in exc.value.field_errors
    assert store.count(CLAIMS) == 0


@pytest.mark.asyncio
async def test_claim_needs_known_contract(services, store, seed_contract, claim_payload):
    seed_contract()
    with pytest.raises(FormValidationError) as exc:
        await services.claims.submit_claim(claim_payload(contract_number="CNT404404"), "Admin")
    assert "contractNumber" in exc.value.field_errors
    assert store.count(CLAIMS) == 0


@pytest.mark.asyncio
async def test_future_date_of_death_rejected(services, seed_contract, claim_payload):
    seed_contract()
    payload = claim_payload()
    payload["deceased"] = {**payload["deceased"], "dateOfDeath": "2999-01-01"}
    with pytest.raises(FormValidationError) as exc:
        await services.claims.submit_claim(payload, "Admin")
    assert "deceased.dateOfDeath" in exc.value.field_errors


@pytest.mark.asyncio
@pytest.mark.parametrize("role", ["View Only", None, "  "])
async def test_read_only_roles_cannot_file_claims(services, store, seed_contract, claim_payload, role):
    seed_contract()
    with pytest.raises(PermissionDeniedError):
        await services.claims.submit_claim(claim_payload(), role)
    assert store.count(CLAIMS) == 0


@pytest.mark.asyncio
async def test_status_update_touches_only_root(services, store, seed_contract, claim_payload):
    seed_contract()
    created = await services.claims.submit_claim(claim_payload(), "Admin")
    satellites_before = {c: (await store.get(c, created.claim_number)).data for c in CLAIM_COLLECTIONS[1:]}

    updated = await services.claims.update_status(created.claim_number, "approved", "Admin")
    assert updated.status == "approved"
    assert updated.updated_at >= created.updated_at
    assert updated.created_at == created.created_at
    for collection, data in satellites_before.items():
        assert (await store.get(collection, created.claim_number)).data == data


@pytest.mark.asyncio
async def test_status_update_validation(services, seed_claim):
    seed_claim("CLM000001")
    with pytest.raises(FormValidationError):
        await services.claims.update_status("CLM000001", "lost", "Admin")
    with pytest.raises(NotFoundError):
        await services.claims.update_status("CLM999999", "paid", "Admin")
    with pytest.raises(PermissionDeniedError):
        await services.claims.update_status("CLM000001", "paid", "View Only")


@pytest.mark.asyncio
async def test_get_missing_claim(services):
    with pytest.raises(NotFoundError):
        await services.claims.get_claim("CLM000404")


@pytest.mark.asyncio
async def test_concurrent_submissions_get_unique_numbers(services, store, seed_contract, claim_payload):
    seed_contract()
    claims = await asyncio.gather(*(services.claims.submit_claim(claim_payload(), "Admin") for _ in range(8)))

    numbers = [c.claim_number for c in claims]
    assert len(set(numbers)) == 8
    assert sorted(numbers) == [f"CLM{i:06d}" for i in range(1, 9)]
    assert store.count(CLAIMS) == 8


@pytest.mark.asyncio
async def test_numbering_continues_after_existing_claims(services, seed_contract, seed_claim, claim_payload):
    seed_contract()
    seed_claim("CLM000041")
    claim = await services.claims.submit_claim(claim_payload(), "Admin")
    assert claim.claim_number == "CLM000042"


@pytest.mark.asyncio
async def test_search_filters_and_pages(services, seed_claim):
    seed_claim("CLM000001", created_at="2024-01-10T09:00:00.000Z", status="FNOL")
    seed_claim("CLM000002", created_at="2024-01-15T09:00:00.000Z", status="approved", claimant_name="Lerato Dlamini")
    seed_claim("CLM000003", created_at="2024-01-31T18:30:00.000Z", status="approved")
    seed_claim("CLM000004", created_at="2024-02-01T00:00:00.000Z", status="approved", contract_number="CNT000002")

    result = await services.claims.search_claims(status="approved", date_from="2024-01-01", date_to="2024-01-31")
    assert [c.claim_number for c in result.rows] == ["CLM000003", "CLM000002"]
    assert result.has_more is False

    result = await services.claims.search_claims(claimant_name="sipho", status="all", sort="claimNumber", direction="asc")
    assert [c.claim_number for c in result.rows] == ["CLM000001", "CLM000003", "CLM000004"]

    result = await services.claims.search_claims(contract_number="CNT000002", claim_type="Doves Funerals")
    assert [c.claim_number for c in result.rows] == ["CLM000004"]
    assert result.rows[0].to_dict()["claimType"] == "Doves Funerals"

    page = await services.claims.search_claims(page_size=2, sort="dateSubmitted")
    assert [c.claim_number for c in page.rows] == ["CLM000004", "CLM000003"]
    assert page.has_more is True
    nxt = await services.claims.search_claims(page_size=2, sort="dateSubmitted", cursor=page.cursor)
    assert [c.claim_number for c in nxt.rows] == ["CLM000002", "CLM000001"]


@pytest.mark.asyncio
async def test_search_rejects_bad_input(services):
    with pytest.raises(FormValidationError) as exc:
        await services.claims.search_claims(sort="deceasedName")
    assert "sort" in exc.value.field_errors
    with pytest.raises(FormValidationError) as exc:
        await services.claims.search_claims(date_from="31/01/2024")
    assert "dateFrom" in exc.value.field_errors
    with pytest.raises(FormValidationError):
        await services.claims.search_claims(page_size=0)


@pytest.mark.asyncio
async def test_recent_claims_for_contract(services, seed_claim):
    for i in range(1, 8):
        seed_claim(f"CLM{i:06d}", created_at=f"2024-03-0{i}T00:00:00.000Z")
    recent = await services.claims.recent_claims_for_contract("CNT000001")
    assert [c.claim_number for c in recent] == [f"CLM{i:06d}" for i in range(7, 2, -1)]
