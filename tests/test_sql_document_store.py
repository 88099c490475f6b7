import pytest

from backoffice.database.docstore_real import SQLDocumentStore, _normalize_connection_string
from backoffice.database.interfaces import DESCENDING, Query
from backoffice.errors import DocumentExistsError, UniqueConstraintViolation
from backoffice.records.contracts import MEMBER_CONTRACT_RELATIONSHIPS, RELATIONSHIP_CONSTRAINTS


@pytest.fixture
def sql_store(tmp_path):
    store = SQLDocumentStore(f"sqlite:///{tmp_path / 'backoffice.db'}", constraints=RELATIONSHIP_CONSTRAINTS)
    store.create_tables()
    return store


def _edge(member_id, contract_number, role, created_at="2024-01-01T00:00:00.000Z"):
    return {"member_id": member_id, "contract_number": contract_number, "role": role, "created_at": created_at}


def test_normalize_connection_string():
    assert _normalize_connection_string("  'sqlite:///x.db' ") == "sqlite:///x.db"
    assert _normalize_connection_string("psql 'postgresql://u@h/db'") == "postgresql://u@h/db"


@pytest.mark.asyncio
async def test_batch_roundtrip_and_query(sql_store):
    batch = sql_store.batch()
    batch.create("Claims", "CLM000001", {"status": "FNOL", "createdAt": "2024-01-01T00:00:00.000Z"})
    batch.create("Claims", "CLM000002", {"status": "paid", "createdAt": "2024-01-02T00:00:00.000Z"})
    await sql_store.commit_batch(batch)

    snap = await sql_store.get("Claims", "CLM000001")
    assert snap.data["status"] == "FNOL"

    rows = await sql_store.query(Query("Claims").ordered("createdAt", DESCENDING))
    assert [r.key for r in rows] == ["CLM000002", "CLM000001"]


@pytest.mark.asyncio
async def test_failed_batch_leaves_nothing(sql_store):
    await sql_store.commit_batch(sql_store.batch().create("Claims", "CLM000001", {"status": "FNOL"}))

    batch = sql_store.batch()
    batch.set("ClaimPolicies", "CLM000002", {"policyNumber": "POL001"})
    batch.create("Claims", "CLM000001", {"status": "FNOL"})
    with pytest.raises(DocumentExistsError):
        await sql_store.commit_batch(batch)

    assert await sql_store.get("ClaimPolicies", "CLM000002") is None


@pytest.mark.asyncio
async def test_second_main_member_rejected(sql_store):
    await sql_store.commit_batch(
        sql_store.batch().create(MEMBER_CONTRACT_RELATIONSHIPS, "e1", _edge("m1", "CNT000001", "Main Member"))
    )
    with pytest.raises(UniqueConstraintViolation):
        await sql_store.commit_batch(
            sql_store.batch().create(MEMBER_CONTRACT_RELATIONSHIPS, "e2", _edge("m2", "CNT000001", "Main Member"))
        )
    assert await sql_store.get(MEMBER_CONTRACT_RELATIONSHIPS, "e2") is None

    # Replacing the main member in one batch frees the slot first
    batch = sql_store.batch()
    batch.delete(MEMBER_CONTRACT_RELATIONSHIPS, "e1")
    batch.create(MEMBER_CONTRACT_RELATIONSHIPS, "e3", _edge("m2", "CNT000001", "Main Member"))
    await sql_store.commit_batch(batch)
    rows = await sql_store.query(Query(MEMBER_CONTRACT_RELATIONSHIPS).where("contract_number", "==", "CNT000001"))
    assert [r.key for r in rows] == ["e3"]


@pytest.mark.asyncio
async def test_sequences_are_monotonic(sql_store):
    values = [await sql_store.next_sequence("id:Claims:CLM", floor=4) for _ in range(3)]
    assert values == [5, 6, 7]
    assert await sql_store.next_sequence("id:Claims:CLM", floor=20) == 21
    assert await sql_store.ping() is True


@pytest.mark.asyncio
async def test_string_equality_is_filtered_in_sql(sql_store):
    batch = sql_store.batch()
    batch.create("Contacts", "c1", {"memberId": "m1", "type": "phone", "value": "0821234567"})
    batch.create("Contacts", "c2", {"memberId": "m1", "type": "email", "value": "a@example.com"})
    batch.create("Contacts", "c3", {"memberId": "m2", "type": "phone", "value": "0831234567"})
    batch.create("Benefit", "b1", {"member_contract_relationship_id": "e1", "percentage": 50})
    batch.create("Benefit", "b2", {"member_contract_relationship_id": "e2", "percentage": 25})
    await sql_store.commit_batch(batch)

    scanned = sql_store._scan_sync(Query("Contacts").where("memberId", "==", "m1"))
    assert sorted(s.key for s in scanned) == ["c1", "c2"]
    scanned = sql_store._scan_sync(Query("Contacts").where("__key__", "in", ["c1", "c3"]))
    assert sorted(s.key for s in scanned) == ["c1", "c3"]

    rows = await sql_store.query(Query("Contacts").where("memberId", "==", "m1").where("type", "==", "phone"))
    assert [r.key for r in rows] == ["c1"]

    # Numeric equality is evaluated in process
    assert len(sql_store._scan_sync(Query("Benefit").where("percentage", "==", 50))) == 2
    rows = await sql_store.query(Query("Benefit").where("percentage", "==", 50))
    assert [r.key for r in rows] == ["b1"]

    assert await sql_store.exists(Query("Contacts").where("memberId", "==", "m2")) is True
    assert await sql_store.exists(Query("Contacts").where("memberId", "==", "m3")) is False
