import pytest

from backoffice.errors import FormValidationError, NotFoundError, PermissionDeniedError
from backoffice.records.payments import PAYMENTS


def _payment(**overrides):
    payload = {
        "contractNumber": "CNT000001",
        "amount": "250.00",
        "paymentMethod": "Debit Card",
        "receiptUrl": "https://files.example.com/receipt-1.pdf",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_record_and_fetch_payment(services, seed_contract):
    seed_contract()
    payment = await services.payments.record_payment(_payment(), "Admin")

    assert payment.reference == "ref-0000000001"
    assert payment.amount == 250.0
    assert payment.status == "Completed"
    assert payment.payment_date is not None

    fetched = await services.payments.get_payment(payment.reference)
    assert fetched.to_document() == payment.to_document()


@pytest.mark.asyncio
async def test_payment_validation(services, store, seed_contract):
    seed_contract()
    with pytest.raises(FormValidationError) as exc:
        await services.payments.record_payment(_payment(amount="0", paymentMethod="Cheque", receiptUrl=""), "Admin")
    assert set(exc.value.field_errors) == {"amount", "paymentMethod", "receiptUrl"}

    with pytest.raises(FormValidationError) as exc:
        await services.payments.record_payment(_payment(contractNumber="CNT404404"), "Admin")
    assert "contractNumber" in exc.value.field_errors

    with pytest.raises(PermissionDeniedError):
        await services.payments.record_payment(_payment(), "View Only")
    assert store.count(PAYMENTS) == 0


@pytest.mark.asyncio
async def test_payments_for_contract_newest_first(services, store):
    for i in range(1, 5):
        store.seed(
            PAYMENTS,
            f"ref-{i:010d}",
            {"contractNumber": "CNT000001", "amount": 100 * i, "paymentMethod": "Cash", "paymentDate": f"2024-0{i}-01T00:00:00.000Z"},
        )
    store.seed(PAYMENTS, "ref-0000000009", {"contractNumber": "CNT000002", "amount": 1, "paymentDate": "2024-09-01T00:00:00.000Z"})

    payments = await services.payments.payments_for_contract("CNT000001", limit=3)
    assert [p.reference for p in payments] == ["ref-0000000004", "ref-0000000003", "ref-0000000002"]

    with pytest.raises(NotFoundError):
        await services.payments.get_payment("ref-0000000404")
