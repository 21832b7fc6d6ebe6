import base64
from decimal import Decimal

import pytest

from posledger.core.errors import InvalidAmount
from posledger.models.billing import PaymentStatus
from posledger.services.payments import apply_payment, derive_status, validate_amount


@pytest.mark.parametrize(
    ("paid", "total", "expected"),
    [
        (Decimal("0"), Decimal("100"), PaymentStatus.PENDING),
        (Decimal("0.01"), Decimal("100"), PaymentStatus.PARTIALLY_PAID),
        (Decimal("99.99"), Decimal("100"), PaymentStatus.PARTIALLY_PAID),
        (Decimal("100"), Decimal("100"), PaymentStatus.PAID),
    ],
)
def test_derive_status(paid, total, expected):
    assert derive_status(paid, total) == expected


def test_apply_payment_clamps_to_total():
    outcome = apply_payment(Decimal("40.00"), Decimal("100.00"), 70)

    assert outcome.paid == Decimal("100.00")
    assert outcome.remaining == Decimal("0.00")
    assert outcome.status == PaymentStatus.PAID
    assert outcome.message == "Paid in full!"


def test_apply_payment_treats_missing_paid_as_zero():
    outcome = apply_payment(None, Decimal("50"), "12.5")

    assert outcome.paid == Decimal("12.50")
    assert outcome.remaining == Decimal("37.50")
    assert outcome.status == PaymentStatus.PARTIALLY_PAID
    assert outcome.message == "Payment recorded"


@pytest.mark.parametrize("amount", [None, 0, -1, "abc", "", "NaN", "Infinity", True, "0.004", "0.006", "12.345"])
def test_validate_amount_rejects_bad_values(amount):
    with pytest.raises(InvalidAmount):
        validate_amount(amount)


def test_validate_amount_accepts_trailing_zero_cents():
    assert validate_amount("0.010") == Decimal("0.01")


def test_apply_payment_clamps_huge_amount():
    outcome = apply_payment(Decimal("40.00"), Decimal("100.00"), "1E+1000000")

    assert outcome.paid == Decimal("100.00")
    assert outcome.remaining == Decimal("0.00")
    assert outcome.status == PaymentStatus.PAID


def _create_invoice(client, invoice_no="INV-1", total="100.00"):
    response = client.post("/invoices", json={"invoiceNo": invoice_no, "total": total})
    assert response.status_code == 201, response.text
    return response.json()


def test_invoice_partial_then_full_payment(client):
    invoice = _create_invoice(client)
    assert invoice["status"] == "PENDING"
    assert Decimal(invoice["paidAmount"]) == 0

    first = client.post(f"/invoices/{invoice['id']}/pay", json={"amount": 40})
    assert first.status_code == 200
    assert first.json()["status"] == "PARTIALLY_PAID"
    assert Decimal(first.json()["remaining"]) == Decimal("60.00")

    second = client.post(f"/invoices/{invoice['id']}/pay", json={"amount": 70})
    assert second.status_code == 200
    body = second.json()
    assert body["success"] is True
    assert body["status"] == "PAID"
    assert Decimal(body["paidAmount"]) == Decimal("100.00")
    assert Decimal(body["remaining"]) == 0

    stored = client.get(f"/invoices/{invoice['id']}").json()
    assert Decimal(stored["paidAmount"]) == Decimal("100.00")
    assert stored["status"] == "PAID"


def test_paying_a_settled_invoice_is_a_no_op(client):
    invoice = _create_invoice(client)
    client.post(f"/invoices/{invoice['id']}/pay", json={"amount": "100"})

    again = client.post(f"/invoices/{invoice['id']}/pay", json={"amount": 25})

    assert again.status_code == 200
    assert Decimal(again.json()["remaining"]) == 0
    assert Decimal(again.json()["paidAmount"]) == Decimal("100.00")


def test_huge_payment_settles_invoice(client):
    invoice = _create_invoice(client)

    response = client.post(f"/invoices/{invoice['id']}/pay", json={"amount": "1E+1000000"})

    assert response.status_code == 200
    assert response.json()["status"] == "PAID"
    assert Decimal(response.json()["paidAmount"]) == Decimal("100.00")
    assert Decimal(response.json()["remaining"]) == 0


def test_sub_cent_payment_records_nothing(client):
    invoice = _create_invoice(client)

    assert client.post(f"/invoices/{invoice['id']}/pay", json={"amount": "0.004"}).status_code == 400
    assert client.post(f"/invoices/{invoice['id']}/pay", json={"amount": "0.006"}).status_code == 400

    stored = client.get(f"/invoices/{invoice['id']}").json()
    assert Decimal(stored["paidAmount"]) == 0
    assert stored["status"] == "PENDING"


@pytest.mark.parametrize("amount", [0, -10, "ten", None, "0.004", "0.006"])
def test_invalid_payment_amount_is_rejected(client, amount):
    invoice = _create_invoice(client)

    response = client.post(f"/invoices/{invoice['id']}/pay", json={"amount": amount})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid payment amount"
    assert client.get(f"/invoices/{invoice['id']}").json()["status"] == "PENDING"


def test_paying_missing_invoice_is_not_found(client):
    response = client.post("/invoices/999/pay", json={"amount": 5})

    assert response.status_code == 404


def test_billing_record_payment_sets_paid_at(client):
    pdf = base64.b64encode(b"%PDF-1.4 billing").decode()
    saved = client.post(
        "/billing/save-pdf",
        json={"orderId": 7, "invoiceNo": "BILL-7", "cost": "80.00", "pdfBase64": pdf},
    )
    assert saved.status_code == 200
    billing_id = saved.json()["id"]

    partial = client.post(f"/billing/{billing_id}/pay", json={"amount": "30"})
    assert partial.json()["status"] == "PARTIALLY_PAID"
    assert Decimal(partial.json()["remaining"]) == Decimal("50.00")

    full = client.post(f"/billing/{billing_id}/pay", json={"amount": "60"})
    assert full.json()["status"] == "PAID"
    assert Decimal(full.json()["paidAmount"]) == Decimal("80.00")

    records = client.get("/billing").json()
    assert records[0]["paidAt"] is not None
    assert Decimal(records[0]["amountPaid"]) == Decimal("80.00")
