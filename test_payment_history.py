from datetime import datetime, timezone

import pytest

from app.core.exceptions import AccessDeniedError, NotFoundError
from app.services.payment_history_service import (
    build_history_record, default_breakdown, payment_history_service,
)
from app.services.receipt_service import receipt_service

# Async tests
pytestmark = pytest.mark.asyncio

BILL = {
    "id": "bill1",
    "invoice_id": "INV-2025-007",
    "tenant_id": "tenant1",
    "tenant_name": "Juan Dela Cruz",
    "landlord_id": "landlord1",
    "property_name": "Sunrise Dormitory",
    "room_number": "101",
    "amount": 5400.0,
    "base_rent": 4000.0,
    "utility_charges": 1400.0,
    "due_date": "2025-01-15",
    "billing_period": {"month": "January", "year": 2025},
}


def _seed_history(db, history_id, paid_on, tenant_id="tenant1"):
    record = build_history_record({**BILL, "tenant_id": tenant_id}, "Payment Proof", paid_on)
    db.seed("paymentHistory", history_id, record)
    return record


async def test_breakdown_falls_back_to_rent_and_utilities():
    assert default_breakdown({"amount": 3000}) == [
        {"description": "Monthly Rent", "amount": 3000.0, "category": "rent"},
    ]
    assert [line["amount"] for line in default_breakdown(BILL)] == [4000.0, 1400.0]


async def test_history_record_fields():
    paid_on = datetime(2025, 1, 10, 8, 30, tzinfo=timezone.utc)

    record = build_history_record(BILL, "Manual Payment", paid_on)

    assert record["receipt_id"] == f"RCP-{int(paid_on.timestamp() * 1000)}"
    assert record["month"] == "January 2025"
    assert record["year"] == "2025"
    assert record["payment_method"] == "Manual Payment"
    assert record["status"] == "approved"


async def test_history_is_newest_first(boarding_house):
    _seed_history(boarding_house, "h_old", datetime(2025, 1, 10, tzinfo=timezone.utc))
    _seed_history(boarding_house, "h_new", datetime(2025, 3, 10, tzinfo=timezone.utc))
    _seed_history(boarding_house, "h_other", datetime(2025, 2, 10, tzinfo=timezone.utc), tenant_id="tenant2")

    records = await payment_history_service.get_tenant_payment_history("tenant1")

    assert [r["id"] for r in records] == ["h_new", "h_old"]


async def test_record_visible_to_tenant_and_landlord_only(boarding_house):
    boarding_house.seed("bills", "bill1", {**BILL})
    _seed_history(boarding_house, "h1", datetime(2025, 1, 10, tzinfo=timezone.utc))

    assert (await payment_history_service.get_payment_record("tenant1", "h1"))["id"] == "h1"
    assert (await payment_history_service.get_payment_record("landlord1", "h1"))["id"] == "h1"
    with pytest.raises(AccessDeniedError):
        await payment_history_service.get_payment_record("tenant2", "h1")
    with pytest.raises(NotFoundError):
        await payment_history_service.get_payment_record("tenant1", "missing")


async def test_receipt_renders_payment_and_landlord(boarding_house):
    boarding_house.seed("bills", "bill1", {**BILL})
    _seed_history(boarding_house, "h1", datetime(2025, 1, 10, tzinfo=timezone.utc))

    html = await receipt_service.get_receipt_html("tenant1", "h1")

    assert "INV-2025-007" in html
    assert "Juan Dela Cruz" in html
    assert "January 10, 2025" in html
    assert "5,400.00" in html
    assert "Monthly Rent" in html
    assert "Olivia Santos" in html


async def test_receipt_escapes_user_text():
    payment = build_history_record(
        {**BILL, "tenant_name": "<script>alert(1)</script>"}, "Payment Proof",
        datetime(2025, 1, 10, tzinfo=timezone.utc),
    )

    html = receipt_service.render_receipt_html(payment)

    assert "<script>alert(1)</script>" not in html
    assert "&lt;script&gt;" in html
    assert "Landlord:" not in html
