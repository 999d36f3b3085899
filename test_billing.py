from datetime import date

import pytest

from app.core.exceptions import AccessDeniedError, BusinessRuleError
from app.core.timeutils import utc_now
from app.services.billing_service import billing_service, compute_bill_breakdown, generate_billing_periods

# Async tests
pytestmark = pytest.mark.asyncio

PERIOD = {"from_date": "2025-01-01", "to_date": "2025-01-31", "month": "January", "year": 2025}


def _tenant(tenant_id="tenant1", room_id="room1", room_number="101"):
    return {
        "id": tenant_id, "name": "Juan Dela Cruz", "email": "juan@example.com",
        "room_id": room_id, "property_id": "prop1", "room_number": room_number,
    }


async def test_bill_amount_is_rent_plus_utilities(boarding_house):
    result = await billing_service.generate_bills("landlord1", [_tenant()], PERIOD)

    assert len(result["bill_ids"]) == 1
    bill = boarding_house.doc("bills", result["bill_ids"][0])
    # 4000 rent + 12 x 100 electricity + 200 water, wifi free
    assert bill["amount"] == 5400
    assert bill["base_rent"] == 4000
    assert bill["utility_charges"] == 1400
    assert bill["amount"] == bill["base_rent"] + bill["utility_charges"]
    assert bill["status"] == "pending"
    assert bill["property_name"] == "Sunrise Dormitory"
    assert bill["payment_proofs"] == []
    assert bill["billing_period"]["month"] == "January"
    assert [line["category"] for line in bill["charges"]] == ["rent", "utilities", "utilities"]


async def test_due_date_is_fifteen_days_out(boarding_house):
    result = await billing_service.generate_bills("landlord1", [_tenant()], PERIOD)

    bill = boarding_house.doc("bills", result["bill_ids"][0])
    assert (date.fromisoformat(bill["due_date"]) - utc_now().date()).days == 15


async def test_invoice_sequence_survives_separate_runs(boarding_house):
    year = utc_now().year
    first = await billing_service.generate_bills("landlord1", [_tenant()], PERIOD)
    second = await billing_service.generate_bills(
        "landlord1", [_tenant("tenant2", "room2", "102")], PERIOD
    )

    assert first["invoice_ids"] == [f"INV-{year}-001"]
    assert second["invoice_ids"] == [f"INV-{year}-002"]
    assert boarding_house.doc("counters", f"invoice_counter_{year}")["counter"] == 2


async def test_invoice_sequence_continues_from_stored_counter(boarding_house):
    year = utc_now().year
    boarding_house.seed("counters", f"invoice_counter_{year}", {"year": year, "counter": 41})

    result = await billing_service.generate_bills("landlord1", [_tenant()], PERIOD)

    assert result["invoice_ids"] == [f"INV-{year}-042"]


async def test_unbillable_tenants_are_reported_not_fatal(boarding_house):
    boarding_house.seed("rooms", "foreign_room", {
        "property_id": "prop9", "owner_id": "someone_else", "number": "9", "rent": 1000, "status": "occupied",
    })
    tenants = [
        {"id": "tenant9", "name": "No Room"},
        _tenant("tenant3", "foreign_room", "9"),
        _tenant("tenant4", "missing_room", "7"),
        _tenant(),
    ]

    result = await billing_service.generate_bills("landlord1", tenants, PERIOD)

    assert len(result["bill_ids"]) == 1
    reasons = {skip["tenant_id"]: skip["reason"] for skip in result["skipped"]}
    assert reasons == {
        "tenant9": "Tenant has no room assignment",
        "tenant3": "Access denied",
        "tenant4": "Room not found",
    }
    # Failed tenants never consumed an invoice number
    assert result["invoice_ids"] == [f"INV-{utc_now().year}-001"]


async def test_invalid_billing_period_is_rejected(boarding_house):
    with pytest.raises(BusinessRuleError):
        await billing_service.generate_bills("landlord1", [_tenant()], {"month": "January"})


async def test_legacy_utility_spellings_are_priced():
    breakdown = compute_bill_breakdown({
        "rent": 3000,
        "utilities": {"electricity": {"type": "per-unit", "rate": 10}, "water": {"type": "fixed", "amount": 150}},
    })
    assert breakdown["amount"] == 3000 + 1000 + 150


async def test_billing_periods_roll_over_the_year():
    periods = generate_billing_periods(3, today=date(2025, 11, 20))

    assert [p["display_name"] for p in periods] == ["November 2025", "December 2025", "January 2026"]
    assert periods[1]["to_date"] == "2025-12-31"
    assert periods[2]["year"] == 2026


async def test_manual_payment_records_history(boarding_house):
    result = await billing_service.generate_bills("landlord1", [_tenant()], PERIOD)
    bill_id = result["bill_ids"][0]

    bill = await billing_service.update_bill_status("landlord1", bill_id, "paid")

    assert bill["status"] == "paid"
    assert bill["payment_method"] == "Manual Payment"
    history = boarding_house.all("paymentHistory")
    assert len(history) == 1
    assert history[0]["bill_id"] == bill_id
    assert history[0]["month"] == "January 2025"
    assert history[0]["receipt_id"].startswith("RCP-")

    with pytest.raises(BusinessRuleError):
        await billing_service.update_bill_status("landlord1", bill_id, "paid")
    assert len(boarding_house.all("paymentHistory")) == 1


async def test_other_landlord_cannot_touch_bill(boarding_house):
    result = await billing_service.generate_bills("landlord1", [_tenant()], PERIOD)
    bill_id = result["bill_ids"][0]

    with pytest.raises(AccessDeniedError):
        await billing_service.update_bill_status("landlord2", bill_id, "paid")
    with pytest.raises(AccessDeniedError):
        await billing_service.get_bill("landlord2", bill_id)

    # The billed tenant can read it
    bill = await billing_service.get_bill("tenant1", bill_id)
    assert bill["invoice_id"].startswith("INV-")


async def test_mark_overdue_only_touches_pending_past_due(boarding_house):
    base = {"tenant_id": "tenant1", "property_id": "prop1", "room_id": "room1", "landlord_id": "landlord1", "amount": 10}
    boarding_house.seed("bills", "late", {**base, "invoice_id": "INV-2000-001", "due_date": "2000-01-15", "status": "pending"})
    boarding_house.seed("bills", "future", {**base, "invoice_id": "INV-2000-002", "due_date": "2999-01-15", "status": "pending"})
    boarding_house.seed("bills", "reviewing", {**base, "invoice_id": "INV-2000-003", "due_date": "2000-01-15", "status": "proof_submitted"})

    count = await billing_service.mark_overdue_bills("landlord1")

    assert count == 1
    assert boarding_house.doc("bills", "late")["status"] == "overdue"
    assert boarding_house.doc("bills", "late")["overdue_at"] is not None
    assert boarding_house.doc("bills", "future")["status"] == "pending"
    assert boarding_house.doc("bills", "reviewing")["status"] == "proof_submitted"


async def test_billing_statistics(boarding_house):
    base = {"tenant_id": "tenant1", "property_id": "prop1", "room_id": "room1", "landlord_id": "landlord1"}
    boarding_house.seed("bills", "b1", {**base, "invoice_id": "A", "amount": 100, "due_date": "2999-01-01", "status": "pending"})
    boarding_house.seed("bills", "b2", {**base, "invoice_id": "B", "amount": 200, "due_date": "2000-01-01", "status": "pending"})
    boarding_house.seed("bills", "b3", {**base, "invoice_id": "C", "amount": 300, "due_date": "2000-01-01", "status": "paid"})

    stats = await billing_service.get_billing_statistics("landlord1")

    assert stats["total_bills"] == 3
    assert stats["pending_bills"] == 2
    assert stats["paid_bills"] == 1
    assert stats["overdue_bills"] == 1
    assert stats["total_revenue"] == 300
    assert stats["pending_revenue"] == 300
    assert stats["overdue_revenue"] == 200


async def test_delete_invalid_bills_removes_placeholder_tenants(boarding_house):
    base = {"property_id": "prop1", "room_id": "room1", "landlord_id": "landlord1", "amount": 1,
            "due_date": "2025-01-01", "status": "pending"}
    boarding_house.seed("bills", "mock", {**base, "tenant_id": "t12", "invoice_id": "X"})
    boarding_house.seed("bills", "real", {**base, "tenant_id": "tenant1", "invoice_id": "Y"})

    assert await billing_service.delete_invalid_bills("landlord1") == 1
    assert boarding_house.doc("bills", "mock") is None
    assert boarding_house.doc("bills", "real") is not None


async def test_fix_bill_property_names(boarding_house):
    base = {"tenant_id": "tenant1", "room_id": "room1", "landlord_id": "landlord1", "amount": 1,
            "due_date": "2025-01-01", "status": "pending"}
    boarding_house.seed("bills", "b1", {**base, "property_id": "prop1", "invoice_id": "X", "property_name": "Unknown Property"})
    boarding_house.seed("bills", "b2", {**base, "property_id": "prop1", "invoice_id": "Y", "property_name": "Sunrise Dormitory"})

    assert await billing_service.fix_bill_property_names("landlord1") == 1
    assert boarding_house.doc("bills", "b1")["property_name"] == "Sunrise Dormitory"


async def test_preview_writes_nothing(boarding_house):
    previews = await billing_service.preview_bills("landlord1", [_tenant()])

    assert previews[0]["amount"] == 5400
    assert boarding_house.all("bills") == []
    assert boarding_house.all("counters") == []


async def test_paid_bill_cannot_be_reopened(boarding_house):
    result = await billing_service.generate_bills("landlord1", [_tenant()], PERIOD)
    bill_id = result["bill_ids"][0]
    await billing_service.update_bill_status("landlord1", bill_id, "paid")

    for status in ("pending", "overdue", "proof_submitted"):
        with pytest.raises(BusinessRuleError):
            await billing_service.update_bill_status("landlord1", bill_id, status)

    bill = boarding_house.doc("bills", bill_id)
    assert bill["status"] == "paid"
    assert bill["paid_at"] is not None
    assert len(boarding_house.all("paymentHistory")) == 1


async def test_malformed_utilities_are_a_business_rule_error(boarding_house):
    with pytest.raises(BusinessRuleError):
        compute_bill_breakdown({"rent": 1000, "utilities": {"gas": {"type": "metered"}}})
    with pytest.raises(BusinessRuleError):
        compute_bill_breakdown({"rent": 1000, "utilities": {"gas": "50"}})

    boarding_house.storage["rooms"]["room1"]["utilities"]["gas"] = "50"
    with pytest.raises(BusinessRuleError):
        await billing_service.preview_bills("landlord1", [_tenant()])

    result = await billing_service.generate_bills("landlord1", [_tenant()], PERIOD)
    assert result["bill_ids"] == []
    assert result["skipped"][0]["reason"].startswith("Invalid utility configuration for gas")
