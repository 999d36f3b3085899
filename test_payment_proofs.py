import pytest

from app.core.exceptions import AccessDeniedError, BusinessRuleError, NotFoundError, PersistenceError
from app.services.payment_proof_service import payment_proof_service

# Async tests
pytestmark = pytest.mark.asyncio


@pytest.fixture
def billed(boarding_house):
    """A pending bill for tenant1, due in the future"""
    boarding_house.seed("bills", "bill1", {
        "invoice_id": "INV-2025-001",
        "tenant_id": "tenant1",
        "tenant_name": "Juan Dela Cruz",
        "property_id": "prop1",
        "property_name": "Sunrise Dormitory",
        "room_id": "room1",
        "room_number": "101",
        "landlord_id": "landlord1",
        "amount": 5400.0,
        "base_rent": 4000.0,
        "utility_charges": 1400.0,
        "billing_period": {"from_date": "2025-01-01", "to_date": "2025-01-31", "month": "January", "year": 2025},
        "due_date": "2999-01-15",
        "status": "pending",
        "payment_proof_id": None,
    })
    return boarding_house


async def test_submit_links_proof_and_bill(billed):
    proof_id = await payment_proof_service.submit_payment_proof("tenant1", "bill1", "https://img/1.jpg", "GCash")

    proof = billed.doc("paymentProofs", proof_id)
    bill = billed.doc("bills", "bill1")
    assert proof["status"] == "pending_review"
    assert proof["amount"] == 5400.0
    assert proof["invoice_id"] == "INV-2025-001"
    assert proof["landlord_id"] == "landlord1"
    assert bill["status"] == "proof_submitted"
    assert bill["payment_proof_id"] == proof_id
    assert bill["proof_submitted_at"] is not None

    # Landlord is told about the new proof
    notifications = [n for n in billed.all("notifications") if n["recipient_id"] == "landlord1"]
    assert len(notifications) == 1
    assert notifications[0]["type"] == "payment"


async def test_resubmission_supersedes_pending_proof(billed):
    first = await payment_proof_service.submit_payment_proof("tenant1", "bill1", "https://img/1.jpg")
    second = await payment_proof_service.submit_payment_proof("tenant1", "bill1", "https://img/2.jpg")

    assert billed.doc("paymentProofs", first)["status"] == "rejected"
    assert billed.doc("paymentProofs", first)["review_note"] == "replaced"
    assert billed.doc("paymentProofs", second)["status"] == "pending_review"
    assert billed.doc("bills", "bill1")["payment_proof_id"] == second


async def test_only_billed_tenant_can_submit(billed):
    with pytest.raises(AccessDeniedError):
        await payment_proof_service.submit_payment_proof("tenant2", "bill1", "https://img/1.jpg")
    assert billed.all("paymentProofs") == []


async def test_cannot_submit_for_missing_or_paid_bill(billed):
    with pytest.raises(NotFoundError):
        await payment_proof_service.submit_payment_proof("tenant1", "nope", "https://img/1.jpg")

    billed.storage["bills"]["bill1"]["status"] = "paid"
    with pytest.raises(BusinessRuleError):
        await payment_proof_service.submit_payment_proof("tenant1", "bill1", "https://img/1.jpg")


async def test_approve_marks_paid_with_one_history_record(billed):
    proof_id = await payment_proof_service.submit_payment_proof("tenant1", "bill1", "https://img/1.jpg")

    result = await payment_proof_service.review_payment_proof("landlord1", proof_id, "approve", "Received")

    bill = billed.doc("bills", "bill1")
    proof = billed.doc("paymentProofs", proof_id)
    history = billed.all("paymentHistory")
    assert result["bill_status"] == "paid"
    assert bill["status"] == "paid"
    assert bill["payment_method"] == "Payment Proof"
    assert bill["paid_at"] is not None
    assert proof["status"] == "approved"
    assert proof["reviewed_by"] == "landlord1"
    assert len(history) == 1
    assert history[0]["invoice_id"] == "INV-2025-001"
    assert history[0]["amount"] == 5400.0
    assert [line["description"] for line in history[0]["breakdown"]] == ["Monthly Rent", "Utility Charges"]


async def test_reject_before_due_date_returns_to_pending(billed):
    proof_id = await payment_proof_service.submit_payment_proof("tenant1", "bill1", "https://img/1.jpg")

    await payment_proof_service.review_payment_proof("landlord1", proof_id, "reject", "Blurry")

    bill = billed.doc("bills", "bill1")
    assert bill["status"] == "pending"
    assert bill["payment_proof_id"] is None
    assert bill["amount"] == 5400.0
    assert billed.doc("paymentProofs", proof_id)["status"] == "rejected"
    assert billed.all("paymentHistory") == []


async def test_reject_after_due_date_marks_overdue(billed):
    billed.storage["bills"]["bill1"]["due_date"] = "2000-01-15"
    proof_id = await payment_proof_service.submit_payment_proof("tenant1", "bill1", "https://img/1.jpg")

    await payment_proof_service.review_payment_proof("landlord1", proof_id, "reject")

    bill = billed.doc("bills", "bill1")
    assert bill["status"] == "overdue"
    assert bill["amount"] == 5400.0


async def test_review_rules(billed):
    proof_id = await payment_proof_service.submit_payment_proof("tenant1", "bill1", "https://img/1.jpg")

    with pytest.raises(BusinessRuleError):
        await payment_proof_service.review_payment_proof("landlord1", proof_id, "maybe")
    with pytest.raises(AccessDeniedError) as exc:
        await payment_proof_service.review_payment_proof("landlord2", proof_id, "approve")
    assert "Unauthorized to review this payment proof" in str(exc.value)

    await payment_proof_service.review_payment_proof("landlord1", proof_id, "approve")
    with pytest.raises(BusinessRuleError):
        await payment_proof_service.review_payment_proof("landlord1", proof_id, "reject")
    assert len(billed.all("paymentHistory")) == 1


async def test_failed_commit_leaves_nothing_behind(billed):
    proof_id = await payment_proof_service.submit_payment_proof("tenant1", "bill1", "https://img/1.jpg")
    billed.fail_next_commit = True

    with pytest.raises(PersistenceError):
        await payment_proof_service.review_payment_proof("landlord1", proof_id, "approve")

    assert billed.doc("bills", "bill1")["status"] == "proof_submitted"
    assert billed.doc("paymentProofs", proof_id)["status"] == "pending_review"
    assert billed.all("paymentHistory") == []


async def test_tenant_is_notified_of_review(billed):
    proof_id = await payment_proof_service.submit_payment_proof("tenant1", "bill1", "https://img/1.jpg")
    await payment_proof_service.review_payment_proof("landlord1", proof_id, "approve")

    tenant_notes = [n for n in billed.all("notifications") if n["recipient_id"] == "tenant1"]
    assert [n["title"] for n in tenant_notes] == ["Payment Approved"]


async def test_notification_failure_does_not_fail_submission(billed, monkeypatch):
    from app.services.notification_service import notification_service

    async def broken(*args, **kwargs):
        raise RuntimeError("notification store down")

    monkeypatch.setattr(notification_service, "create_notification", broken)

    proof_id = await payment_proof_service.submit_payment_proof("tenant1", "bill1", "https://img/1.jpg")
    assert billed.doc("bills", "bill1")["payment_proof_id"] == proof_id


async def test_listings_are_newest_first(billed):
    billed.seed("paymentProofs", "old", {"bill_id": "bill1", "tenant_id": "tenant1", "landlord_id": "landlord1",
                                         "amount": 1, "image_uri": "x", "status": "approved",
                                         "submitted_at": "2024-01-01T00:00:00Z"})
    billed.seed("paymentProofs", "new", {"bill_id": "bill1", "tenant_id": "tenant1", "landlord_id": "landlord1",
                                         "amount": 1, "image_uri": "y", "status": "rejected",
                                         "submitted_at": "2024-06-01T00:00:00Z"})

    landlord = await payment_proof_service.get_landlord_payment_proofs("landlord1")
    tenant = await payment_proof_service.get_tenant_payment_proofs("tenant1")

    assert [p["id"] for p in landlord] == ["new", "old"]
    assert [p["id"] for p in tenant] == ["new", "old"]


async def test_fix_payment_proof_tenant_info(billed):
    billed.seed("paymentProofs", "p1", {"bill_id": "bill1", "tenant_id": "tenant1", "landlord_id": "landlord1",
                                        "amount": 1, "image_uri": "x", "status": "approved",
                                        "tenant_name": "Unknown Tenant"})

    assert await payment_proof_service.fix_payment_proof_tenant_info("landlord1") == 1
    assert billed.doc("paymentProofs", "p1")["tenant_name"] == "Juan Dela Cruz"
    assert billed.doc("paymentProofs", "p1")["room_number"] == "101"
