from typing import Any, Dict, List, Optional
import asyncio
import logging

from ..core.exceptions import AccessDeniedError, BusinessRuleError
from ..core.timeutils import sort_key, utc_now
from ..database.collections import COLLECTIONS
from ..database.database_service import database_service
from ..models.database_models import BillStatus, NotificationType, PaymentProof, ProofStatus, to_document
from .billing_service import UNKNOWN_PROPERTY, is_past_due
from .notification_service import notification_service
from .ownership import must_get_document, require_user, txn_must_get
from .payment_history_service import stage_payment_history

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = {
    "approve": ProofStatus.APPROVED,
    "reject": ProofStatus.REJECTED,
}


class PaymentProofService:
    def __init__(self):
        self.db = database_service
        self.notifications = notification_service

    async def submit_payment_proof(self, user_id: str, bill_id: str, image_uri: str, note: str = "") -> str:
        """
        Submit proof of payment for a bill.

        The proof is created and the bill moves to ``proof_submitted`` in one
        transaction. A proof still awaiting review for the same bill is
        superseded by the new one.
        """
        require_user(user_id)
        if not image_uri:
            raise BusinessRuleError("A payment proof image is required")

        def _txn(txn):
            bill = txn_must_get(txn, COLLECTIONS['bills'], bill_id, "Bill")
            if bill.get('tenant_id') != user_id:
                raise AccessDeniedError("Only the billed tenant can submit a payment proof")
            if bill.get('status') == BillStatus.PAID.value:
                raise BusinessRuleError(f"Bill {bill.get('invoice_id')} is already paid")
            pending = txn.query(COLLECTIONS['payment_proofs'], [
                ("bill_id", "==", bill_id),
                ("status", "==", ProofStatus.PENDING_REVIEW.value),
            ])

            now = utc_now()
            for old in pending:
                txn.update(COLLECTIONS['payment_proofs'], old['id'], {
                    "status": ProofStatus.REJECTED.value,
                    "review_note": "replaced",
                    "reviewed_at": now,
                    "updated_at": now,
                })

            proof = PaymentProof(
                bill_id=bill_id,
                invoice_id=bill.get('invoice_id'),
                tenant_id=user_id,
                tenant_name=bill.get('tenant_name') or "Unknown Tenant",
                landlord_id=bill['landlord_id'],
                property_name=bill.get('property_name') or UNKNOWN_PROPERTY,
                room_number=bill.get('room_number') or "N/A",
                amount=float(bill.get('amount') or 0),
                image_uri=image_uri,
                note=note or "",
                status=ProofStatus.PENDING_REVIEW,
                submitted_at=now,
                created_at=now,
                updated_at=now,
            )
            proof_id = txn.create(COLLECTIONS['payment_proofs'], to_document(proof))
            txn.update(COLLECTIONS['bills'], bill_id, {
                "status": BillStatus.PROOF_SUBMITTED.value,
                "proof_submitted_at": now,
                "payment_proof_id": proof_id,
                "updated_at": now,
            })
            return proof_id, bill, len(pending)

        proof_id, bill, replaced = await self.db.run_transaction(_txn)
        logger.info(
            f"Payment proof {proof_id} submitted for bill {bill_id}"
            + (f" (replaced {replaced} pending proof(s))" if replaced else "")
        )

        await self.notifications.notify(
            bill['landlord_id'],
            "Payment Proof Submitted",
            f"{bill.get('tenant_name') or 'A tenant'} submitted payment proof for {bill.get('invoice_id')}",
            notification_type=NotificationType.PAYMENT.value,
            context_type="proof",
            context_id=proof_id,
            tenant_name=bill.get('tenant_name'),
            property_name=bill.get('property_name'),
            room_number=bill.get('room_number'),
        )
        return proof_id

    async def review_payment_proof(self, user_id: str, proof_id: str, action: str, note: str = "") -> Dict[str, Any]:
        """
        Approve or reject a pending payment proof.

        approve: proof approved, bill paid and a payment history record added.
        reject: proof rejected, bill back to pending (overdue when past due).
        Each outcome is written in a single transaction.
        """
        require_user(user_id)
        new_status = REVIEW_ACTIONS.get(action)
        if new_status is None:
            raise BusinessRuleError(f"Invalid review action: {action}")

        def _txn(txn):
            proof = txn_must_get(txn, COLLECTIONS['payment_proofs'], proof_id, "Payment proof")
            if proof.get('landlord_id') != user_id:
                raise AccessDeniedError("Unauthorized to review this payment proof")
            if proof.get('status') != ProofStatus.PENDING_REVIEW.value:
                raise BusinessRuleError(f"Payment proof has already been {proof.get('status')}")
            bill = txn_must_get(txn, COLLECTIONS['bills'], proof['bill_id'], "Bill")
            if new_status == ProofStatus.APPROVED and bill.get('status') == BillStatus.PAID.value:
                raise BusinessRuleError(f"Bill {bill.get('invoice_id')} is already paid")

            now = utc_now()
            txn.update(COLLECTIONS['payment_proofs'], proof_id, {
                "status": new_status.value,
                "reviewed_at": now,
                "reviewed_by": user_id,
                "review_note": note or "",
                "updated_at": now,
            })

            if new_status == ProofStatus.APPROVED:
                bill_update = {
                    "status": BillStatus.PAID.value,
                    "paid_at": now,
                    "payment_method": "Payment Proof",
                    "updated_at": now,
                }
                txn.update(COLLECTIONS['bills'], bill['id'], bill_update)
                stage_payment_history(txn, {
                    **bill,
                    **bill_update,
                    "invoice_id": proof.get('invoice_id') or bill['invoice_id'],
                    "tenant_name": proof.get('tenant_name') or bill.get('tenant_name'),
                }, "Payment Proof", now)
                return {**bill, **bill_update}

            # A bill settled by other means keeps its paid status
            if bill.get('status') == BillStatus.PAID.value:
                return bill
            bill_update = {
                "status": BillStatus.OVERDUE.value if is_past_due(bill, now.date()) else BillStatus.PENDING.value,
                "payment_proof_id": None,
                "updated_at": now,
            }
            txn.update(COLLECTIONS['bills'], bill['id'], bill_update)
            return {**bill, **bill_update}

        bill = await self.db.run_transaction(_txn)
        logger.info(f"Payment proof {proof_id} {new_status.value}; bill {bill['id']} is {bill['status']}")

        if new_status == ProofStatus.APPROVED:
            title, message = "Payment Approved", f"Your payment for {bill.get('invoice_id')} has been approved"
        else:
            title = "Payment Proof Rejected"
            message = f"Your payment proof for {bill.get('invoice_id')} was rejected" + (f": {note}" if note else "")
        await self.notifications.notify(
            bill.get('tenant_id'), title, message,
            notification_type=NotificationType.PAYMENT.value,
            context_type="proof",
            context_id=proof_id,
        )
        return {"proof_id": proof_id, "status": new_status.value, "bill_status": bill['status']}

    async def _query_proofs(self, filters) -> List[Dict[str, Any]]:
        success, proofs, error = await self.db.query_documents(COLLECTIONS['payment_proofs'], filters)
        if not success:
            raise Exception(f"Failed to get payment proofs: {error}")
        return sorted(proofs, key=lambda p: sort_key(p.get('submitted_at')), reverse=True)

    async def get_landlord_payment_proofs(self, user_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        require_user(user_id)
        filters = [("landlord_id", "==", user_id)]
        if status:
            filters.append(("status", "==", status))
        return await self._query_proofs(filters)

    async def get_tenant_payment_proofs(self, user_id: str) -> List[Dict[str, Any]]:
        require_user(user_id)
        return await self._query_proofs([("tenant_id", "==", user_id)])

    async def get_payment_proof(self, user_id: str, proof_id: str) -> Dict[str, Any]:
        require_user(user_id)
        proof = await must_get_document(self.db, COLLECTIONS['payment_proofs'], proof_id, "Payment proof")
        if user_id not in (proof.get('landlord_id'), proof.get('tenant_id')):
            raise AccessDeniedError()
        return proof

    async def fix_payment_proof_tenant_info(self, user_id: str) -> int:
        """Backfill tenant, property and room details on proofs from their bills"""
        proofs = await self.get_landlord_payment_proofs(user_id)
        stale = [p for p in proofs if not p.get('tenant_name') or p['tenant_name'] == "Unknown Tenant"]

        async def _fix(proof):
            success, bill, _ = await self.db.get_document(COLLECTIONS['bills'], proof['bill_id'])
            if not success or not bill:
                return False
            ok, error = await self.db.update_document(COLLECTIONS['payment_proofs'], proof['id'], {
                "tenant_name": bill.get('tenant_name') or "Unknown Tenant",
                "property_name": bill.get('property_name') or UNKNOWN_PROPERTY,
                "room_number": bill.get('room_number') or "N/A",
                "updated_at": utc_now(),
            })
            if not ok:
                logger.error(f"Error updating proof {proof['id']}: {error}")
            return ok

        results = await asyncio.gather(*[_fix(proof) for proof in stale])
        fixed = sum(1 for ok in results if ok)
        logger.info(f"Updated {fixed} payment proof(s) with tenant information")
        return fixed


payment_proof_service = PaymentProofService()
