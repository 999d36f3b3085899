from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from ..core.config import settings
from ..core.exceptions import PersistenceError
from ..core.timeutils import sort_key, utc_now
from ..database.collections import COLLECTIONS
from ..database.database_service import database_service
from ..models.database_models import ChargeLine, PaymentHistory, to_document
from .ownership import ensure_owner, must_get_document, require_user

logger = logging.getLogger(__name__)


def generate_receipt_id(now: Optional[datetime] = None) -> str:
    """RCP-{epoch millis}"""
    now = now or utc_now()
    return f"{settings.RECEIPT_PREFIX}-{int(now.timestamp() * 1000)}"


def default_breakdown(bill: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Rent line plus a utilities line when the bill carried utility charges"""
    if bill.get('charges'):
        return [ChargeLine(**line).model_dump() for line in bill['charges']]

    base_rent = float(bill.get('base_rent') or bill.get('amount') or 0)
    lines = [{"description": "Monthly Rent", "amount": base_rent, "category": "rent"}]
    utility_charges = float(bill.get('utility_charges') or 0)
    if utility_charges > 0:
        lines.append({"description": "Utility Charges", "amount": utility_charges, "category": "utilities"})
    return lines


def _billing_month(bill: Dict[str, Any]):
    period = bill.get('billing_period') or {}
    month = period.get('month')
    year = period.get('year')
    if month and year:
        return f"{month} {year}", str(year)
    return month, str(year) if year else None


def build_history_record(bill: Dict[str, Any], payment_method: str,
                         payment_date: Optional[datetime] = None) -> Dict[str, Any]:
    """Build the payment history document for a bill that has just been paid"""
    payment_date = payment_date or utc_now()
    month, year = _billing_month(bill)
    record = PaymentHistory(
        receipt_id=generate_receipt_id(payment_date),
        tenant_id=bill['tenant_id'],
        bill_id=bill['id'],
        invoice_id=bill['invoice_id'],
        amount=float(bill.get('amount') or 0),
        payment_date=payment_date,
        due_date=bill.get('due_date'),
        month=month,
        year=year,
        property_name=bill.get('property_name'),
        room_number=bill.get('room_number'),
        tenant_name=bill.get('tenant_name'),
        payment_method=payment_method,
        breakdown=default_breakdown(bill),
        created_at=payment_date,
    )
    return to_document(record)


def stage_payment_history(txn, bill: Dict[str, Any], payment_method: str,
                          payment_date: Optional[datetime] = None) -> Dict[str, Any]:
    """Stage the history write inside the transaction that marks the bill paid"""
    record = build_history_record(bill, payment_method, payment_date)
    record['id'] = txn.create(COLLECTIONS['payment_history'], record)
    return record


class PaymentHistoryService:
    def __init__(self):
        self.db = database_service

    async def add_payment_to_history(self, bill: Dict[str, Any], payment_method: str = "Payment Proof") -> Dict[str, Any]:
        record = build_history_record(bill, payment_method)
        success, history_id, error = await self.db.create_document(COLLECTIONS['payment_history'], record)
        if not success:
            logger.error(f"Error adding payment to history for bill {bill.get('id')}: {error}")
            raise PersistenceError(f"Failed to add payment to history: {error}")

        logger.info(f"Recorded payment {record['receipt_id']} for invoice {record['invoice_id']}")
        return {**record, "id": history_id}

    async def get_tenant_payment_history(self, tenant_id: str) -> List[Dict[str, Any]]:
        """Payments made by the tenant, most recent first"""
        require_user(tenant_id)
        success, records, error = await self.db.query_documents(
            COLLECTIONS['payment_history'], [("tenant_id", "==", tenant_id)]
        )
        if not success:
            raise Exception(f"Failed to get payment history: {error}")
        return sorted(records, key=lambda r: sort_key(r.get('payment_date')), reverse=True)

    async def get_payment_record(self, user_id: str, history_id: str) -> Dict[str, Any]:
        """A single history record, visible to the paying tenant and the bill's landlord"""
        require_user(user_id)
        record = await must_get_document(self.db, COLLECTIONS['payment_history'], history_id, "Payment record")
        if record.get('tenant_id') != user_id:
            bill = await must_get_document(self.db, COLLECTIONS['bills'], record['bill_id'], "Bill")
            ensure_owner(bill, user_id, owner_field="landlord_id")
        return record


payment_history_service = PaymentHistoryService()
