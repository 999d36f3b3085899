from calendar import monthrange
from datetime import date, timedelta
from typing import Any, Dict, List, Optional
import asyncio
import logging
import re

from pydantic import ValidationError

from ..core.config import settings
from ..core.exceptions import AccessDeniedError, BoardingHubError, BusinessRuleError
from ..core.timeutils import parse_iso_date, sort_key, utc_now
from ..database.collections import COLLECTIONS
from ..database.database_service import database_service
from ..models.database_models import Bill, BillingPeriod, BillStatus, UtilityConfig, UtilityType, to_document
from .invoice_id_service import invoice_id_service
from .ownership import ensure_owner, must_get_document, must_get_room, require_user, txn_must_get
from .payment_history_service import stage_payment_history

logger = logging.getLogger(__name__)

UNKNOWN_PROPERTY = "Unknown Property"

# Bills created by the old mock data seeder carry tenant ids like "t1"
PLACEHOLDER_TENANT_ID = re.compile(r"^t\d+$")


def default_consumption(utility_name: str) -> float:
    if utility_name.lower() == "electricity":
        return settings.DEFAULT_ELECTRICITY_CONSUMPTION
    return settings.DEFAULT_UTILITY_CONSUMPTION


def compute_bill_breakdown(room: Dict[str, Any]) -> Dict[str, Any]:
    """
    Price a room for one billing period.

    ``amount`` is the base rent plus every utility charge: flat utilities add
    their amount, per-tenant utilities add rate times the default consumption,
    free utilities add nothing.
    """
    base_rent = float(room.get('rent') or 0)
    charges = [{"description": "Monthly Rent", "amount": base_rent, "category": "rent"}]

    utility_charges = 0.0
    for name, raw in (room.get('utilities') or {}).items():
        try:
            utility = UtilityConfig(**(raw or {}))
        except (TypeError, ValidationError) as e:
            detail = e.errors()[0].get('msg') if isinstance(e, ValidationError) else "expected an object"
            raise BusinessRuleError(f"Invalid utility configuration for {name}: {detail}")
        if utility.type == UtilityType.FLAT:
            charge = float(utility.amount or 0)
            description = name.capitalize()
        elif utility.type == UtilityType.PER_TENANT and utility.rate:
            consumption = default_consumption(name)
            charge = float(utility.rate) * consumption
            description = f"{name.capitalize()} ({consumption:g} units x {float(utility.rate):g})"
        else:
            continue
        utility_charges += charge
        charges.append({"description": description, "amount": charge, "category": "utilities"})

    return {
        "base_rent": base_rent,
        "utility_charges": utility_charges,
        "amount": base_rent + utility_charges,
        "charges": charges,
    }


def generate_billing_periods(count: int = 12, today: Optional[date] = None) -> List[Dict[str, Any]]:
    """Monthly periods starting with the current month"""
    today = today or utc_now().date()
    periods = []
    for offset in range(count):
        month_index = today.month - 1 + offset
        year, month = today.year + month_index // 12, month_index % 12 + 1
        start = date(year, month, 1)
        end = date(year, month, monthrange(year, month)[1])
        periods.append({
            "id": f"{year}-{month:02d}",
            "from_date": start.isoformat(),
            "to_date": end.isoformat(),
            "month": start.strftime("%B"),
            "year": year,
            "display_name": start.strftime("%B %Y"),
        })
    return periods


def is_past_due(bill: Dict[str, Any], today: Optional[date] = None) -> bool:
    due = parse_iso_date(bill.get('due_date'))
    return due is not None and due < (today or utc_now().date())


class BillingService:
    def __init__(self):
        self.db = database_service

    # ───────────────────────── Generation ─────────────────────────

    async def generate_bills(self, user_id: str, tenants: List[dict], billing_period: dict) -> Dict[str, Any]:
        """
        Create one bill per tenant for the billing period.

        A tenant that cannot be billed is reported in ``skipped`` with the
        reason and does not stop the rest of the batch.
        """
        require_user(user_id)
        try:
            period = BillingPeriod(**billing_period)
        except ValidationError as e:
            raise BusinessRuleError(f"Invalid billing period: {e.errors()[0].get('msg')}")

        bill_ids, invoice_ids, skipped = [], [], []
        for tenant in tenants:
            tenant_id = tenant.get('id')
            if not tenant.get('room_id') or not tenant.get('property_id'):
                logger.warning(f"Skipping tenant {tenant_id}: no room assignment")
                skipped.append({"tenant_id": tenant_id, "reason": "Tenant has no room assignment"})
                continue

            try:
                bill_id, invoice_id = await self._create_bill(user_id, tenant, period)
            except BoardingHubError as e:
                logger.warning(f"Skipping tenant {tenant_id}: {e.message}")
                skipped.append({"tenant_id": tenant_id, "reason": e.message})
                continue

            bill_ids.append(bill_id)
            invoice_ids.append(invoice_id)

        logger.info(f"Generated {len(bill_ids)} bill(s) for {period.month} {period.year}, skipped {len(skipped)}")
        return {"bill_ids": bill_ids, "invoice_ids": invoice_ids, "skipped": skipped}

    async def _create_bill(self, user_id: str, tenant: dict, period: BillingPeriod):
        def _txn(txn):
            room = ensure_owner(txn_must_get(txn, COLLECTIONS['rooms'], tenant['room_id'], "Room"), user_id)
            prop = txn.get(COLLECTIONS['properties'], tenant['property_id'])

            room_number = tenant.get('room_number') or room.get('number')
            now = utc_now()
            invoice_id = invoice_id_service.next_invoice_id(txn, now.year)
            bill = Bill(
                invoice_id=invoice_id,
                tenant_id=tenant['id'],
                tenant_name=tenant.get('name'),
                tenant_email=tenant.get('email'),
                property_id=tenant['property_id'],
                property_name=(prop or {}).get('name') or UNKNOWN_PROPERTY,
                room_id=room['id'],
                room_number=str(room_number) if room_number is not None else None,
                landlord_id=user_id,
                billing_period=period,
                due_date=(now.date() + timedelta(days=settings.BILL_DUE_DAYS)).isoformat(),
                status=BillStatus.PENDING,
                created_at=now,
                updated_at=now,
                **compute_bill_breakdown(room),
            )
            return txn.create(COLLECTIONS['bills'], to_document(bill)), invoice_id

        return await self.db.run_transaction(_txn)

    async def preview_bills(self, user_id: str, tenants: List[dict]) -> List[Dict[str, Any]]:
        """Price each tenant's room without writing anything"""
        require_user(user_id)
        previews = []
        for tenant in tenants:
            if not tenant.get('room_id'):
                continue
            room = await must_get_room(self.db, room_id=tenant['room_id'], owner_id=user_id)
            previews.append({
                "tenant_id": tenant.get('id'),
                "tenant_name": tenant.get('name'),
                "room_id": room['id'],
                "room_number": room.get('number'),
                **compute_bill_breakdown(room),
            })
        return previews

    # ───────────────────────── Queries ─────────────────────────

    async def _query_bills(self, filters) -> List[Dict[str, Any]]:
        success, bills, error = await self.db.query_documents(COLLECTIONS['bills'], filters)
        if not success:
            logger.error(f"Error querying bills: {error}")
            raise Exception(f"Failed to get bills: {error}")
        return sorted(bills, key=lambda b: sort_key(b.get('created_at')), reverse=True)

    async def get_landlord_bills(self, user_id: str) -> List[Dict[str, Any]]:
        require_user(user_id)
        return await self._query_bills([("landlord_id", "==", user_id)])

    async def get_tenant_bills(self, tenant_id: str, landlord_id: Optional[str] = None) -> List[Dict[str, Any]]:
        require_user(tenant_id)
        filters = [("tenant_id", "==", tenant_id)]
        if landlord_id:
            filters.append(("landlord_id", "==", landlord_id))
        return await self._query_bills(filters)

    async def get_bill(self, user_id: str, bill_id: str) -> Dict[str, Any]:
        """A bill is visible to its landlord and its tenant"""
        require_user(user_id)
        bill = await must_get_document(self.db, COLLECTIONS['bills'], bill_id, "Bill")
        if user_id not in (bill.get('landlord_id'), bill.get('tenant_id')):
            raise AccessDeniedError()
        return bill

    # ───────────────────────── Mutations ─────────────────────────

    async def update_bill_status(self, user_id: str, bill_id: str, status: str) -> Dict[str, Any]:
        """
        Set a bill's status manually. Marking it paid records a payment
        history entry in the same transaction.
        """
        require_user(user_id)
        try:
            status = BillStatus(status).value
        except ValueError:
            raise BusinessRuleError(f"Invalid bill status: {status}")

        def _txn(txn):
            bill = ensure_owner(txn_must_get(txn, COLLECTIONS['bills'], bill_id, "Bill"), user_id, owner_field="landlord_id")
            # Paid bills already carry a payment history record
            if bill.get('status') == BillStatus.PAID.value:
                raise BusinessRuleError(
                    "Bill is already paid" if status == BillStatus.PAID.value
                    else "A paid bill cannot be changed back to another status"
                )

            now = utc_now()
            update_data = {"status": status, "updated_at": now}
            if status == BillStatus.PAID.value:
                update_data.update({"paid_at": now, "payment_method": "Manual Payment"})
            txn.update(COLLECTIONS['bills'], bill_id, update_data)

            if status == BillStatus.PAID.value:
                stage_payment_history(txn, {**bill, **update_data}, "Manual Payment", now)
            return {**bill, **update_data}

        bill = await self.db.run_transaction(_txn)
        logger.info(f"Bill {bill_id} status -> {status}")
        return bill

    async def delete_bill(self, user_id: str, bill_id: str) -> None:
        require_user(user_id)
        bill = await must_get_document(self.db, COLLECTIONS['bills'], bill_id, "Bill")
        ensure_owner(bill, user_id, owner_field="landlord_id")

        success, error = await self.db.delete_document(COLLECTIONS['bills'], bill_id)
        if not success:
            raise Exception(f"Failed to delete bill: {error}")
        logger.info(f"Deleted bill {bill_id} ({bill.get('invoice_id')})")

    async def delete_invalid_bills(self, user_id: str) -> int:
        """Delete the landlord's bills that reference placeholder tenants"""
        bills = await self.get_landlord_bills(user_id)
        invalid = [b for b in bills if PLACEHOLDER_TENANT_ID.match(str(b.get('tenant_id') or ''))]

        results = await asyncio.gather(*[
            self.db.delete_document(COLLECTIONS['bills'], bill['id']) for bill in invalid
        ])
        deleted = sum(1 for success, _ in results if success)
        if deleted:
            logger.info(f"Deleted {deleted} invalid bill(s) for landlord {user_id}")
        return deleted

    async def get_billing_statistics(self, user_id: str) -> Dict[str, Any]:
        bills = await self.get_landlord_bills(user_id)
        today = utc_now().date()

        def _overdue(bill):
            return bill.get('status') == BillStatus.OVERDUE.value or (
                bill.get('status') == BillStatus.PENDING.value and is_past_due(bill, today)
            )

        def _total(selected):
            return sum(float(b.get('amount') or 0) for b in selected)

        pending = [b for b in bills if b.get('status') == BillStatus.PENDING.value]
        paid = [b for b in bills if b.get('status') == BillStatus.PAID.value]
        overdue = [b for b in bills if _overdue(b)]
        return {
            "total_bills": len(bills),
            "pending_bills": len(pending),
            "proof_submitted_bills": sum(1 for b in bills if b.get('status') == BillStatus.PROOF_SUBMITTED.value),
            "paid_bills": len(paid),
            "overdue_bills": len(overdue),
            "total_revenue": _total(paid),
            "pending_revenue": _total(pending),
            "overdue_revenue": _total(overdue),
        }

    async def _mark_bill_overdue(self, bill_id: str, today: date) -> bool:
        def _txn(txn):
            bill = txn.get(COLLECTIONS['bills'], bill_id)
            # Status may have moved on since the bill was listed
            if not bill or bill.get('status') != BillStatus.PENDING.value or not is_past_due(bill, today):
                return False
            now = utc_now()
            txn.update(COLLECTIONS['bills'], bill_id, {
                "status": BillStatus.OVERDUE.value,
                "overdue_at": now,
                "updated_at": now,
            })
            return True

        return await self.db.run_transaction(_txn)

    async def _mark_overdue(self, filters) -> int:
        today = utc_now().date()
        bills = await self._query_bills(filters + [("status", "==", BillStatus.PENDING.value)])
        results = await asyncio.gather(*[
            self._mark_bill_overdue(bill['id'], today) for bill in bills if is_past_due(bill, today)
        ])
        return sum(1 for marked in results if marked)

    async def mark_overdue_bills(self, user_id: str) -> int:
        """Move the landlord's pending bills past their due date to overdue"""
        require_user(user_id)
        count = await self._mark_overdue([("landlord_id", "==", user_id)])
        logger.info(f"Marked {count} bill(s) overdue for landlord {user_id}")
        return count

    async def mark_all_overdue_bills(self) -> int:
        count = await self._mark_overdue([])
        logger.info(f"Marked {count} bill(s) overdue")
        return count

    async def fix_bill_property_names(self, user_id: str) -> int:
        """Backfill property names on bills created without one"""
        bills = await self.get_landlord_bills(user_id)
        success, properties, error = await self.db.query_documents(
            COLLECTIONS['properties'], [("owner_id", "==", user_id)]
        )
        if not success:
            raise Exception(f"Failed to get properties: {error}")
        names = {p['id']: p.get('name') for p in properties}

        updates = []
        for bill in bills:
            if bill.get('property_name') and bill['property_name'] != UNKNOWN_PROPERTY:
                continue
            name = names.get(bill.get('property_id'))
            if not name and len(properties) == 1:
                name = properties[0].get('name')
            if name:
                updates.append(self.db.update_document(COLLECTIONS['bills'], bill['id'], {
                    "property_name": name,
                    "updated_at": utc_now(),
                }))

        results = await asyncio.gather(*updates)
        fixed = sum(1 for ok, _ in results if ok)
        logger.info(f"Fixed property names on {fixed} bill(s)")
        return fixed


billing_service = BillingService()
