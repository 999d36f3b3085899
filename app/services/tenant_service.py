from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from ..core.exceptions import BusinessRuleError, NotFoundError
from ..core.timeutils import sort_key, utc_now
from ..database.collections import COLLECTIONS
from ..database.database_service import database_service
from ..models.database_models import RoomStatus
from ..models.user import TENANT_STATUS_FILTERS, TenantStatus, UserRole
from .ownership import ensure_owner, require_user, txn_must_get
from .room_service import read_property_rooms, room_service, stage_occupancy
from .tenancy import stage_room_vacated, stage_tenant_checkout, tenant_display_name

logger = logging.getLogger(__name__)


class TenantService:
    def __init__(self):
        self.db = database_service

    async def get_all_registered_tenants(self) -> List[Dict[str, Any]]:
        """All users registered as tenants, newest first"""
        success, tenants, error = await self.db.query_documents(
            COLLECTIONS['users'], [("user_type", "==", UserRole.TENANT.value)]
        )
        if not success:
            logger.error(f"Error getting registered tenants: {error}")
            raise Exception(f"Failed to get tenants: {error}")

        tenants = [{**tenant, "name": tenant_display_name(tenant)} for tenant in tenants]
        tenants.sort(key=lambda t: sort_key(t.get('created_at')), reverse=True)
        return tenants

    async def get_tenant(self, tenant_id: str) -> Dict[str, Any]:
        success, tenant, _ = await self.db.get_document(COLLECTIONS['users'], tenant_id)
        if not success or not tenant:
            raise NotFoundError("Tenant not found")
        return {**tenant, "name": tenant_display_name(tenant)}

    async def assign_tenant_to_room(self, user_id: str, tenant_id: str, room_id: str,
                                    lease_start: Optional[datetime] = None) -> Dict[str, Any]:
        """Move the tenant into one of the landlord's rooms"""
        room = await room_service.assign_tenant_to_room(user_id, room_id, {"id": tenant_id}, lease_start)
        return {
            "tenant_id": tenant_id,
            "room_id": room['id'],
            "lease_start": room['lease_start'],
            "lease_end": room['lease_end'],
        }

    async def update_tenant_status(self, tenant_id: str, status: str) -> None:
        try:
            status = TenantStatus(status).value
        except ValueError:
            raise BusinessRuleError(f"Invalid tenant status: {status}")

        success, error = await self.db.update_document(COLLECTIONS['users'], tenant_id, {
            "status": status,
            "status_updated_at": utc_now(),
        })
        if not success:
            raise Exception(f"Failed to update tenant status: {error}")
        logger.info(f"Tenant {tenant_id} status -> {status}")

    async def update_tenant_balance(self, tenant_id: str, balance: float) -> None:
        success, error = await self.db.update_document(COLLECTIONS['users'], tenant_id, {
            "balance": float(balance),
            "balance_updated_at": utc_now(),
        })
        if not success:
            raise Exception(f"Failed to update tenant balance: {error}")

    async def check_out_tenant(self, user_id: str, tenant_id: str) -> Dict[str, Any]:
        """
        Check a tenant out of their room.

        The tenant document, the room and the property occupancy are written
        in a single transaction.
        """
        require_user(user_id)

        def _txn(txn):
            tenant = txn_must_get(txn, COLLECTIONS['users'], tenant_id, "Tenant")
            room = txn.get(COLLECTIONS['rooms'], tenant['room_id']) if tenant.get('room_id') else None
            prop = None
            if not room and tenant.get('property_id'):
                prop = txn.get(COLLECTIONS['properties'], tenant['property_id'])
            if not room and not prop:
                raise BusinessRuleError("Tenant has no room assignment")

            # The landlord must own the room, or its property when the room is gone
            ensure_owner(room or prop, user_id)
            rooms = read_property_rooms(txn, room['property_id']) if room else []

            stage_tenant_checkout(txn, tenant_id)

            # Only vacate the room if it still belongs to this tenant
            if room and room.get('tenant_id') in (None, tenant_id):
                stage_room_vacated(txn, room['id'])
                stage_occupancy(txn, room['property_id'], rooms, {room['id']: RoomStatus.VACANT.value})
                return room['id']
            return None

        room_id = await self.db.run_transaction(_txn)
        logger.info(f"Checked out tenant {tenant_id}" + (f" from room {room_id}" if room_id else ""))
        return {"tenant_id": tenant_id, "vacated_room_id": room_id}

    @staticmethod
    def search_tenants(tenants: List[Dict[str, Any]], query: str) -> List[Dict[str, Any]]:
        query = (query or '').strip().lower()
        if not query:
            return tenants

        def _matches(tenant):
            fields = (
                tenant_display_name(tenant),
                tenant.get('email'),
                tenant.get('phone'),
                tenant.get('room_number'),
            )
            return any(query in str(value).lower() for value in fields if value)

        return [tenant for tenant in tenants if _matches(tenant)]

    @staticmethod
    def filter_tenants_by_status(tenants: List[Dict[str, Any]], status: str) -> List[Dict[str, Any]]:
        if not status or status == "All":
            return tenants
        wanted = TENANT_STATUS_FILTERS.get(status, [status.lower()])
        return [tenant for tenant in tenants if (tenant.get('status') or TenantStatus.REGISTERED.value) in wanted]

    async def get_tenant_statistics(self) -> Dict[str, int]:
        tenants = await self.get_all_registered_tenants()
        counts = {status.value: 0 for status in TenantStatus}
        for tenant in tenants:
            status = tenant.get('status') or TenantStatus.REGISTERED.value
            counts[status] = counts.get(status, 0) + 1
        return {
            "total": len(tenants),
            "active": counts[TenantStatus.ACTIVE.value],
            "overdue": counts[TenantStatus.OVERDUE.value],
            "moving_out": counts[TenantStatus.MOVING_OUT.value],
            "registered": counts[TenantStatus.REGISTERED.value],
            "checked_out": counts[TenantStatus.CHECKED_OUT.value],
        }


tenant_service = TenantService()
