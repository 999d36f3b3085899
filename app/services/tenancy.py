from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ..core.config import settings
from ..core.timeutils import utc_now
from ..database.collections import COLLECTIONS
from ..models.database_models import RoomStatus
from ..models.user import TenantStatus


def tenant_display_name(tenant: Dict[str, Any]) -> str:
    name = f"{tenant.get('first_name') or ''} {tenant.get('last_name') or ''}".strip()
    return name or tenant.get('full_name') or tenant.get('name') or tenant.get('email') or "Unknown Tenant"


def lease_window(start: Optional[datetime] = None):
    start = start or utc_now()
    return start, start + timedelta(days=settings.LEASE_DURATION_DAYS)


def tenant_snapshot(tenant_id: str, tenant: Dict[str, Any], provided: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Contact details copied onto the room; explicitly provided values win"""
    provided = provided or {}
    return {
        "id": tenant_id,
        "name": provided.get('full_name') or provided.get('name') or tenant_display_name(tenant),
        "email": provided.get('email') or tenant.get('email'),
        "phone": provided.get('phone') or tenant.get('phone'),
    }


def stage_tenant_assignment(txn, tenant_id: str, room: Dict[str, Any], lease_start: datetime, lease_end: datetime) -> None:
    """Stage the tenant-side half of a room assignment"""
    now = utc_now()
    txn.update(COLLECTIONS['users'], tenant_id, {
        "room_number": room.get('number'),
        "room_id": room['id'],
        "property_id": room.get('property_id'),
        "status": TenantStatus.ACTIVE.value,
        "lease_start": lease_start,
        "lease_end": lease_end,
        "assigned_at": now,
        "balance": 0,
        "updated_at": now,
    })


def stage_room_occupied(txn, room: Dict[str, Any], snapshot: Dict[str, Any],
                        lease_start: datetime, lease_end: datetime) -> None:
    now = utc_now()
    txn.update(COLLECTIONS['rooms'], room['id'], {
        "status": RoomStatus.OCCUPIED.value,
        "tenant": snapshot,
        "tenant_id": snapshot['id'],
        "occupied_date": now,
        "lease_start": lease_start,
        "lease_end": lease_end,
        "vacated_date": None,
        "updated_at": now,
    })


def stage_tenant_checkout(txn, tenant_id: str) -> None:
    now = utc_now()
    txn.update(COLLECTIONS['users'], tenant_id, {
        "room_number": None,
        "room_id": None,
        "property_id": None,
        "status": TenantStatus.CHECKED_OUT.value,
        "lease_end": now,
        "checked_out_at": now,
        "balance": 0,
        "updated_at": now,
    })


def stage_room_vacated(txn, room_id: str) -> None:
    now = utc_now()
    txn.update(COLLECTIONS['rooms'], room_id, {
        "status": RoomStatus.VACANT.value,
        "tenant": None,
        "tenant_id": None,
        "occupied_date": None,
        "vacated_date": now,
        "updated_at": now,
    })
