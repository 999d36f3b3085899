from typing import Any, Dict, List, Optional
import logging

from pydantic import ValidationError

from ..core.exceptions import BusinessRuleError, NotFoundError
from ..core.timeutils import sort_key, utc_now
from ..database.collections import COLLECTIONS
from ..database.database_service import database_service
from ..models.database_models import Room, RoomStatus, UtilityConfig, UtilityType, to_document
from ..models.user import TenantStatus
from .ownership import ensure_owner, must_get_property, must_get_room, require_user, txn_must_get
from .tenancy import (
    lease_window, stage_room_occupied, stage_room_vacated, stage_tenant_assignment,
    stage_tenant_checkout, tenant_display_name, tenant_snapshot,
)

logger = logging.getLogger(__name__)

DEFAULT_HOUSE_RULES = [
    "No smoking inside the property",
    "No pets allowed",
    "Quiet hours: 10PM - 6AM",
    "Visitors must be registered",
]

PRICE_RANGES = {
    "under-4000": (0, 4000),
    "4000-6000": (4000, 6000),
    "6000-8000": (6000, 8000),
    "above-8000": (8000, float("inf")),
}


def compute_occupancy(rooms: List[Dict[str, Any]], overrides: Optional[Dict[str, Optional[str]]] = None) -> Dict[str, int]:
    """
    Derive the occupancy aggregate of a property from its rooms.

    ``overrides`` maps room ids to the status they will have once the current
    transaction commits; ``None`` marks a room that is being deleted.
    """
    statuses = {room['id']: room.get('status') for room in rooms}
    for room_id, status in (overrides or {}).items():
        if status is None:
            statuses.pop(room_id, None)
        else:
            statuses[room_id] = status

    total_rooms = len(statuses)
    occupied = sum(1 for status in statuses.values() if status == RoomStatus.OCCUPIED.value)
    return {
        "total_rooms": total_rooms,
        "occupied": occupied,
        "vacancies": total_rooms - occupied,
    }


def read_property_rooms(txn, property_id: str) -> List[Dict[str, Any]]:
    return txn.query(COLLECTIONS['rooms'], [("property_id", "==", property_id)])


def stage_occupancy(txn, property_id: str, rooms: List[Dict[str, Any]], overrides: Optional[Dict[str, Optional[str]]] = None) -> Dict[str, int]:
    """Stage the property occupancy write; ``rooms`` must have been read in the same transaction"""
    occupancy = compute_occupancy(rooms, overrides)
    txn.update(COLLECTIONS['properties'], property_id, {
        **occupancy,
        "updated_at": utc_now(),
    })
    return occupancy


def ensure_room_assignable(room: Dict[str, Any], tenant_id: str) -> None:
    if room.get('status') == RoomStatus.OCCUPIED.value and room.get('tenant_id') != tenant_id:
        raise BusinessRuleError(f"Room {room.get('number')} is already occupied")


def ensure_tenant_assignable(tenant: Dict[str, Any], room: Dict[str, Any]) -> None:
    current_room = tenant.get('room_id')
    if current_room and current_room != room['id'] and tenant.get('status') == TenantStatus.ACTIVE.value:
        raise BusinessRuleError(
            f"{tenant_display_name(tenant)} is already assigned to room {tenant.get('room_number')}. "
            f"Please check out the tenant before assigning another room."
        )


def stage_room_assignment(txn, room: Dict[str, Any], tenant_id: str, tenant: Dict[str, Any],
                          rooms: List[Dict[str, Any]], provided: Optional[Dict[str, Any]] = None,
                          lease_start=None) -> Dict[str, Any]:
    """
    Stage both halves of a room assignment plus the occupancy refresh.

    ``tenant`` and ``rooms`` must have been read in the same transaction.
    """
    start, end = lease_window(lease_start)
    snapshot = tenant_snapshot(tenant_id, tenant, provided)
    stage_room_occupied(txn, room, snapshot, start, end)
    stage_tenant_assignment(txn, tenant_id, room, start, end)
    stage_occupancy(txn, room['property_id'], rooms, {room['id']: RoomStatus.OCCUPIED.value})
    return {
        **room,
        "status": RoomStatus.OCCUPIED.value,
        "tenant": snapshot,
        "tenant_id": tenant_id,
        "lease_start": start,
        "lease_end": end,
    }


def _room_number_key(room: Dict[str, Any]) -> int:
    try:
        return int(room.get('number'))
    except (TypeError, ValueError):
        return 0


def _validate_status(status: Any) -> str:
    try:
        return RoomStatus(status).value
    except ValueError:
        raise BusinessRuleError(f"Invalid room status: {status}")


class RoomService:
    def __init__(self):
        self.db = database_service

    async def add_room(self, user_id: str, property_id: str, room_data: dict) -> str:
        """Add a room to a property and refresh the property's occupancy"""
        require_user(user_id)
        await must_get_property(self.db, property_id=property_id, owner_id=user_id)

        now = utc_now()
        try:
            room = Room(**{
                **room_data,
                "property_id": property_id,
                "owner_id": user_id,
                "created_at": now,
                "updated_at": now,
            })
        except ValidationError as e:
            raise BusinessRuleError(f"Invalid room data: {e.errors()[0].get('msg')}")
        room_doc = to_document(room)

        def _txn(txn):
            rooms = read_property_rooms(txn, property_id)
            room_id = txn.create(COLLECTIONS['rooms'], room_doc)
            stage_occupancy(txn, property_id, rooms, {room_id: room_doc['status']})
            return room_id

        room_id = await self.db.run_transaction(_txn)
        logger.info(f"Added room {room_id} ({room.number}) to property {property_id}")
        return room_id

    async def get_property_rooms(self, user_id: str, property_id: str) -> List[Dict[str, Any]]:
        """Get all rooms of a property owned by the user, ordered by room number"""
        require_user(user_id)
        success, rooms, error = await self.db.query_documents(
            COLLECTIONS['rooms'],
            [("property_id", "==", property_id), ("owner_id", "==", user_id)]
        )
        if not success:
            logger.error(f"Error getting rooms for property {property_id}: {error}")
            raise Exception(f"Failed to get rooms: {error}")

        return sorted(rooms, key=_room_number_key)

    async def get_room(self, user_id: str, room_id: str) -> Dict[str, Any]:
        require_user(user_id)
        return await must_get_room(self.db, room_id=room_id, owner_id=user_id)

    async def update_room(self, user_id: str, room_id: str, update_data: dict) -> Dict[str, Any]:
        """
        Update a room. When the update touches ``status`` the owning property's
        occupancy is recomputed in the same transaction.
        """
        require_user(user_id)
        update_data = {k: v for k, v in update_data.items() if k not in ('id', 'owner_id', 'property_id', 'created_at')}
        if 'status' in update_data:
            update_data['status'] = _validate_status(update_data['status'])
        if update_data.get('utilities') is not None:
            try:
                update_data['utilities'] = {
                    name: to_document(UtilityConfig(**(config or {})))
                    for name, config in update_data['utilities'].items()
                }
            except ValidationError as e:
                raise BusinessRuleError(f"Invalid utility configuration: {e.errors()[0].get('msg')}")
        if 'number' in update_data and update_data['number'] is not None:
            update_data['number'] = str(update_data['number'])
        update_data['updated_at'] = utc_now()

        def _txn(txn):
            room = ensure_owner(txn_must_get(txn, COLLECTIONS['rooms'], room_id, "Room"), user_id)
            rooms = read_property_rooms(txn, room['property_id']) if 'status' in update_data else None

            txn.update(COLLECTIONS['rooms'], room_id, update_data)
            if rooms is not None:
                stage_occupancy(txn, room['property_id'], rooms, {room_id: update_data['status']})
            return {**room, **update_data}

        updated = await self.db.run_transaction(_txn)
        logger.info(f"Updated room {room_id}")
        return updated

    async def delete_room(self, user_id: str, room_id: str) -> None:
        """Delete a vacant room; occupied rooms must be vacated first"""
        require_user(user_id)

        def _txn(txn):
            room = ensure_owner(txn_must_get(txn, COLLECTIONS['rooms'], room_id, "Room"), user_id)
            if room.get('status') == RoomStatus.OCCUPIED.value:
                tenant_name = (room.get('tenant') or {}).get('name') or "Unknown Tenant"
                raise BusinessRuleError(
                    f"Cannot delete room {room.get('number')}. It is currently occupied by {tenant_name}. "
                    f"Please move out the tenant before deleting the room."
                )
            rooms = read_property_rooms(txn, room['property_id'])

            txn.delete(COLLECTIONS['rooms'], room_id)
            stage_occupancy(txn, room['property_id'], rooms, {room_id: None})

        await self.db.run_transaction(_txn)
        logger.info(f"Deleted room {room_id}")

    async def update_property_occupancy_from_rooms(self, property_id: str) -> Dict[str, int]:
        """
        Recompute a property's occupancy from its rooms.

        The room scan and the property write share one transaction, so the
        stored aggregate always matches a consistent snapshot of the rooms.
        """
        def _txn(txn):
            txn_must_get(txn, COLLECTIONS['properties'], property_id, "Property")
            rooms = read_property_rooms(txn, property_id)
            return stage_occupancy(txn, property_id, rooms)

        occupancy = await self.db.run_transaction(_txn)
        logger.info(
            f"Property {property_id} occupancy: {occupancy['occupied']}/{occupancy['total_rooms']} occupied"
        )
        return occupancy

    async def assign_tenant_to_room(self, user_id: str, room_id: str, tenant_data: dict,
                                    lease_start=None) -> Dict[str, Any]:
        """
        Move a tenant into a room.

        The room, the tenant's user document and the property occupancy are
        written in one transaction. A room held by another tenant is refused.
        """
        require_user(user_id)
        tenant_id = tenant_data.get('id')
        if not tenant_id:
            raise BusinessRuleError("Tenant id is required to occupy a room")

        def _txn(txn):
            room = ensure_owner(txn_must_get(txn, COLLECTIONS['rooms'], room_id, "Room"), user_id)
            ensure_room_assignable(room, tenant_id)
            tenant = txn_must_get(txn, COLLECTIONS['users'], tenant_id, "Tenant")
            ensure_tenant_assignable(tenant, room)
            rooms = read_property_rooms(txn, room['property_id'])
            return stage_room_assignment(txn, room, tenant_id, tenant, rooms, tenant_data, lease_start)

        room = await self.db.run_transaction(_txn)
        logger.info(f"Assigned tenant {tenant_id} to room {room.get('number')}")
        return room

    async def remove_tenant_from_room(self, user_id: str, room_id: str) -> Dict[str, Any]:
        """Vacate a room; its tenant, if still linked to it, is checked out in the same transaction"""
        require_user(user_id)

        def _txn(txn):
            room = ensure_owner(txn_must_get(txn, COLLECTIONS['rooms'], room_id, "Room"), user_id)
            tenant = txn.get(COLLECTIONS['users'], room['tenant_id']) if room.get('tenant_id') else None
            rooms = read_property_rooms(txn, room['property_id'])

            stage_room_vacated(txn, room_id)
            if tenant and tenant.get('room_id') == room_id:
                stage_tenant_checkout(txn, tenant['id'])
            stage_occupancy(txn, room['property_id'], rooms, {room_id: RoomStatus.VACANT.value})
            return {**room, "status": RoomStatus.VACANT.value, "tenant": None, "tenant_id": None}

        room = await self.db.run_transaction(_txn)
        logger.info(f"Removed tenant from room {room_id}")
        return room

    async def get_room_stats(self, user_id: str, property_id: str) -> Dict[str, Any]:
        rooms = await self.get_property_rooms(user_id, property_id)
        occupied = [room for room in rooms if room.get('status') == RoomStatus.OCCUPIED.value]
        return {
            "total": len(rooms),
            "occupied": len(occupied),
            "vacant": sum(1 for room in rooms if room.get('status') == RoomStatus.VACANT.value),
            "maintenance": sum(1 for room in rooms if room.get('status') == RoomStatus.MAINTENANCE.value),
            "total_revenue": sum(float(room.get('rent') or 0) for room in occupied),
        }

    # ───────────────────────── Tenant-facing listings ─────────────────────────

    @staticmethod
    def _to_listing(room: Dict[str, Any], prop: Dict[str, Any]) -> Dict[str, Any]:
        rent = float(room.get('rent') or 0)
        free_utilities = [
            name.capitalize()
            for name, config in (room.get('utilities') or {}).items()
            if (config or {}).get('type') == UtilityType.FREE.value
        ]
        return {
            **room,
            "property": {
                "id": prop['id'],
                "name": prop.get('name'),
                "address": prop.get('address'),
                "description": prop.get('description'),
                "amenities": prop.get('amenities') or [],
                "photos": prop.get('photos') or [],
            },
            "title": f"{room.get('type') or 'Room'} - {prop.get('name')}",
            "room_number": room.get('number'),
            "price": rent,
            "monthly_rent": rent,
            "deposit": rent * 2,
            "location": prop.get('address'),
            "description": room.get('notes') or prop.get('description') or f"Available room in {prop.get('name')}",
            "images": room.get('photos') or prop.get('photos') or [],
            "available": room.get('status') == RoomStatus.VACANT.value,
            "amenities": free_utilities + list(prop.get('amenities') or []),
            "rules": prop.get('rules') or DEFAULT_HOUSE_RULES,
            "landlord": {
                "name": prop.get('owner_name') or "Property Owner",
                "phone": prop.get('contact_number'),
                "email": prop.get('owner_email'),
            },
        }

    async def get_available_rooms(self, filters: Optional[dict] = None) -> List[Dict[str, Any]]:
        """Vacant rooms joined with their property, for tenants browsing listings"""
        filters = filters or {}
        success, rooms, error = await self.db.query_documents(
            COLLECTIONS['rooms'], [("status", "==", RoomStatus.VACANT.value)]
        )
        if not success:
            raise Exception(f"Failed to get available rooms: {error}")

        properties = {prop['id']: prop for prop in await self.db.get_all_documents(COLLECTIONS['properties'])}
        listings = [
            self._to_listing(room, properties[room['property_id']])
            for room in rooms
            if room.get('property_id') in properties
        ]

        price_range = filters.get('price_range')
        if price_range and price_range != "all":
            low, high = PRICE_RANGES.get(price_range, (0, float("inf")))
            listings = [room for room in listings if low <= room['price'] < high]

        room_type = filters.get('room_type')
        if room_type and room_type != "all":
            listings = [room for room in listings if room_type.lower() in (room.get('type') or '').lower()]

        search = (filters.get('search_query') or '').strip().lower()
        if search:
            listings = [
                room for room in listings
                if search in room['title'].lower()
                or search in (room['location'] or '').lower()
                or search in room['description'].lower()
            ]

        wanted = filters.get('amenities') or []
        if wanted:
            listings = [
                room for room in listings
                if all(any(a.lower() in have.lower() for have in room['amenities']) for a in wanted)
            ]

        # Newest first, then cheapest
        listings.sort(key=lambda room: room['price'])
        listings.sort(key=lambda room: sort_key(room.get('created_at')), reverse=True)
        return listings

    async def get_room_details_for_tenant(self, room_id: str) -> Dict[str, Any]:
        success, room, _ = await self.db.get_document(COLLECTIONS['rooms'], room_id)
        if not success or not room:
            raise NotFoundError("Room not found")
        success, prop, _ = await self.db.get_document(COLLECTIONS['properties'], room['property_id'])
        if not success or not prop:
            raise NotFoundError("Property not found")
        return self._to_listing(room, prop)


room_service = RoomService()
