from typing import Any, Dict, List
import logging

from ..core.exceptions import BusinessRuleError
from ..core.timeutils import sort_key, utc_now
from ..database.collections import COLLECTIONS
from ..database.database_service import database_service
from ..models.database_models import Property, RoomStatus, to_document
from .ownership import ensure_owner, must_get_property, require_user, txn_must_get
from .room_service import compute_occupancy, read_property_rooms, room_service

logger = logging.getLogger(__name__)

# Aggregates are derived from rooms and never accepted from callers
PROTECTED_FIELDS = ('id', 'owner_id', 'created_at', 'total_rooms', 'occupied', 'vacancies')


class PropertyService:
    def __init__(self):
        self.db = database_service

    async def add_property(self, user_id: str, property_data: dict, owner_email: str = None) -> str:
        require_user(user_id)
        now = utc_now()
        prop = Property(**{
            **{k: v for k, v in property_data.items() if k not in PROTECTED_FIELDS},
            "owner_id": user_id,
            "owner_email": owner_email or property_data.get('owner_email'),
            "created_at": now,
            "updated_at": now,
        })

        success, property_id, error = await self.db.create_document(COLLECTIONS['properties'], to_document(prop))
        if not success:
            logger.error(f"Error adding property for {user_id}: {error}")
            raise Exception(f"Failed to add property: {error}")

        logger.info(f"Added property {property_id} ({prop.name}) for owner {user_id}")
        return property_id

    async def get_user_properties(self, user_id: str) -> List[Dict[str, Any]]:
        """Properties owned by the user, newest first, with occupancy computed from the current rooms"""
        require_user(user_id)
        success, properties, error = await self.db.query_documents(
            COLLECTIONS['properties'], [("owner_id", "==", user_id)]
        )
        if not success:
            raise Exception(f"Failed to get properties: {error}")

        success, rooms, error = await self.db.query_documents(
            COLLECTIONS['rooms'], [("owner_id", "==", user_id)]
        )
        if not success:
            raise Exception(f"Failed to get rooms: {error}")

        result = []
        for prop in properties:
            property_rooms = [room for room in rooms if room.get('property_id') == prop['id']]
            result.append({**prop, **compute_occupancy(property_rooms)})

        result.sort(key=lambda p: sort_key(p.get('created_at')), reverse=True)
        return result

    async def get_property(self, user_id: str, property_id: str) -> Dict[str, Any]:
        require_user(user_id)
        return await must_get_property(self.db, property_id=property_id, owner_id=user_id)

    async def update_property(self, user_id: str, property_id: str, update_data: dict) -> Dict[str, Any]:
        require_user(user_id)
        prop = await must_get_property(self.db, property_id=property_id, owner_id=user_id)

        update_data = {k: v for k, v in update_data.items() if k not in PROTECTED_FIELDS}
        update_data['updated_at'] = utc_now()

        success, error = await self.db.update_document(COLLECTIONS['properties'], property_id, update_data)
        if not success:
            raise Exception(f"Failed to update property: {error}")

        logger.info(f"Updated property {property_id}")
        return {**prop, **update_data}

    async def delete_property(self, user_id: str, property_id: str) -> None:
        """
        Delete a property and its rooms. Refused while any room is occupied;
        in that case nothing is deleted.
        """
        require_user(user_id)

        def _txn(txn):
            ensure_owner(txn_must_get(txn, COLLECTIONS['properties'], property_id, "Property"), user_id)
            rooms = read_property_rooms(txn, property_id)

            occupied = [room for room in rooms if room.get('status') == RoomStatus.OCCUPIED.value]
            if occupied:
                names = ", ".join(
                    f"Room {room.get('number')} ({(room.get('tenant') or {}).get('name') or 'Unknown Tenant'})"
                    for room in occupied
                )
                raise BusinessRuleError(
                    f"Cannot delete property. {len(occupied)} room(s) are currently occupied by: {names}. "
                    f"Please move out all tenants before deleting the property."
                )

            for room in rooms:
                txn.delete(COLLECTIONS['rooms'], room['id'])
            txn.delete(COLLECTIONS['properties'], property_id)
            return len(rooms)

        deleted_rooms = await self.db.run_transaction(_txn)
        logger.info(f"Deleted property {property_id} and {deleted_rooms} room(s)")

    async def update_property_occupancy(self, user_id: str, property_id: str) -> Dict[str, int]:
        """Owner-checked entry point for recomputing a property's occupancy"""
        require_user(user_id)
        await must_get_property(self.db, property_id=property_id, owner_id=user_id)
        return await room_service.update_property_occupancy_from_rooms(property_id)

    async def get_property_stats(self, user_id: str) -> Dict[str, Any]:
        properties = await self.get_user_properties(user_id)
        success, rooms, _ = await self.db.query_documents(
            COLLECTIONS['rooms'],
            [("owner_id", "==", user_id), ("status", "==", RoomStatus.OCCUPIED.value)]
        )
        total_rooms = sum(p['total_rooms'] for p in properties)
        total_occupied = sum(p['occupied'] for p in properties)
        return {
            "total_properties": len(properties),
            "total_rooms": total_rooms,
            "total_occupied": total_occupied,
            "total_vacant": total_rooms - total_occupied,
            "total_revenue": sum(float(room.get('rent') or 0) for room in rooms) if success else 0.0,
        }


property_service = PropertyService()
