from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Dict, List, Optional
from pydantic import BaseModel, Field
import logging

from ..core.exceptions import BoardingHubError
from ..services.room_service import room_service
from ..auth.dependencies import get_current_user, require_landlord

logger = logging.getLogger(__name__)

router = APIRouter(tags=["rooms"])


class UtilityRequest(BaseModel):
    type: str = Field("free", description="free, flat or per-tenant")
    amount: Optional[float] = None
    rate: Optional[float] = None


class CreateRoomRequest(BaseModel):
    number: str = Field(..., min_length=1)
    type: Optional[str] = None
    rent: float = Field(..., ge=0)
    size: Optional[str] = None
    notes: Optional[str] = None
    photos: List[str] = []
    utilities: Dict[str, UtilityRequest] = {}
    status: str = "vacant"
    meter_ids: Dict[str, str] = {}


class UpdateRoomRequest(BaseModel):
    number: Optional[str] = Field(None, min_length=1)
    type: Optional[str] = None
    rent: Optional[float] = Field(None, ge=0)
    size: Optional[str] = None
    notes: Optional[str] = None
    photos: Optional[List[str]] = None
    utilities: Optional[Dict[str, UtilityRequest]] = None
    status: Optional[str] = None
    meter_ids: Optional[Dict[str, str]] = None


class AssignRoomTenantRequest(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


@router.post("/properties/{property_id}/rooms", response_model=dict)
async def add_room(property_id: str, request: CreateRoomRequest, current_user: dict = Depends(require_landlord)):
    try:
        room_id = await room_service.add_room(current_user.get('uid'), property_id, request.model_dump())
        return {"success": True, "room_id": room_id, "message": "Room added successfully"}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error adding room to {property_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to add room: {str(e)}")


@router.get("/properties/{property_id}/rooms", response_model=dict)
async def get_property_rooms(property_id: str, current_user: dict = Depends(require_landlord)):
    try:
        rooms = await room_service.get_property_rooms(current_user.get('uid'), property_id)
        return {"success": True, "rooms": rooms, "total_count": len(rooms)}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting rooms for {property_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get rooms: {str(e)}")


@router.get("/properties/{property_id}/rooms/statistics", response_model=dict)
async def get_room_stats(property_id: str, current_user: dict = Depends(require_landlord)):
    try:
        stats = await room_service.get_room_stats(current_user.get('uid'), property_id)
        return {"success": True, "statistics": stats}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting room statistics for {property_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get room statistics: {str(e)}")


@router.get("/rooms/available", response_model=dict)
async def get_available_rooms(
    price_range: Optional[str] = Query(None, description="under-4000, 4000-6000, 6000-8000, above-8000"),
    room_type: Optional[str] = Query(None),
    search_query: Optional[str] = Query(None),
    amenities: Optional[List[str]] = Query(None),
    current_user: dict = Depends(get_current_user)
):
    """Vacant rooms open for applications"""
    try:
        rooms = await room_service.get_available_rooms({
            "price_range": price_range,
            "room_type": room_type,
            "search_query": search_query,
            "amenities": amenities or [],
        })
        return {"success": True, "rooms": rooms, "total_count": len(rooms)}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting available rooms: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get available rooms: {str(e)}")


@router.get("/rooms/{room_id}/details", response_model=dict)
async def get_room_details(room_id: str, current_user: dict = Depends(get_current_user)):
    try:
        room = await room_service.get_room_details_for_tenant(room_id)
        return {"success": True, "room": room}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting room details {room_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get room details: {str(e)}")


@router.get("/rooms/{room_id}", response_model=dict)
async def get_room(room_id: str, current_user: dict = Depends(require_landlord)):
    try:
        room = await room_service.get_room(current_user.get('uid'), room_id)
        return {"success": True, "room": room}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting room {room_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get room: {str(e)}")


@router.put("/rooms/{room_id}", response_model=dict)
async def update_room(room_id: str, request: UpdateRoomRequest, current_user: dict = Depends(require_landlord)):
    try:
        update_data = request.model_dump(exclude_unset=True)
        if not update_data:
            raise HTTPException(status_code=400, detail="No updates provided")

        room = await room_service.update_room(current_user.get('uid'), room_id, update_data)
        return {"success": True, "room": room, "message": "Room updated successfully"}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error updating room {room_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to update room: {str(e)}")


@router.delete("/rooms/{room_id}", response_model=dict)
async def delete_room(room_id: str, current_user: dict = Depends(require_landlord)):
    try:
        await room_service.delete_room(current_user.get('uid'), room_id)
        return {"success": True, "message": "Room deleted successfully", "room_id": room_id}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error deleting room {room_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to delete room: {str(e)}")


@router.post("/rooms/{room_id}/tenant", response_model=dict)
async def assign_tenant_to_room(
    room_id: str,
    request: AssignRoomTenantRequest,
    current_user: dict = Depends(require_landlord)
):
    try:
        room = await room_service.assign_tenant_to_room(current_user.get('uid'), room_id, request.model_dump())
        return {"success": True, "room": room}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error assigning tenant to room {room_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to assign tenant: {str(e)}")


@router.delete("/rooms/{room_id}/tenant", response_model=dict)
async def remove_tenant_from_room(room_id: str, current_user: dict = Depends(require_landlord)):
    try:
        room = await room_service.remove_tenant_from_room(current_user.get('uid'), room_id)
        return {"success": True, "room": room}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error removing tenant from room {room_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to remove tenant: {str(e)}")
