from fastapi import APIRouter, HTTPException, Depends
from typing import List, Optional
from pydantic import BaseModel, Field
import logging

from ..core.exceptions import BoardingHubError
from ..services.property_service import property_service
from ..auth.dependencies import require_landlord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/properties", tags=["properties"])


class CreatePropertyRequest(BaseModel):
    name: str = Field(..., min_length=1)
    address: Optional[str] = None
    description: Optional[str] = None
    amenities: List[str] = []
    photos: List[str] = []
    rules: Optional[List[str]] = None
    contact_number: Optional[str] = None


class UpdatePropertyRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = None
    description: Optional[str] = None
    amenities: Optional[List[str]] = None
    photos: Optional[List[str]] = None
    rules: Optional[List[str]] = None
    contact_number: Optional[str] = None


@router.post("/", response_model=dict)
async def add_property(request: CreatePropertyRequest, current_user: dict = Depends(require_landlord)):
    try:
        property_id = await property_service.add_property(
            current_user.get('uid'), request.model_dump(), owner_email=current_user.get('email')
        )
        return {"success": True, "property_id": property_id, "message": "Property added successfully"}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error adding property: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to add property: {str(e)}")


@router.get("/", response_model=dict)
async def get_user_properties(current_user: dict = Depends(require_landlord)):
    try:
        properties = await property_service.get_user_properties(current_user.get('uid'))
        return {"success": True, "properties": properties, "total_count": len(properties)}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting properties: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get properties: {str(e)}")


@router.get("/statistics", response_model=dict)
async def get_property_stats(current_user: dict = Depends(require_landlord)):
    try:
        stats = await property_service.get_property_stats(current_user.get('uid'))
        return {"success": True, "statistics": stats}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting property statistics: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get property statistics: {str(e)}")


@router.get("/{property_id}", response_model=dict)
async def get_property(property_id: str, current_user: dict = Depends(require_landlord)):
    try:
        prop = await property_service.get_property(current_user.get('uid'), property_id)
        return {"success": True, "property": prop}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting property {property_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get property: {str(e)}")


@router.put("/{property_id}", response_model=dict)
async def update_property(
    property_id: str,
    request: UpdatePropertyRequest,
    current_user: dict = Depends(require_landlord)
):
    try:
        update_data = request.model_dump(exclude_unset=True)
        if not update_data:
            raise HTTPException(status_code=400, detail="No updates provided")

        prop = await property_service.update_property(current_user.get('uid'), property_id, update_data)
        return {"success": True, "property": prop, "message": "Property updated successfully"}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error updating property {property_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to update property: {str(e)}")


@router.delete("/{property_id}", response_model=dict)
async def delete_property(property_id: str, current_user: dict = Depends(require_landlord)):
    try:
        await property_service.delete_property(current_user.get('uid'), property_id)
        return {"success": True, "message": "Property deleted successfully", "property_id": property_id}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error deleting property {property_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to delete property: {str(e)}")


@router.post("/{property_id}/occupancy", response_model=dict)
async def update_property_occupancy(property_id: str, current_user: dict = Depends(require_landlord)):
    """Recompute the cached occupancy counts from the property's rooms"""
    try:
        occupancy = await property_service.update_property_occupancy(current_user.get('uid'), property_id)
        return {"success": True, "occupancy": occupancy}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error updating occupancy for {property_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to update occupancy: {str(e)}")
