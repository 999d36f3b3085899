from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional
from pydantic import BaseModel, Field
import logging

from ..core.exceptions import BoardingHubError
from ..services.tenant_service import tenant_service
from ..auth.dependencies import require_landlord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tenants", tags=["tenants"])


class AssignTenantRequest(BaseModel):
    room_id: str


class UpdateTenantStatusRequest(BaseModel):
    status: str = Field(..., description="registered, active, overdue, moving-out or checked-out")


class UpdateTenantBalanceRequest(BaseModel):
    balance: float


@router.get("/", response_model=dict)
async def get_tenants(
    search: Optional[str] = Query(None, description="Match name, email, phone or room number"),
    status: Optional[str] = Query("All", description="All, Active, Overdue, Moving Out, Registered, Checked Out"),
    current_user: dict = Depends(require_landlord)
):
    try:
        tenants = await tenant_service.get_all_registered_tenants()
        tenants = tenant_service.filter_tenants_by_status(tenant_service.search_tenants(tenants, search), status)
        return {"success": True, "tenants": tenants, "total_count": len(tenants)}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting tenants: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get tenants: {str(e)}")


@router.get("/statistics", response_model=dict)
async def get_tenant_statistics(current_user: dict = Depends(require_landlord)):
    try:
        stats = await tenant_service.get_tenant_statistics()
        return {"success": True, "statistics": stats}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting tenant statistics: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get tenant statistics: {str(e)}")


@router.get("/{tenant_id}", response_model=dict)
async def get_tenant(tenant_id: str, current_user: dict = Depends(require_landlord)):
    try:
        tenant = await tenant_service.get_tenant(tenant_id)
        return {"success": True, "tenant": tenant}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting tenant {tenant_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get tenant: {str(e)}")


@router.post("/{tenant_id}/assign", response_model=dict)
async def assign_tenant_to_room(
    tenant_id: str,
    request: AssignTenantRequest,
    current_user: dict = Depends(require_landlord)
):
    """Move the tenant into one of the landlord's rooms"""
    try:
        result = await tenant_service.assign_tenant_to_room(current_user.get('uid'), tenant_id, request.room_id)
        return {"success": True, **result}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error assigning tenant {tenant_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to assign tenant: {str(e)}")


@router.patch("/{tenant_id}/status", response_model=dict)
async def update_tenant_status(
    tenant_id: str,
    request: UpdateTenantStatusRequest,
    current_user: dict = Depends(require_landlord)
):
    try:
        await tenant_service.update_tenant_status(tenant_id, request.status)
        return {"success": True, "message": f"Tenant status updated to {request.status}"}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error updating tenant status {tenant_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to update tenant status: {str(e)}")


@router.patch("/{tenant_id}/balance", response_model=dict)
async def update_tenant_balance(
    tenant_id: str,
    request: UpdateTenantBalanceRequest,
    current_user: dict = Depends(require_landlord)
):
    try:
        await tenant_service.update_tenant_balance(tenant_id, request.balance)
        return {"success": True, "message": "Tenant balance updated"}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error updating tenant balance {tenant_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to update tenant balance: {str(e)}")


@router.post("/{tenant_id}/checkout", response_model=dict)
async def check_out_tenant(tenant_id: str, current_user: dict = Depends(require_landlord)):
    """Check a tenant out and free their room"""
    try:
        result = await tenant_service.check_out_tenant(current_user.get('uid'), tenant_id)
        return {"success": True, **result, "message": "Tenant checked out successfully"}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error checking out tenant {tenant_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to check out tenant: {str(e)}")
