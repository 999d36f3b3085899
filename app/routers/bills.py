from fastapi import APIRouter, HTTPException, Depends, Query
from typing import List, Optional
from pydantic import BaseModel, Field
import logging

from ..core.exceptions import BoardingHubError
from ..services.billing_service import billing_service, generate_billing_periods
from ..auth.dependencies import get_current_user, require_landlord, require_tenant

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bills", tags=["bills"])


# Request Models
class BillTenant(BaseModel):
    id: str = Field(..., description="Tenant user ID")
    name: Optional[str] = None
    email: Optional[str] = None
    room_id: Optional[str] = None
    property_id: Optional[str] = None
    room_number: Optional[str] = None


class BillingPeriodRequest(BaseModel):
    from_date: str = Field(..., description="First day of the period (YYYY-MM-DD)")
    to_date: str = Field(..., description="Last day of the period (YYYY-MM-DD)")
    month: str = Field(..., description="Month name, e.g. January")
    year: int


class GenerateBillsRequest(BaseModel):
    tenants: List[BillTenant] = Field(..., min_length=1)
    billing_period: BillingPeriodRequest


class PreviewBillsRequest(BaseModel):
    tenants: List[BillTenant] = Field(..., min_length=1)


class UpdateBillStatusRequest(BaseModel):
    status: str = Field(..., description="pending, proof_submitted, paid or overdue")


@router.get("/periods", response_model=dict)
async def get_billing_periods(
    count: int = Query(12, ge=1, le=24),
    current_user: dict = Depends(require_landlord)
):
    """Upcoming monthly billing periods, starting with the current month"""
    return {"success": True, "periods": generate_billing_periods(count)}


@router.post("/preview", response_model=dict)
async def preview_bills(request: PreviewBillsRequest, current_user: dict = Depends(require_landlord)):
    try:
        previews = await billing_service.preview_bills(
            current_user.get('uid'), [tenant.model_dump() for tenant in request.tenants]
        )
        return {"success": True, "previews": previews, "total": sum(p['amount'] for p in previews)}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error previewing bills: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to preview bills: {str(e)}")


@router.post("/generate", response_model=dict)
async def generate_bills(request: GenerateBillsRequest, current_user: dict = Depends(require_landlord)):
    """Generate one bill per tenant for the billing period"""
    try:
        result = await billing_service.generate_bills(
            current_user.get('uid'),
            [tenant.model_dump() for tenant in request.tenants],
            request.billing_period.model_dump(),
        )
        return {
            "success": True,
            **result,
            "message": f"Generated {len(result['bill_ids'])} bill(s)",
        }
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error generating bills: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to generate bills: {str(e)}")


@router.get("/", response_model=dict)
async def get_landlord_bills(current_user: dict = Depends(require_landlord)):
    try:
        bills = await billing_service.get_landlord_bills(current_user.get('uid'))
        return {"success": True, "bills": bills, "total_count": len(bills)}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting landlord bills: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get bills: {str(e)}")


@router.get("/statistics", response_model=dict)
async def get_billing_statistics(current_user: dict = Depends(require_landlord)):
    try:
        stats = await billing_service.get_billing_statistics(current_user.get('uid'))
        return {"success": True, "statistics": stats}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting billing statistics: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get billing statistics: {str(e)}")


@router.get("/my", response_model=dict)
async def get_my_bills(current_user: dict = Depends(require_tenant)):
    try:
        bills = await billing_service.get_tenant_bills(current_user.get('uid'))
        return {"success": True, "bills": bills, "total_count": len(bills)}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting tenant bills: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get bills: {str(e)}")


@router.get("/tenant/{tenant_id}", response_model=dict)
async def get_tenant_bills(tenant_id: str, current_user: dict = Depends(require_landlord)):
    """Bills the landlord issued to one tenant"""
    try:
        bills = await billing_service.get_tenant_bills(tenant_id, landlord_id=current_user.get('uid'))
        return {"success": True, "bills": bills, "total_count": len(bills)}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting bills for tenant {tenant_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get bills: {str(e)}")


@router.post("/maintenance/mark-overdue", response_model=dict)
async def mark_overdue_bills(current_user: dict = Depends(require_landlord)):
    try:
        count = await billing_service.mark_overdue_bills(current_user.get('uid'))
        return {"success": True, "updated_count": count}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error marking overdue bills: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to mark overdue bills: {str(e)}")


@router.post("/maintenance/delete-invalid", response_model=dict)
async def delete_invalid_bills(current_user: dict = Depends(require_landlord)):
    try:
        count = await billing_service.delete_invalid_bills(current_user.get('uid'))
        return {"success": True, "deleted_count": count}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error deleting invalid bills: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to delete invalid bills: {str(e)}")


@router.post("/maintenance/fix-property-names", response_model=dict)
async def fix_bill_property_names(current_user: dict = Depends(require_landlord)):
    try:
        count = await billing_service.fix_bill_property_names(current_user.get('uid'))
        return {"success": True, "updated_count": count}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error fixing bill property names: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to fix bill property names: {str(e)}")


@router.get("/{bill_id}", response_model=dict)
async def get_bill(bill_id: str, current_user: dict = Depends(get_current_user)):
    try:
        bill = await billing_service.get_bill(current_user.get('uid'), bill_id)
        return {"success": True, "bill": bill}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting bill {bill_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get bill: {str(e)}")


@router.patch("/{bill_id}/status", response_model=dict)
async def update_bill_status(
    bill_id: str,
    request: UpdateBillStatusRequest,
    current_user: dict = Depends(require_landlord)
):
    try:
        bill = await billing_service.update_bill_status(current_user.get('uid'), bill_id, request.status)
        return {"success": True, "bill": bill, "message": f"Bill marked as {bill['status']}"}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error updating bill {bill_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to update bill status: {str(e)}")


@router.delete("/{bill_id}", response_model=dict)
async def delete_bill(bill_id: str, current_user: dict = Depends(require_landlord)):
    try:
        await billing_service.delete_bill(current_user.get('uid'), bill_id)
        return {"success": True, "message": "Bill deleted successfully", "bill_id": bill_id}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error deleting bill {bill_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to delete bill: {str(e)}")
