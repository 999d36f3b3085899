from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import HTMLResponse
import logging

from ..core.exceptions import BoardingHubError
from ..services.payment_history_service import payment_history_service
from ..services.receipt_service import receipt_service
from ..auth.dependencies import get_current_user, require_tenant

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment-history", tags=["payment-history"])


@router.get("/my", response_model=dict)
async def get_my_payment_history(current_user: dict = Depends(require_tenant)):
    try:
        payments = await payment_history_service.get_tenant_payment_history(current_user.get('uid'))
        return {
            "success": True,
            "payments": payments,
            "total_count": len(payments),
            "total_paid": sum(float(p.get('amount') or 0) for p in payments),
        }
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting payment history: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get payment history: {str(e)}")


@router.get("/{history_id}", response_model=dict)
async def get_payment_record(history_id: str, current_user: dict = Depends(get_current_user)):
    try:
        record = await payment_history_service.get_payment_record(current_user.get('uid'), history_id)
        return {"success": True, "payment": record}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting payment record {history_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get payment record: {str(e)}")


@router.get("/{history_id}/receipt", response_class=HTMLResponse)
async def get_receipt(history_id: str, current_user: dict = Depends(get_current_user)):
    """Printable HTML receipt for a payment"""
    try:
        return HTMLResponse(await receipt_service.get_receipt_html(current_user.get('uid'), history_id))
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error rendering receipt for {history_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to generate receipt: {str(e)}")
