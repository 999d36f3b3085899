from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional
from pydantic import BaseModel, Field
import logging

from ..core.exceptions import BoardingHubError
from ..services.payment_proof_service import payment_proof_service
from ..auth.dependencies import get_current_user, require_landlord, require_tenant

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment-proofs", tags=["payment-proofs"])


class SubmitPaymentProofRequest(BaseModel):
    bill_id: str
    image_uri: str = Field(..., min_length=1, description="URI of the uploaded proof image")
    note: str = ""


class ReviewPaymentProofRequest(BaseModel):
    action: str = Field(..., description="approve or reject")
    note: str = ""


@router.post("/", response_model=dict)
async def submit_payment_proof(request: SubmitPaymentProofRequest, current_user: dict = Depends(require_tenant)):
    """Submit proof of payment for one of the tenant's bills"""
    try:
        proof_id = await payment_proof_service.submit_payment_proof(
            current_user.get('uid'), request.bill_id, request.image_uri, request.note
        )
        return {"success": True, "proof_id": proof_id, "message": "Payment proof submitted for review"}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error submitting payment proof: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to submit payment proof: {str(e)}")


@router.get("/", response_model=dict)
async def get_landlord_payment_proofs(
    status: Optional[str] = Query(None, description="Filter by proof status"),
    current_user: dict = Depends(require_landlord)
):
    try:
        proofs = await payment_proof_service.get_landlord_payment_proofs(current_user.get('uid'), status)
        return {"success": True, "proofs": proofs, "total_count": len(proofs)}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting payment proofs: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get payment proofs: {str(e)}")


@router.get("/my", response_model=dict)
async def get_my_payment_proofs(current_user: dict = Depends(require_tenant)):
    try:
        proofs = await payment_proof_service.get_tenant_payment_proofs(current_user.get('uid'))
        return {"success": True, "proofs": proofs, "total_count": len(proofs)}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting tenant payment proofs: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get payment proofs: {str(e)}")


@router.post("/maintenance/fix-tenant-info", response_model=dict)
async def fix_payment_proof_tenant_info(current_user: dict = Depends(require_landlord)):
    try:
        count = await payment_proof_service.fix_payment_proof_tenant_info(current_user.get('uid'))
        return {"success": True, "updated_count": count}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error fixing payment proof tenant info: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to fix payment proofs: {str(e)}")


@router.get("/{proof_id}", response_model=dict)
async def get_payment_proof(proof_id: str, current_user: dict = Depends(get_current_user)):
    try:
        proof = await payment_proof_service.get_payment_proof(current_user.get('uid'), proof_id)
        return {"success": True, "proof": proof}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting payment proof {proof_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get payment proof: {str(e)}")


@router.post("/{proof_id}/review", response_model=dict)
async def review_payment_proof(
    proof_id: str,
    request: ReviewPaymentProofRequest,
    current_user: dict = Depends(require_landlord)
):
    """Approve or reject a pending payment proof"""
    try:
        result = await payment_proof_service.review_payment_proof(
            current_user.get('uid'), proof_id, request.action, request.note
        )
        return {"success": True, **result, "message": f"Payment proof {result['status']}"}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error reviewing payment proof {proof_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to review payment proof: {str(e)}")
