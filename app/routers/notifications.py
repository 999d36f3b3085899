from fastapi import APIRouter, HTTPException, Depends
from typing import Optional
from pydantic import BaseModel, Field
import logging

from ..core.exceptions import BoardingHubError
from ..services.notification_service import notification_service
from ..auth.dependencies import get_current_user, require_landlord, require_tenant

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


class RoomApplicationRequest(BaseModel):
    room_id: str
    full_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    occupation: Optional[str] = None
    company: Optional[str] = None
    id_type: Optional[str] = None
    id_number: Optional[str] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_relation: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None


class ApplicationStatusRequest(BaseModel):
    status: str = Field(..., description="approved or rejected")


@router.post("/applications", response_model=dict)
async def submit_room_application(request: RoomApplicationRequest, current_user: dict = Depends(require_tenant)):
    """Apply for a vacant room; the landlord is notified"""
    try:
        tenant_info = request.model_dump(exclude={"room_id"})
        if not tenant_info.get('email'):
            tenant_info['email'] = current_user.get('email')
        return await notification_service.submit_room_application(
            current_user.get('uid'), request.room_id, tenant_info
        )
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error submitting room application: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to submit application: {str(e)}")


@router.get("/", response_model=dict)
async def get_notifications(current_user: dict = Depends(get_current_user)):
    try:
        notifications = await notification_service.get_landlord_notifications(current_user.get('uid'))
        return {"success": True, "notifications": notifications, "total_count": len(notifications)}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting notifications: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get notifications: {str(e)}")


@router.get("/unread-count", response_model=dict)
async def get_unread_count(current_user: dict = Depends(get_current_user)):
    try:
        count = await notification_service.get_unread_notifications_count(current_user.get('uid'))
        return {"success": True, "unread_count": count}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting unread count: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get unread count: {str(e)}")


@router.delete("/", response_model=dict)
async def clear_all_notifications(current_user: dict = Depends(get_current_user)):
    try:
        count = await notification_service.clear_all_notifications(current_user.get('uid'))
        return {"success": True, "deleted_count": count}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error clearing notifications: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to clear notifications: {str(e)}")


@router.get("/{notification_id}", response_model=dict)
async def get_notification(notification_id: str, current_user: dict = Depends(get_current_user)):
    try:
        notification = await notification_service.get_notification(current_user.get('uid'), notification_id)
        return {"success": True, "notification": notification}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error getting notification {notification_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to get notification: {str(e)}")


@router.post("/{notification_id}/read", response_model=dict)
async def mark_notification_as_read(notification_id: str, current_user: dict = Depends(get_current_user)):
    try:
        await notification_service.mark_notification_as_read(current_user.get('uid'), notification_id)
        return {"success": True, "message": "Notification marked as read"}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error marking notification {notification_id} as read: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to mark notification as read: {str(e)}")


@router.post("/{notification_id}/application-status", response_model=dict)
async def update_application_status(
    notification_id: str,
    request: ApplicationStatusRequest,
    current_user: dict = Depends(require_landlord)
):
    """Approve (assigning the tenant to the room) or reject a room application"""
    try:
        return await notification_service.update_application_status(
            current_user.get('uid'), notification_id, request.status
        )
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error updating application {notification_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to update application: {str(e)}")


@router.delete("/{notification_id}", response_model=dict)
async def delete_notification(notification_id: str, current_user: dict = Depends(get_current_user)):
    try:
        await notification_service.delete_notification(current_user.get('uid'), notification_id)
        return {"success": True, "message": "Notification deleted"}
    except (HTTPException, BoardingHubError):
        raise
    except Exception as e:
        logger.error(f"Error deleting notification {notification_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to delete notification: {str(e)}")
