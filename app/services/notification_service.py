from typing import Any, Dict, List, Optional
import asyncio
import logging

from ..core.exceptions import BoardingHubError, BusinessRuleError, NotFoundError, PersistenceError
from ..core.timeutils import sort_key, utc_now
from ..database.collections import COLLECTIONS
from ..database.database_service import database_service
from ..models.database_models import (
    ApplicationData, ApplicationStatus, Notification, NotificationType, to_document,
)
from .counter_service import increment_counter
from .ownership import ensure_owner, must_get_document, require_user, txn_must_get
from .room_service import (
    ensure_room_assignable, ensure_tenant_assignable, read_property_rooms, room_service, stage_room_assignment,
)

logger = logging.getLogger(__name__)

NOTIFICATION_COUNTER = "notification"


def notification_document_id(number: int, now=None) -> str:
    """notif_{n}_{epoch millis}"""
    now = now or utc_now()
    return f"notif_{number}_{int(now.timestamp() * 1000)}"


class NotificationService:
    def __init__(self):
        self.db = database_service

    async def create_notification(
        self,
        recipient_id: str,
        title: str,
        message: str,
        notification_type: str = NotificationType.SYSTEM.value,
        context_type: Optional[str] = None,
        context_id: Optional[str] = None,
        **extra: Any
    ) -> str:
        """Create an in-app notification and return its id"""
        now = utc_now()
        notification = Notification(
            recipient_id=recipient_id,
            type=notification_type,
            title=title,
            message=message,
            context_type=context_type,
            context_id=context_id,
            created_at=now,
            **extra
        )
        data = to_document(notification)

        def _txn(txn):
            number = increment_counter(txn, NOTIFICATION_COUNTER)
            return txn.create(COLLECTIONS['notifications'], data, document_id=notification_document_id(number, now))

        notification_id = await self.db.run_transaction(_txn)
        logger.info(f"Created {data['type']} notification {notification_id} for {recipient_id}")
        return notification_id

    async def notify(self, recipient_id: Optional[str], title: str, message: str, **kwargs) -> Optional[str]:
        """Best-effort notification; failures are logged and never propagate"""
        if not recipient_id:
            return None
        try:
            return await self.create_notification(recipient_id, title, message, **kwargs)
        except Exception as e:
            logger.error(f"Failed to send notification to {recipient_id}: {str(e)}")
            return None

    # ───────────────────────── Room applications ─────────────────────────

    async def create_application_notification(self, landlord_id: str, application: Dict[str, Any]) -> str:
        application_data = ApplicationData(**{
            **application,
            "application_date": application.get('application_date') or utc_now(),
            "status": ApplicationStatus.PENDING,
        })
        tenant = application_data.tenant
        room = application_data.room
        applicant = tenant.full_name or f"{tenant.first_name or ''} {tenant.last_name or ''}".strip() or "New applicant"

        return await self.create_notification(
            landlord_id,
            "New Room Application",
            f"{applicant} applied for {room.title or 'a room'}",
            notification_type=NotificationType.APPLICATION.value,
            context_type="application",
            context_id=room.id,
            tenant_name=applicant,
            property_name=room.property_name,
            room_number=room.room_number,
            application_data=application_data,
        )

    async def submit_room_application(self, tenant_id: str, room_id: str, tenant_info: dict) -> Dict[str, Any]:
        """A tenant applies for a vacant room; the landlord receives an application notification"""
        require_user(tenant_id)
        listing = await room_service.get_room_details_for_tenant(room_id)
        if not listing['available']:
            raise BusinessRuleError(f"Room {listing.get('number')} is not available")

        application = {
            "tenant": {**tenant_info, "id": tenant_id},
            "room": {
                "id": listing['id'],
                "property_id": listing['property_id'],
                "property_name": listing['property']['name'],
                "title": listing['title'],
                "room_number": listing['number'],
                "price": listing['price'],
                "description": listing['description'],
                "amenities": listing['amenities'],
                "images": listing['images'],
            },
        }
        notification_id = await self.create_application_notification(listing['owner_id'], application)
        return {
            "success": True,
            "notification_id": notification_id,
            "message": "Application submitted successfully! The landlord will be notified.",
        }

    async def update_application_status(self, user_id: str, notification_id: str, status: str) -> Dict[str, Any]:
        """
        Approve or reject a room application.

        Approval occupies the room, assigns the tenant, recomputes the
        property's occupancy and records the decision on the notification,
        all in one transaction. Rejection only records the decision.
        """
        require_user(user_id)
        try:
            status = ApplicationStatus(status)
        except ValueError:
            raise BusinessRuleError(f"Invalid application status: {status}")
        if status == ApplicationStatus.PENDING:
            raise BusinessRuleError("Application status must be approved or rejected")

        notification = await self.get_notification(user_id, notification_id)
        application = notification.get('application_data') or {}
        if not (application.get('room') or {}).get('id') or not (application.get('tenant') or {}).get('id'):
            raise NotFoundError("Notification or application data not found")
        self._ensure_pending(application)

        if status == ApplicationStatus.REJECTED:
            now = utc_now()
            success, error = await self.db.update_document(COLLECTIONS['notifications'], notification_id, {
                "application_data": {**application, "status": status.value, "status_updated_at": now},
                "is_read": True,
            })
            if not success:
                raise PersistenceError(f"Failed to update application: {error}")

            await self.notify(
                application['tenant']['id'], "Application Update",
                f"Your application for {application['room'].get('title') or 'the room'} was not approved",
                notification_type=NotificationType.APPLICATION.value,
                context_type="application", context_id=notification_id,
            )
            return {
                "success": True,
                "status": status.value,
                "room_assigned": False,
                "message": f"Application {status.value} successfully",
            }

        try:
            room = await self.db.run_transaction(
                lambda txn: self._approve_in_transaction(txn, user_id, notification_id)
            )
        except BoardingHubError as e:
            logger.error(f"Error approving application {notification_id}: {e.message}")
            raise type(e)(f"Failed to assign tenant to room: {e.message}")

        logger.info(f"Application {notification_id} approved; tenant assigned to room {room['number']}")
        await self.notify(
            application['tenant']['id'], "Application Approved",
            f"Your application for room {room['number']} has been approved",
            notification_type=NotificationType.APPLICATION.value,
            context_type="application", context_id=notification_id,
        )
        return {
            "success": True,
            "status": status.value,
            "room_assigned": True,
            "message": f"Application approved and tenant assigned to {room['number']}",
        }

    @staticmethod
    def _ensure_pending(application: Dict[str, Any]) -> None:
        current = application.get('status') or ApplicationStatus.PENDING.value
        if current != ApplicationStatus.PENDING.value:
            raise BusinessRuleError(f"Application has already been {current}")

    @classmethod
    def _approve_in_transaction(cls, txn, user_id: str, notification_id: str) -> Dict[str, Any]:
        notification = ensure_owner(
            txn_must_get(txn, COLLECTIONS['notifications'], notification_id, "Notification"),
            user_id, owner_field="recipient_id",
        )
        application = notification.get('application_data') or {}
        cls._ensure_pending(application)
        tenant_info = application['tenant']
        tenant_id = tenant_info['id']

        room = ensure_owner(txn_must_get(txn, COLLECTIONS['rooms'], application['room']['id'], "Room"), user_id)
        ensure_room_assignable(room, tenant_id)
        tenant = txn_must_get(txn, COLLECTIONS['users'], tenant_id, "Tenant")
        ensure_tenant_assignable(tenant, room)
        rooms = read_property_rooms(txn, room['property_id'])

        assigned = stage_room_assignment(txn, room, tenant_id, tenant, rooms, tenant_info)
        txn.update(COLLECTIONS['notifications'], notification_id, {
            "application_data": {
                **application,
                "status": ApplicationStatus.APPROVED.value,
                "status_updated_at": utc_now(),
            },
            "is_read": True,
        })
        return assigned

    # ───────────────────────── Inbox ─────────────────────────

    async def get_landlord_notifications(self, user_id: str) -> List[Dict[str, Any]]:
        """Notifications addressed to the user, newest first"""
        require_user(user_id)
        success, notifications, error = await self.db.query_documents(
            COLLECTIONS['notifications'], [("recipient_id", "==", user_id)]
        )
        if not success:
            raise Exception(f"Failed to get notifications: {error}")
        return sorted(notifications, key=lambda n: sort_key(n.get('created_at')), reverse=True)

    async def get_notification(self, user_id: str, notification_id: str) -> Dict[str, Any]:
        require_user(user_id)
        notification = await must_get_document(self.db, COLLECTIONS['notifications'], notification_id, "Notification")
        return ensure_owner(notification, user_id, owner_field="recipient_id")

    async def mark_notification_as_read(self, user_id: str, notification_id: str) -> None:
        await self.get_notification(user_id, notification_id)
        success, error = await self.db.update_document(
            COLLECTIONS['notifications'], notification_id, {"is_read": True}
        )
        if not success:
            raise PersistenceError(f"Failed to mark notification as read: {error}")

    async def delete_notification(self, user_id: str, notification_id: str) -> None:
        await self.get_notification(user_id, notification_id)
        success, error = await self.db.delete_document(COLLECTIONS['notifications'], notification_id)
        if not success:
            raise PersistenceError(f"Failed to delete notification: {error}")
        logger.info(f"Deleted notification {notification_id}")

    async def get_unread_notifications_count(self, user_id: str) -> int:
        require_user(user_id)
        success, notifications, error = await self.db.query_documents(
            COLLECTIONS['notifications'],
            [("recipient_id", "==", user_id), ("is_read", "==", False)]
        )
        if not success:
            raise PersistenceError(f"Failed to count unread notifications: {error}")
        return len(notifications)

    async def clear_all_notifications(self, user_id: str) -> int:
        notifications = await self.get_landlord_notifications(user_id)
        results = await asyncio.gather(*[
            self.db.delete_document(COLLECTIONS['notifications'], n['id']) for n in notifications
        ])
        failed = [error for success, error in results if not success]
        if failed:
            raise PersistenceError(f"Failed to clear {len(failed)} notification(s): {failed[0]}")
        logger.info(f"Cleared {len(notifications)} notification(s) for {user_id}")
        return len(notifications)


notification_service = NotificationService()
