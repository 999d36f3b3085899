# app/services/ownership.py
from typing import Any, Dict, Optional

from ..core.exceptions import AccessDeniedError, NotAuthenticatedError, NotFoundError
from ..database.collections import COLLECTIONS


def require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise NotAuthenticatedError()
    return user_id


def ensure_owner(document: Dict[str, Any], user_id: str, owner_field: str = "owner_id") -> Dict[str, Any]:
    if document.get(owner_field) != user_id:
        raise AccessDeniedError()
    return document


async def must_get_document(db, collection: str, document_id: str, label: str) -> Dict[str, Any]:
    success, document, _ = await db.get_document(collection, document_id)
    if not success or not document:
        raise NotFoundError(f"{label} not found")
    return document


async def must_get_property(db, *, property_id: str, owner_id: str) -> Dict[str, Any]:
    prop = await must_get_document(db, COLLECTIONS['properties'], property_id, "Property")
    return ensure_owner(prop, owner_id)


async def must_get_room(db, *, room_id: str, owner_id: str) -> Dict[str, Any]:
    room = await must_get_document(db, COLLECTIONS['rooms'], room_id, "Room")
    return ensure_owner(room, owner_id)


def txn_must_get(txn, collection: str, document_id: str, label: str) -> Dict[str, Any]:
    document = txn.get(collection, document_id)
    if not document:
        raise NotFoundError(f"{label} not found")
    return document
