from typing import Any, Callable, Dict, List, Optional, Tuple
import logging
import uuid

from firebase_admin import firestore
from google.cloud.firestore_v1 import FieldFilter

from ..core.exceptions import BoardingHubError, PersistenceError
from ..core.firebase_init import initialize_firebase, is_firebase_available
from ..core.timeutils import normalize_timestamps
from .collections import COLLECTION_SCHEMAS

logger = logging.getLogger(__name__)

Filters = List[Tuple[str, str, Any]]


def _snapshot_to_dict(snapshot) -> Optional[Dict[str, Any]]:
    if snapshot is None or not snapshot.exists:
        return None
    data = normalize_timestamps(snapshot.to_dict() or {})
    data['id'] = snapshot.id
    data['_doc_id'] = snapshot.id
    return data


def _strip_meta(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if k not in ('id', '_doc_id')}


def _apply_filters(query, filters: Optional[Filters]):
    for field, op, value in filters or []:
        query = query.where(filter=FieldFilter(field, op, value))
    return query


def validate_document(collection: str, data: Dict[str, Any]) -> Optional[str]:
    """Return an error message when a required field is missing, else None"""
    schema = COLLECTION_SCHEMAS.get(collection)
    if not schema:
        return None
    missing = [field for field in schema['required'] if data.get(field) is None]
    if missing:
        return f"Missing required fields for {collection}: {', '.join(missing)}"
    return None


class FirestoreTransaction:
    """
    Collection-level view over a Firestore transaction.

    Firestore requires every read to happen before the first write, so
    callers gather their documents first and then stage writes.
    """

    def __init__(self, client, transaction):
        self._client = client
        self._transaction = transaction

    def get(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        ref = self._client.collection(collection).document(document_id)
        return _snapshot_to_dict(ref.get(transaction=self._transaction))

    def query(self, collection: str, filters: Optional[Filters] = None) -> List[Dict[str, Any]]:
        query = _apply_filters(self._client.collection(collection), filters)
        return [_snapshot_to_dict(snap) for snap in query.stream(transaction=self._transaction)]

    def create(self, collection: str, data: Dict[str, Any], document_id: Optional[str] = None) -> str:
        error = validate_document(collection, data)
        if error:
            raise PersistenceError(error)
        ref = self._client.collection(collection).document(document_id) if document_id \
            else self._client.collection(collection).document()
        self._transaction.set(ref, _strip_meta(data))
        return ref.id

    def set(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        ref = self._client.collection(collection).document(document_id)
        self._transaction.set(ref, _strip_meta(data))

    def update(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        ref = self._client.collection(collection).document(document_id)
        self._transaction.update(ref, _strip_meta(data))

    def delete(self, collection: str, document_id: str) -> None:
        ref = self._client.collection(collection).document(document_id)
        self._transaction.delete(ref)


class DatabaseService:
    """Thin async wrapper around the Firestore client returning (success, data, error) tuples"""

    def __init__(self):
        self._client = None

    def _raw_firestore(self):
        if self._client is None:
            if not is_firebase_available() and not initialize_firebase():
                raise PersistenceError("Firebase is not available")
            self._client = firestore.client()
        return self._client

    async def create_document(
        self,
        collection: str,
        data: Dict[str, Any],
        document_id: Optional[str] = None,
        validate: bool = True,
    ) -> Tuple[bool, Optional[str], Optional[str]]:
        try:
            if validate:
                error = validate_document(collection, data)
                if error:
                    return False, None, error

            document_id = document_id or uuid.uuid4().hex
            self._raw_firestore().collection(collection).document(document_id).set(_strip_meta(data))
            logger.debug(f"Created {collection}/{document_id}")
            return True, document_id, None
        except Exception as e:
            logger.error(f"Error creating document in {collection}: {str(e)}")
            return False, None, str(e)

    async def get_document(
        self, collection: str, document_id: str
    ) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        try:
            snapshot = self._raw_firestore().collection(collection).document(document_id).get()
            data = _snapshot_to_dict(snapshot)
            if data is None:
                return False, None, "Document not found"
            return True, data, None
        except Exception as e:
            logger.error(f"Error getting document {collection}/{document_id}: {str(e)}")
            return False, None, str(e)

    async def update_document(
        self,
        collection: str,
        document_id: str,
        data: Dict[str, Any],
        validate: bool = True,
    ) -> Tuple[bool, Optional[str]]:
        try:
            if validate:
                schema = COLLECTION_SCHEMAS.get(collection)
                if schema:
                    cleared = [f for f in schema['required'] if f in data and data[f] is None]
                    if cleared:
                        return False, f"Cannot clear required fields: {', '.join(cleared)}"

            self._raw_firestore().collection(collection).document(document_id).update(_strip_meta(data))
            return True, None
        except Exception as e:
            logger.error(f"Error updating document {collection}/{document_id}: {str(e)}")
            return False, str(e)

    async def delete_document(self, collection: str, document_id: str) -> Tuple[bool, Optional[str]]:
        try:
            self._raw_firestore().collection(collection).document(document_id).delete()
            return True, None
        except Exception as e:
            logger.error(f"Error deleting document {collection}/{document_id}: {str(e)}")
            return False, str(e)

    async def query_documents(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        limit: Optional[int] = None,
    ) -> Tuple[bool, List[Dict[str, Any]], Optional[str]]:
        try:
            query = _apply_filters(self._raw_firestore().collection(collection), filters)
            if limit:
                query = query.limit(limit)
            return True, [_snapshot_to_dict(snap) for snap in query.stream()], None
        except Exception as e:
            logger.error(f"Error querying {collection}: {str(e)}")
            return False, [], str(e)

    async def get_all_documents(self, collection: str) -> List[Dict[str, Any]]:
        success, documents, _ = await self.query_documents(collection)
        return documents if success else []

    async def run_transaction(self, callback: Callable[[FirestoreTransaction], Any]) -> Any:
        """
        Run ``callback`` inside a Firestore transaction and return its result.

        The callback may be retried by Firestore on contention, so it must not
        have side effects outside the transaction handle.
        """
        client = self._raw_firestore()

        @firestore.transactional
        def _run(transaction):
            return callback(FirestoreTransaction(client, transaction))

        try:
            return _run(client.transaction())
        except BoardingHubError:
            raise
        except Exception as e:
            logger.error(f"Transaction failed: {str(e)}")
            raise PersistenceError(f"Transaction failed: {str(e)}")


database_service = DatabaseService()
