import copy
import itertools

import pytest

from app.core.exceptions import BoardingHubError, PersistenceError
from app.database.database_service import validate_document


def _matches(document, filters):
    for field, op, value in filters or []:
        actual = document.get(field)
        if op == "==" and actual != value:
            return False
        if op == "!=" and actual == value:
            return False
        if op == "in" and actual not in value:
            return False
        if op in ("<", "<=", ">", ">=") and actual is None:
            return False
        if op == "<" and not actual < value:
            return False
        if op == "<=" and not actual <= value:
            return False
        if op == ">" and not actual > value:
            return False
        if op == ">=" and not actual >= value:
            return False
    return True


class FakeTransaction:
    """Buffers writes until commit and, like Firestore, refuses reads after the first write"""

    def __init__(self, db):
        self._db = db
        self.writes = []

    def _check_read(self):
        if self.writes:
            raise RuntimeError("Firestore transactions require all reads to be executed before all writes")

    def get(self, collection, document_id):
        self._check_read()
        return self._db._read(collection, document_id)

    def query(self, collection, filters=None):
        self._check_read()
        return self._db._scan(collection, filters)

    def create(self, collection, data, document_id=None):
        error = validate_document(collection, data)
        if error:
            raise PersistenceError(error)
        document_id = document_id or self._db.new_id(collection)
        self.writes.append(("set", collection, document_id, copy.deepcopy(data)))
        return document_id

    def set(self, collection, document_id, data):
        self.writes.append(("set", collection, document_id, copy.deepcopy(data)))

    def update(self, collection, document_id, data):
        self.writes.append(("update", collection, document_id, copy.deepcopy(data)))

    def delete(self, collection, document_id):
        self.writes.append(("delete", collection, document_id, None))


class FakeDB:
    """In-memory stand-in for DatabaseService"""

    def __init__(self):
        # storage keyed by collection -> id -> doc
        self.storage = {}
        self.fail_next_commit = False
        self.committed_transactions = 0
        self._ids = itertools.count(1)

    def new_id(self, collection):
        return f"{collection}_{next(self._ids)}"

    def seed(self, collection, document_id, data):
        self.storage.setdefault(collection, {})[document_id] = copy.deepcopy(data)
        return document_id

    def doc(self, collection, document_id):
        """Raw stored document, for assertions"""
        return self.storage.get(collection, {}).get(document_id)

    def all(self, collection):
        return list(self.storage.get(collection, {}).values())

    def _read(self, collection, document_id):
        doc = self.storage.get(collection, {}).get(document_id)
        if doc is None:
            return None
        return {**copy.deepcopy(doc), "id": document_id, "_doc_id": document_id}

    def _scan(self, collection, filters):
        return [
            {**copy.deepcopy(doc), "id": doc_id, "_doc_id": doc_id}
            for doc_id, doc in self.storage.get(collection, {}).items()
            if _matches(doc, filters)
        ]

    async def create_document(self, collection, data, document_id=None, validate=True):
        if validate:
            error = validate_document(collection, data)
            if error:
                return False, None, error
        document_id = document_id or self.new_id(collection)
        self.seed(collection, document_id, {k: v for k, v in data.items() if k not in ("id", "_doc_id")})
        return True, document_id, None

    async def get_document(self, collection, document_id):
        doc = self._read(collection, document_id)
        if doc is None:
            return False, None, "Document not found"
        return True, doc, None

    async def update_document(self, collection, document_id, data, validate=True):
        coll = self.storage.get(collection, {})
        if document_id not in coll:
            return False, "not found"
        coll[document_id].update(copy.deepcopy(data))
        return True, None

    async def delete_document(self, collection, document_id):
        self.storage.get(collection, {}).pop(document_id, None)
        return True, None

    async def query_documents(self, collection, filters=None, limit=None):
        docs = self._scan(collection, filters)
        return True, docs[:limit] if limit else docs, None

    async def get_all_documents(self, collection):
        return self._scan(collection, None)

    async def run_transaction(self, callback):
        txn = FakeTransaction(self)
        try:
            result = callback(txn)
            if self.fail_next_commit:
                self.fail_next_commit = False
                raise RuntimeError("commit failed")
            self._commit(txn.writes)
        except BoardingHubError:
            raise
        except Exception as e:
            raise PersistenceError(f"Transaction failed: {str(e)}")
        self.committed_transactions += 1
        return result

    def _commit(self, writes):
        # Validate every write first so a failing commit applies nothing
        for op, collection, document_id, _ in writes:
            if op == "update" and document_id not in self.storage.get(collection, {}) and \
                    not any(w[0] == "set" and w[1] == collection and w[2] == document_id for w in writes):
                raise RuntimeError(f"No document to update: {collection}/{document_id}")

        for op, collection, document_id, data in writes:
            coll = self.storage.setdefault(collection, {})
            if op == "set":
                coll[document_id] = data
            elif op == "update":
                coll[document_id].update(data)
            elif op == "delete":
                coll.pop(document_id, None)


@pytest.fixture
def fake_db(monkeypatch):
    """Point every service singleton at a fresh in-memory database"""
    from app.services.billing_service import billing_service
    from app.services.notification_service import notification_service
    from app.services.payment_history_service import payment_history_service
    from app.services.payment_proof_service import payment_proof_service
    from app.services.property_service import property_service
    from app.services.receipt_service import receipt_service
    from app.services.room_service import room_service
    from app.services.tenant_service import tenant_service

    db = FakeDB()
    for service in (
        billing_service,
        notification_service,
        payment_history_service,
        payment_proof_service,
        property_service,
        receipt_service,
        room_service,
        tenant_service,
    ):
        monkeypatch.setattr(service, "db", db)
    return db


@pytest.fixture
def boarding_house(fake_db):
    """One landlord, one property with two rooms and two registered tenants"""
    fake_db.seed("users", "landlord1", {
        "email": "owner@example.com", "user_type": "landlord",
        "first_name": "Olivia", "last_name": "Santos", "phone": "0917",
    })
    fake_db.seed("users", "tenant1", {
        "email": "juan@example.com", "user_type": "tenant",
        "first_name": "Juan", "last_name": "Dela Cruz", "status": "registered",
    })
    fake_db.seed("users", "tenant2", {
        "email": "maria@example.com", "user_type": "tenant",
        "first_name": "Maria", "last_name": "Reyes", "status": "registered",
    })
    fake_db.seed("properties", "prop1", {
        "owner_id": "landlord1", "name": "Sunrise Dormitory", "address": "12 Mabini St",
        "amenities": ["WiFi"], "total_rooms": 0, "occupied": 0, "vacancies": 0,
    })
    fake_db.seed("rooms", "room1", {
        "property_id": "prop1", "owner_id": "landlord1", "number": "101", "type": "Single",
        "rent": 4000.0, "status": "vacant",
        "utilities": {
            "electricity": {"type": "per-tenant", "rate": 12},
            "water": {"type": "flat", "amount": 200},
            "wifi": {"type": "free"},
        },
    })
    fake_db.seed("rooms", "room2", {
        "property_id": "prop1", "owner_id": "landlord1", "number": "102", "type": "Double",
        "rent": 6500.0, "status": "vacant", "utilities": {},
    })
    return fake_db
