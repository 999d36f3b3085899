from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class RoomStatus(str, Enum):
    VACANT = "vacant"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"


class UtilityType(str, Enum):
    FREE = "free"
    FLAT = "flat"
    PER_TENANT = "per-tenant"


# Older room documents use these spellings
UTILITY_TYPE_ALIASES = {
    "fixed": UtilityType.FLAT.value,
    "per-unit": UtilityType.PER_TENANT.value,
    "per_unit": UtilityType.PER_TENANT.value,
    "per_tenant": UtilityType.PER_TENANT.value,
}


class BillStatus(str, Enum):
    PENDING = "pending"
    PROOF_SUBMITTED = "proof_submitted"
    PAID = "paid"
    OVERDUE = "overdue"


class ProofStatus(str, Enum):
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationType(str, Enum):
    APPLICATION = "application"
    PAYMENT = "payment"
    DUE = "due"
    SYSTEM = "system"


# Property Model
class Property(BaseModel):
    id: Optional[str] = None
    owner_id: str
    owner_email: Optional[str] = None
    name: str
    address: Optional[str] = None
    description: Optional[str] = None
    amenities: List[str] = Field(default_factory=list)
    photos: List[str] = Field(default_factory=list)
    rules: Optional[List[str]] = None
    contact_number: Optional[str] = None
    # Cached aggregate, recomputed from rooms on every room status change
    total_rooms: int = 0
    occupied: int = 0
    vacancies: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UtilityConfig(BaseModel):
    type: UtilityType = UtilityType.FREE
    amount: Optional[float] = None  # flat
    rate: Optional[float] = None  # per-tenant, per unit consumed

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            return UTILITY_TYPE_ALIASES.get(value, value)
        return value


# Denormalized copy of the occupant kept on the room
class TenantSnapshot(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


# Room Model
class Room(BaseModel):
    id: Optional[str] = None
    property_id: str
    owner_id: str
    number: str
    type: Optional[str] = None  # single, double, studio, etc.
    rent: float
    size: Optional[str] = None
    notes: Optional[str] = None
    photos: List[str] = Field(default_factory=list)
    utilities: Dict[str, UtilityConfig] = Field(default_factory=dict)
    status: RoomStatus = RoomStatus.VACANT
    tenant: Optional[TenantSnapshot] = None
    tenant_id: Optional[str] = None
    meter_ids: Dict[str, str] = Field(default_factory=dict)
    occupied_date: Optional[datetime] = None
    vacated_date: Optional[datetime] = None
    lease_start: Optional[datetime] = None
    lease_end: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("number", mode="before")
    @classmethod
    def number_as_string(cls, value):
        return str(value) if value is not None else value


class BillingPeriod(BaseModel):
    from_date: str  # YYYY-MM-DD
    to_date: str  # YYYY-MM-DD
    month: str  # e.g. "January"
    year: int


class ChargeLine(BaseModel):
    description: str
    amount: float
    category: str  # rent, utilities


# Bill Model
class Bill(BaseModel):
    id: Optional[str] = None
    invoice_id: str  # e.g., "INV-2025-001"
    tenant_id: str
    tenant_name: Optional[str] = None
    tenant_email: Optional[str] = None
    property_id: str
    property_name: Optional[str] = None
    room_id: str
    room_number: Optional[str] = None
    landlord_id: str
    amount: float
    base_rent: float = 0.0
    utility_charges: float = 0.0
    charges: List[ChargeLine] = Field(default_factory=list)
    billing_period: Optional[BillingPeriod] = None
    due_date: str  # YYYY-MM-DD
    status: BillStatus = BillStatus.PENDING
    payment_proof_id: Optional[str] = None
    # Legacy inline proofs; proofs now live in their own collection
    payment_proofs: List[Dict[str, Any]] = Field(default_factory=list)
    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    proof_submitted_at: Optional[datetime] = None
    overdue_at: Optional[datetime] = None
    notes: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Payment Proof Model
class PaymentProof(BaseModel):
    id: Optional[str] = None
    bill_id: str
    invoice_id: Optional[str] = None
    tenant_id: str
    tenant_name: Optional[str] = None
    landlord_id: str
    property_name: Optional[str] = None
    room_number: Optional[str] = None
    amount: float
    image_uri: str
    note: str = ""
    status: ProofStatus = ProofStatus.PENDING_REVIEW
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    review_note: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Payment History Model (append-only audit trail)
class PaymentHistory(BaseModel):
    id: Optional[str] = None
    receipt_id: str  # e.g., "RCP-1735689600000"
    tenant_id: str
    bill_id: str
    invoice_id: str
    amount: float
    payment_date: datetime
    due_date: Optional[str] = None
    month: Optional[str] = None  # e.g. "January 2025"
    year: Optional[str] = None
    property_name: Optional[str] = None
    room_number: Optional[str] = None
    tenant_name: Optional[str] = None
    status: str = "approved"
    payment_method: str = "Payment Proof"
    breakdown: List[ChargeLine] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class ApplicationTenant(BaseModel):
    id: Optional[str] = None
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


class ApplicationRoom(BaseModel):
    id: str
    property_id: Optional[str] = None
    property_name: Optional[str] = None
    title: Optional[str] = None
    room_number: Optional[str] = None
    price: Optional[float] = None
    description: Optional[str] = None
    amenities: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)


# Snapshot of tenant and room taken when the application was submitted
class ApplicationData(BaseModel):
    tenant: ApplicationTenant
    room: ApplicationRoom
    application_date: Optional[datetime] = None
    status: ApplicationStatus = ApplicationStatus.PENDING
    status_updated_at: Optional[datetime] = None


# Notification Model
class Notification(BaseModel):
    id: Optional[str] = None
    recipient_id: str  # user_id
    type: NotificationType
    title: str
    message: str
    tenant_name: Optional[str] = None
    property_name: Optional[str] = None
    room_number: Optional[str] = None
    is_read: bool = Field(default=False)
    context_type: Optional[str] = None  # application, invoice, proof, maintenance
    context_id: Optional[str] = None
    application_data: Optional[ApplicationData] = None
    created_at: Optional[datetime] = None


# Tenant Model (users document with user_type == "tenant")
class TenantProfile(BaseModel):
    id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    user_type: str = "tenant"
    status: str = Field(default="registered")  # registered, active, overdue, moving-out, checked-out
    room_id: Optional[str] = None
    room_number: Optional[str] = None
    property_id: Optional[str] = None
    lease_start: Optional[datetime] = None
    lease_end: Optional[datetime] = None
    balance: float = 0.0
    preferred_room_type: Optional[str] = None
    move_in_date: Optional[str] = None
    emergency_contact: Optional[Dict[str, Any]] = None
    avatar: Optional[str] = None
    assigned_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


# Counter model for ID generation
class Counter(BaseModel):
    id: Optional[str] = None
    year: Optional[int] = None
    counter: int
    last_updated: Optional[datetime] = None


def to_document(model: BaseModel, exclude: Optional[set] = None) -> Dict[str, Any]:
    """Dump a model for storage: enum members become plain values and the id is left to Firestore"""
    def _plain(value):
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, dict):
            return {k: _plain(v) for k, v in value.items()}
        if isinstance(value, list):
            return [_plain(v) for v in value]
        return value

    return _plain(model.model_dump(exclude={"id"} | (exclude or set())))
