from enum import Enum

# ──────────────────────────────────────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────────────────────────────────────

class UserRole(str, Enum):
    LANDLORD = "landlord"
    TENANT = "tenant"


class TenantStatus(str, Enum):
    REGISTERED = "registered"
    ACTIVE = "active"
    OVERDUE = "overdue"
    MOVING_OUT = "moving-out"
    CHECKED_OUT = "checked-out"


# Display labels used by the tenant list filter
TENANT_STATUS_FILTERS = {
    "Active": [TenantStatus.ACTIVE.value],
    "Overdue": [TenantStatus.OVERDUE.value],
    "Moving Out": [TenantStatus.MOVING_OUT.value],
    "Registered": [TenantStatus.REGISTERED.value],
    "Checked Out": [TenantStatus.CHECKED_OUT.value],
}
