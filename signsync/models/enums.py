from enum import Enum, IntEnum

class LifecycleStatus(str, Enum):
    created = "created"
    pending_activation = "pending_activation"
    active = "active"
    rejected = "rejected"
    expired = "expired"
    cancelled = "cancelled"

# terminal for webhook reconciliation; expired/cancelled are set by other processes
TERMINAL_STATUSES = {
    LifecycleStatus.active,
    LifecycleStatus.rejected,
    LifecycleStatus.expired,
    LifecycleStatus.cancelled,
}

class SignatoryStatus(str, Enum):
    pending = "pending"
    completed = "completed"

class SignatoryRole(str, Enum):
    landlord = "landlord"
    tenant = "tenant"

class EventType(IntEnum):
    # provider codes, must stay bit-exact
    request_received = 1
    signer_completed = 2
    request_completed = 3
    request_rejected = 5

EVENT_NAMES = {
    EventType.request_received: "SignRequestReceived",
    EventType.signer_completed: "SignatoryCompleted",
    EventType.request_completed: "RequestCompleted",
    EventType.request_rejected: "RequestRejected",
}
