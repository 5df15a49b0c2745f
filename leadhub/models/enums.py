"""
Canonical enums for the lead assignment workflow.

All enums are string enums (str, Enum) for JSON serialization compatibility
and compare equal to their raw string values.
"""
import enum


class ServiceType(str, enum.Enum):
    """Known service types. Leads and partners store the raw string so new services need no migration."""
    MOVING = "moving"
    CLEANING = "cleaning"


class PartnerType(str, enum.Enum):
    BASIC = "basic"
    EXCLUSIVE = "exclusive"


class PartnerStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    REJECTED = "rejected"


class LeadStatus(str, enum.Enum):
    """
    Lead-level status, a roll-up of the lead's assignments.

    ``completed`` is only ever written by an admin action.
    """
    PENDING = "pending"
    PARTIAL_ASSIGNED = "partial_assigned"
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    CANCELLATION_REQUESTED = "cancellationRequested"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    COMPLETED = "completed"


class AssignmentStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLATION_REQUESTED = "cancellationRequested"
    CANCELLED = "cancelled"


class AssignmentAction(str, enum.Enum):
    """Actions that move an assignment through its state machine."""
    ACCEPT = "accept"
    REJECT = "reject"
    REQUEST_CANCEL = "request_cancel"
    APPROVE_CANCEL = "approve_cancel"
    REJECT_CANCEL = "reject_cancel"


class CancellationRequestStatus(str, enum.Enum):
    """Computed status of a row in the cancellation request listing."""
    PENDING = "pending"
    APPROVED = "cancellation_approved"
    REJECTED = "cancellation_rejected"


# Assignment statuses that still hold a claim on the lead
ACTIVE_ASSIGNMENT_STATUSES = frozenset({
    AssignmentStatus.PENDING,
    AssignmentStatus.ACCEPTED,
    AssignmentStatus.CANCELLATION_REQUESTED,
})

TERMINAL_ASSIGNMENT_STATUSES = frozenset({
    AssignmentStatus.REJECTED,
    AssignmentStatus.CANCELLED,
})


def is_active_assignment_status(status) -> bool:
    # Unknown raw values raise ValueError here
    return AssignmentStatus(status) in ACTIVE_ASSIGNMENT_STATUSES


def is_terminal_assignment_status(status) -> bool:
    return AssignmentStatus(status) in TERMINAL_ASSIGNMENT_STATUSES


def value_of(item):
    """Raw value of an enum member; plain values pass through."""
    return item.value if isinstance(item, enum.Enum) else item
