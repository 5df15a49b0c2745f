"""
Lightweight domain event helper for lead workflow notifications.

Events are collected while an operation runs and published only after its
transaction commits; a failed publish never fails the operation.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from leadhub.realtime import bus
from leadhub.obs.logging import get_logger

logger = get_logger(__name__)


ASSIGNMENT_COMMITTED = "lead.assignment.committed"
ASSIGNMENT_ACCEPTED = "lead.assignment.accepted"
ASSIGNMENT_REJECTED = "lead.assignment.rejected"
CANCELLATION_REQUESTED = "lead.cancellation.requested"
CANCELLATION_APPROVED = "lead.cancellation.approved"
CANCELLATION_REJECTED = "lead.cancellation.rejected"
LEAD_COMPLETED = "lead.completed"


@dataclass
class DomainEvent:
    event_name: str
    payload: Dict[str, Any]
    lead_id: Optional[str] = None
    partner_id: Optional[str] = None


@dataclass
class EventBuffer:
    """Holds events until the surrounding transaction has committed."""

    events: List[DomainEvent] = field(default_factory=list)

    def add(self, event_name: str, payload: Dict[str, Any], lead_id: str = None, partner_id: str = None):
        self.events.append(DomainEvent(event_name, payload, lead_id=lead_id, partner_id=partner_id))

    def discard(self):
        self.events = []

    def flush(self, actor: Optional[str] = None, trace_id: Optional[str] = None) -> int:
        published = 0
        for event in self.events:
            if emit_domain_event(event, actor=actor, trace_id=trace_id):
                published += 1
        self.events = []
        return published


def emit_domain_event(event: DomainEvent, actor: Optional[str] = None, trace_id: Optional[str] = None) -> bool:
    """
    Emit a structured domain event to the marketplace event stream.
    """
    try:
        return bus.emit(
            event_name=event.event_name,
            payload=event.payload,
            lead_id=event.lead_id,
            partner_id=event.partner_id,
            actor=actor,
            trace_id=trace_id,
            severity="info",
            version="1",
        )
    except Exception as exc:
        logger.error(
            "Failed to emit domain event",
            extra={
                "action": event.event_name,
                "lead_id": event.lead_id,
                "partner_id": event.partner_id,
                "error_type": type(exc).__name__,
            },
        )
        return False
