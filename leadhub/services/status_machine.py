"""
Lead and assignment status state machine.

Assignment transitions:

    pending               --accept-->          accepted
    pending               --reject-->          rejected
    accepted              --request_cancel-->  cancellationRequested
    cancellationRequested --approve_cancel-->  cancelled
    cancellationRequested --reject_cancel-->   accepted

The lead status is never set by hand: ``derive_lead_status`` computes it
from the assignment set after every mutation. The only direct write is the
admin ``completed`` transition.
"""
from datetime import datetime
from typing import Callable, Iterable, Optional

from leadhub.models.enums import (
    AssignmentAction,
    AssignmentStatus,
    LeadStatus,
    PartnerType,
    is_active_assignment_status,
    value_of,
)
from leadhub.models.lead import Lead
from leadhub.models.lead_status_history import LeadStatusHistory
from leadhub.models.partner_assignment import PartnerAssignment
from leadhub.obs.errors import ExclusivityViolation, InvalidTransition
from leadhub.obs.logging import get_logger
from leadhub.services.audit_logger import AuditLogger

logger = get_logger(__name__)


TRANSITIONS = {
    (AssignmentStatus.PENDING, AssignmentAction.ACCEPT): AssignmentStatus.ACCEPTED,
    (AssignmentStatus.PENDING, AssignmentAction.REJECT): AssignmentStatus.REJECTED,
    (AssignmentStatus.ACCEPTED, AssignmentAction.REQUEST_CANCEL): AssignmentStatus.CANCELLATION_REQUESTED,
    (AssignmentStatus.CANCELLATION_REQUESTED, AssignmentAction.APPROVE_CANCEL): AssignmentStatus.CANCELLED,
    (AssignmentStatus.CANCELLATION_REQUESTED, AssignmentAction.REJECT_CANCEL): AssignmentStatus.ACCEPTED,
}


def next_status(current, action) -> AssignmentStatus:
    """
    Target status for ``action`` from ``current``.

    Raises:
        InvalidTransition: when the pair is not in the transition table
    """
    current = AssignmentStatus(current)
    action = AssignmentAction(action)
    target = TRANSITIONS.get((current, action))
    if target is None:
        raise InvalidTransition(current=current.value, requested=action.value)
    return target


def exclusivity_intact(assignments: Iterable) -> bool:
    """At most one active exclusive assignment, and nothing else active beside it."""
    active = [a for a in assignments if is_active_assignment_status(a.status)]
    exclusive = [a for a in active if a.partner_type == PartnerType.EXCLUSIVE]
    return not exclusive or len(active) == 1


def derive_lead_status(assignments: Iterable, max_basic_assignments: int = 3) -> LeadStatus:
    """
    Lead status as a pure function of its assignments.

    Precedence among active assignments is cancellationRequested, then
    accepted, then pending (assigned/partial_assigned). With nothing active
    the lead is rejected if every assignment was rejected, otherwise
    cancelled.
    """
    assignments = list(assignments)
    if not assignments:
        return LeadStatus.PENDING

    statuses = [AssignmentStatus(a.status) for a in assignments]
    active = [a for a, s in zip(assignments, statuses) if is_active_assignment_status(s)]

    if not active:
        if all(s == AssignmentStatus.REJECTED for s in statuses):
            return LeadStatus.REJECTED
        return LeadStatus.CANCELLED

    if AssignmentStatus.CANCELLATION_REQUESTED in statuses:
        return LeadStatus.CANCELLATION_REQUESTED
    if AssignmentStatus.ACCEPTED in statuses:
        return LeadStatus.ACCEPTED

    # Only pending assignments remain active
    if any(a.partner_type == PartnerType.EXCLUSIVE for a in active):
        return LeadStatus.ASSIGNED
    if len(active) >= max_basic_assignments:
        return LeadStatus.ASSIGNED
    return LeadStatus.PARTIAL_ASSIGNED


class StatusStateMachine:
    """
    Applies assignment transitions and keeps ``lead.status`` derived.

    Every change is written to the audit log and lead status changes also to
    the lead status history, all inside the caller's transaction.
    """

    def __init__(
        self,
        audit: AuditLogger,
        max_basic_assignments: int = 3,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.audit = audit
        self.max_basic_assignments = max_basic_assignments
        self.clock = clock

    def ensure_open(self, lead: Lead, requested: str):
        if lead.is_closed():
            raise InvalidTransition(
                current=value_of(lead.status),
                requested=value_of(requested),
                message=f"Lead {lead.display_id} is closed",
                lead_id=lead.display_id,
            )

    def apply(
        self,
        lead: Lead,
        assignment: PartnerAssignment,
        action: AssignmentAction,
        actor: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> AssignmentStatus:
        """
        Move ``assignment`` through ``action`` and recompute the lead.

        Raises:
            InvalidTransition: illegal transition or closed lead
            ExclusivityViolation: accepting beside another partner's active exclusive assignment
        """
        action = AssignmentAction(action)
        self.ensure_open(lead, action)

        from_status = AssignmentStatus(assignment.status)
        to_status = next_status(from_status, action)

        if action == AssignmentAction.ACCEPT:
            self._check_exclusivity_on_accept(lead, assignment)

        now = self.clock()
        self._stamp(lead, assignment, action, reason, now)
        assignment.status = to_status

        self.audit.log_assignment_transition(
            lead=lead,
            assignment=assignment,
            action=action,
            from_status=from_status,
            to_status=to_status,
            actor=actor,
            reason=reason,
        )
        self.recompute(lead, actor=actor, reason=action.value)
        return to_status

    def recompute(self, lead: Lead, actor: Optional[str] = None, reason: Optional[str] = None) -> LeadStatus:
        """Re-derive the lead status, recording a history row when it changes."""
        if not exclusivity_intact(lead.partner_assignments):
            logger.warning(
                "Lead has an exclusive assignment beside other active assignments",
                extra={"lead_id": lead.display_id},
            )

        new_status = derive_lead_status(lead.partner_assignments, self.max_basic_assignments)
        return self._set_lead_status(lead, new_status, actor, reason)

    def complete(self, lead: Lead, actor: Optional[str] = None) -> LeadStatus:
        """
        Admin-only direct transition to ``completed``.

        Requires an accepted assignment and no pending cancellation.
        """
        self.ensure_open(lead, "complete")
        statuses = [AssignmentStatus(a.status) for a in lead.partner_assignments]
        if AssignmentStatus.ACCEPTED not in statuses or AssignmentStatus.CANCELLATION_REQUESTED in statuses:
            raise InvalidTransition(
                current=value_of(lead.status),
                requested="complete",
                message=f"Lead {lead.display_id} needs an accepted assignment and no pending cancellation to complete",
                lead_id=lead.display_id,
            )

        lead.closed_at = self.clock()
        lead.closed_by = actor
        return self._set_lead_status(lead, LeadStatus.COMPLETED, actor, "complete")

    def _check_exclusivity_on_accept(self, lead: Lead, assignment: PartnerAssignment):
        for other in lead.active_assignments():
            if other.id == assignment.id or other.partner_id == assignment.partner_id:
                continue
            if other.partner_type == PartnerType.EXCLUSIVE:
                raise ExclusivityViolation(
                    f"Lead {lead.display_id} is held exclusively by another partner",
                    lead_id=lead.display_id,
                    assignment_id=assignment.id,
                    exclusive_partner_id=other.partner_id,
                )

    def _stamp(self, lead, assignment, action, reason, now):
        if action == AssignmentAction.ACCEPT:
            assignment.accepted_at = now
            if lead.accepted_at is None:
                lead.accepted_at = now
        elif action == AssignmentAction.REJECT:
            assignment.rejected_at = now
            assignment.rejection_reason = reason
        elif action == AssignmentAction.REQUEST_CANCEL:
            assignment.cancellation_requested_at = now
            assignment.cancellation_reason = reason
        elif action == AssignmentAction.APPROVE_CANCEL:
            assignment.cancellation_approved = True
            assignment.cancellation_approved_at = now
        elif action == AssignmentAction.REJECT_CANCEL:
            assignment.cancellation_rejected = True
            assignment.cancellation_rejected_at = now
            assignment.cancellation_rejection_reason = reason

    def _set_lead_status(self, lead: Lead, new_status: LeadStatus, actor, reason) -> LeadStatus:
        old_status = LeadStatus(lead.status) if lead.status is not None else None
        if old_status == new_status:
            return new_status

        lead.status = new_status
        lead.status_history.append(LeadStatusHistory(
            from_status=value_of(old_status),
            to_status=new_status.value,
            reason=reason,
            triggered_by=actor or "system",
            created_at=self.clock(),
        ))
        self.audit.log_lead_status_change(lead, old_status, new_status, actor=actor, reason=reason)
        return new_status
