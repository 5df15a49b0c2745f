"""
Partner cancellation requests and the admin decision on them.
"""
from typing import List, Optional, Tuple

from leadhub.models.enums import AssignmentAction, AssignmentStatus, CancellationRequestStatus
from leadhub.models.lead import Lead
from leadhub.models.partner import Partner
from leadhub.models.partner_assignment import PartnerAssignment
from leadhub.obs.errors import InvalidCancellationRequest, ValidationError
from leadhub.schemas.cancellations import CancellationFilters, CancellationRow
from leadhub.services.lead_store import LeadStore
from leadhub.services.status_machine import StatusStateMachine


def request_status_of(assignment: PartnerAssignment) -> CancellationRequestStatus:
    if assignment.status == AssignmentStatus.CANCELLATION_REQUESTED:
        return CancellationRequestStatus.PENDING
    if assignment.cancellation_approved:
        return CancellationRequestStatus.APPROVED
    return CancellationRequestStatus.REJECTED


def to_cancellation_row(assignment: PartnerAssignment) -> CancellationRow:
    lead = assignment.lead
    partner = assignment.partner
    return CancellationRow(
        assignment_id=assignment.id,
        lead_pk=lead.id,
        lead_id=lead.display_id,
        service_type=lead.service_type,
        lead_status=lead.status,
        partner_id=assignment.partner_id,
        partner_code=partner.partner_code if partner else None,
        company_name=partner.company_name if partner else None,
        partner_type=assignment.partner_type,
        request_status=request_status_of(assignment),
        reason=assignment.cancellation_reason,
        requested_at=assignment.cancellation_requested_at,
        approved_at=assignment.cancellation_approved_at,
        rejected_at=assignment.cancellation_rejected_at,
        rejection_reason=assignment.cancellation_rejection_reason,
    )


class CancellationWorkflow:
    """
    Request, approve and reject cycle on accepted assignments.

    A rejected request is final for that assignment: ``cancellation_rejected``
    never resets, so the partner cannot ask again.
    """

    def __init__(self, store: LeadStore, state_machine: StatusStateMachine):
        self.store = store
        self.state_machine = state_machine

    def request_cancellation(
        self,
        lead: Lead,
        assignment: PartnerAssignment,
        reason: Optional[str],
        actor: Optional[str] = None,
    ) -> PartnerAssignment:
        if not reason or not reason.strip():
            raise InvalidCancellationRequest(
                "A reason is required to request cancellation",
                assignment_id=assignment.id,
            )
        if assignment.cancellation_rejected:
            raise InvalidCancellationRequest(
                "Cancellation was already rejected for this assignment",
                assignment_id=assignment.id,
            )
        if assignment.status != AssignmentStatus.ACCEPTED:
            raise InvalidCancellationRequest(
                f"Only accepted assignments can request cancellation (status is {AssignmentStatus(assignment.status).value})",
                assignment_id=assignment.id,
                status=AssignmentStatus(assignment.status).value,
            )

        self.state_machine.apply(lead, assignment, AssignmentAction.REQUEST_CANCEL, actor=actor, reason=reason.strip())
        return assignment

    def approve_cancellation(self, lead: Lead, partner: Partner, actor: Optional[str] = None) -> PartnerAssignment:
        assignment = self.store.latest_assignment_for(lead, partner)
        self.state_machine.apply(lead, assignment, AssignmentAction.APPROVE_CANCEL, actor=actor)
        partner.total_leads_cancelled = (partner.total_leads_cancelled or 0) + 1
        return assignment

    def reject_cancellation(
        self,
        lead: Lead,
        partner: Partner,
        reason: Optional[str],
        actor: Optional[str] = None,
    ) -> PartnerAssignment:
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to reject a cancellation request", lead_id=lead.display_id)

        assignment = self.store.latest_assignment_for(lead, partner)
        self.state_machine.apply(lead, assignment, AssignmentAction.REJECT_CANCEL, actor=actor, reason=reason.strip())
        return assignment

    def list_requests(self, filters: CancellationFilters) -> Tuple[List[CancellationRow], int]:
        """Read-only projection; never write through these rows."""
        assignments, total = self.store.cancellation_assignments(filters)
        return [to_cancellation_row(a) for a in assignments], total
