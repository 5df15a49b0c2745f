"""
Lead assignment and cancellation workflow.

Entry point for every workflow operation. Each mutation runs as one unit:
the lead lock is held, the lead is re-read, all assignment, status, partner
counter, audit and history writes go into a single transaction, and domain
events are published only after that transaction commits. Any rejection
rolls the whole unit back.
"""
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session

from leadhub.models.enums import PartnerType, value_of
from leadhub.models.lead import Lead
from leadhub.models.partner_assignment import PartnerAssignment
from leadhub.obs.errors import NotFound, Unavailable, ValidationError, WorkflowError
from leadhub.obs.logging import get_logger
from leadhub.obs.metrics import (
    record_assignment_committed,
    record_capacity_warning,
    record_rejection,
    record_transition,
)
from leadhub.schemas.cancellations import CancellationFilters, CancellationRow
from leadhub.schemas.partners import CapacitySnapshot, EligiblePartners
from leadhub.services import domain_events
from leadhub.services.assignment_engine import AssignmentEngine, CommitResult
from leadhub.services.audit_logger import AuditLogger
from leadhub.services.cancellation_workflow import CancellationWorkflow
from leadhub.services.capacity_tracker import CapacityTracker
from leadhub.services.domain_events import EventBuffer
from leadhub.services.eligibility_filter import EligibilityFilter
from leadhub.services.lead_lock import LeadLockService, get_lead_lock_service
from leadhub.services.lead_store import AdminSettingsReader, LeadStore
from leadhub.services.partner_adapter import normalize_partner_ref
from leadhub.services.status_machine import StatusStateMachine

logger = get_logger(__name__)


@dataclass
class _Unit:
    """Collaborators bound to one locked lead for one operation."""
    lead: Lead
    events: EventBuffer
    capacity: CapacityTracker
    state_machine: StatusStateMachine
    engine: AssignmentEngine
    cancellations: CancellationWorkflow


def _assignment_payload(lead: Lead, assignment: PartnerAssignment, **extra) -> dict:
    payload = {
        "lead_id": lead.display_id,
        "lead_pk": lead.id,
        "lead_status": value_of(lead.status),
        "assignment_id": assignment.id,
        "partner_id": assignment.partner_id,
        "partner_type": value_of(assignment.partner_type),
        "status": value_of(assignment.status),
    }
    payload.update({k: v for k, v in extra.items() if v is not None})
    return payload


class LeadWorkflow:
    """
    Workflow operations over one database session.

    Usage:
        workflow = LeadWorkflow(db, trace_id=request.state.trace_id)
        result = workflow.commit_assignment("MOV-250101-AB12", "BAS-MOV-123456", actor=user_id)
    """

    def __init__(
        self,
        db: Session,
        lock_service: Optional[LeadLockService] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        trace_id: Optional[str] = None,
    ):
        self.db = db
        self.store = LeadStore(db)
        self.settings_reader = AdminSettingsReader(db)
        self.locks = lock_service or get_lead_lock_service()
        self.clock = clock
        self.trace_id = trace_id

    # Reads
    def list_eligible_partners(
        self,
        lead_key: str,
        query: Optional[str] = None,
        partner_type: Optional[PartnerType] = None,
    ) -> EligiblePartners:
        with self._tracked():
            lead = self.store.get_lead(lead_key)
            eligibility = EligibilityFilter(self._capacity())
            return eligibility.list_eligible(lead, self.store.active_partners(), query=query, partner_type=partner_type)

    def get_capacity(self, partner, service_type: Optional[str] = None) -> CapacitySnapshot:
        with self._tracked():
            partner = self.store.get_partner(normalize_partner_ref(partner))
            service_type = service_type or partner.service_type or next(iter(partner.services or []), None)
            if not service_type:
                raise ValidationError("service_type is required", partner_id=partner.id)
            return self._capacity().get_capacity(partner, service_type)

    def list_cancellation_requests(self, filters: CancellationFilters) -> Tuple[List[CancellationRow], int]:
        with self._tracked():
            return CancellationWorkflow(self.store, None).list_requests(filters)

    # Mutations
    def commit_assignment(self, lead_key: str, partner, actor: Optional[str] = None) -> CommitResult:
        with self._unit_of_work(lead_key, actor) as unit:
            partner_row = self.store.get_partner(normalize_partner_ref(partner))
            result = unit.engine.commit(unit.lead, partner_row, actor=actor)
            unit.events.add(
                domain_events.ASSIGNMENT_COMMITTED,
                _assignment_payload(unit.lead, result.assignment, capacity_warning=result.capacity_warning),
                lead_id=unit.lead.display_id,
                partner_id=partner_row.id,
            )

        record_assignment_committed(value_of(result.assignment.partner_type))
        if result.capacity_warning:
            record_capacity_warning(value_of(unit.lead.service_type))
        logger.info(
            f"Assignment committed on lead {unit.lead.display_id}",
            extra={
                "lead_id": unit.lead.display_id,
                "partner_id": result.assignment.partner_id,
                "assignment_id": result.assignment.id,
                "action": "assign",
                "actor": actor,
            },
        )
        return result

    def accept_assignment(
        self,
        lead_key: str,
        assignment_id: str,
        actor: Optional[str] = None,
        acting_partner: Optional[str] = None,
    ) -> Lead:
        with self._unit_of_work(lead_key, actor) as unit:
            assignment = self.store.get_assignment(assignment_id, lead=unit.lead)
            self._check_owner(assignment, acting_partner)
            unit.state_machine.apply(unit.lead, assignment, "accept", actor=actor)
            partner = assignment.partner
            partner.total_leads_accepted = (partner.total_leads_accepted or 0) + 1
            unit.events.add(
                domain_events.ASSIGNMENT_ACCEPTED,
                _assignment_payload(unit.lead, assignment),
                lead_id=unit.lead.display_id,
                partner_id=assignment.partner_id,
            )

        record_transition("accept")
        return unit.lead

    def reject_assignment(
        self,
        lead_key: str,
        assignment_id: str,
        reason: Optional[str],
        actor: Optional[str] = None,
        acting_partner: Optional[str] = None,
    ) -> Lead:
        if not reason or not reason.strip():
            with self._tracked():
                raise ValidationError("A reason is required to reject an assignment", assignment_id=assignment_id)

        with self._unit_of_work(lead_key, actor) as unit:
            assignment = self.store.get_assignment(assignment_id, lead=unit.lead)
            self._check_owner(assignment, acting_partner)
            unit.state_machine.apply(unit.lead, assignment, "reject", actor=actor, reason=reason.strip())
            partner = assignment.partner
            partner.total_leads_rejected = (partner.total_leads_rejected or 0) + 1
            unit.events.add(
                domain_events.ASSIGNMENT_REJECTED,
                _assignment_payload(unit.lead, assignment, reason=reason.strip()),
                lead_id=unit.lead.display_id,
                partner_id=assignment.partner_id,
            )

        record_transition("reject")
        return unit.lead

    def request_cancellation(
        self,
        assignment_id: str,
        reason: Optional[str],
        actor: Optional[str] = None,
        acting_partner: Optional[str] = None,
    ) -> PartnerAssignment:
        with self._tracked():
            lead_pk = self.store.get_assignment(assignment_id).lead_pk

        with self._unit_of_work(lead_pk, actor) as unit:
            assignment = self.store.get_assignment(assignment_id, lead=unit.lead)
            self._check_owner(assignment, acting_partner)
            unit.cancellations.request_cancellation(unit.lead, assignment, reason, actor=actor)
            unit.events.add(
                domain_events.CANCELLATION_REQUESTED,
                _assignment_payload(unit.lead, assignment, reason=assignment.cancellation_reason),
                lead_id=unit.lead.display_id,
                partner_id=assignment.partner_id,
            )

        record_transition("request_cancel")
        return assignment

    def approve_cancellation(self, lead_key: str, partner, actor: Optional[str] = None) -> Lead:
        with self._unit_of_work(lead_key, actor) as unit:
            partner_row = self.store.get_partner(normalize_partner_ref(partner))
            assignment = unit.cancellations.approve_cancellation(unit.lead, partner_row, actor=actor)
            unit.events.add(
                domain_events.CANCELLATION_APPROVED,
                _assignment_payload(unit.lead, assignment),
                lead_id=unit.lead.display_id,
                partner_id=assignment.partner_id,
            )

        record_transition("approve_cancel")
        return unit.lead

    def reject_cancellation(
        self,
        lead_key: str,
        partner,
        reason: Optional[str],
        actor: Optional[str] = None,
    ) -> PartnerAssignment:
        with self._unit_of_work(lead_key, actor) as unit:
            partner_row = self.store.get_partner(normalize_partner_ref(partner))
            assignment = unit.cancellations.reject_cancellation(unit.lead, partner_row, reason, actor=actor)
            unit.events.add(
                domain_events.CANCELLATION_REJECTED,
                _assignment_payload(unit.lead, assignment, reason=assignment.cancellation_rejection_reason),
                lead_id=unit.lead.display_id,
                partner_id=assignment.partner_id,
            )

        record_transition("reject_cancel")
        return assignment

    def complete_lead(self, lead_key: str, actor: Optional[str] = None) -> Lead:
        with self._unit_of_work(lead_key, actor) as unit:
            unit.state_machine.complete(unit.lead, actor=actor)
            unit.events.add(
                domain_events.LEAD_COMPLETED,
                {"lead_id": unit.lead.display_id, "lead_pk": unit.lead.id, "closed_by": actor},
                lead_id=unit.lead.display_id,
            )

        record_transition("complete")
        return unit.lead

    # Plumbing
    def _check_owner(self, assignment: PartnerAssignment, acting_partner: Optional[str]):
        """Partners only see their own assignments; anything else reads as missing."""
        if acting_partner is None:
            return
        partner = assignment.partner
        if acting_partner not in (partner.id, partner.partner_code):
            raise NotFound(f"Assignment {assignment.id} not found", assignment_id=assignment.id)

    def _capacity(self) -> CapacityTracker:
        return CapacityTracker(self.store, self.settings_reader, clock=self.clock)

    def _build_unit(self, lead: Lead, events: EventBuffer) -> _Unit:
        audit = AuditLogger(self.db, request_id=self.trace_id)
        capacity = self._capacity()
        state_machine = StatusStateMachine(
            audit,
            max_basic_assignments=capacity.max_basic_assignments(),
            clock=self.clock,
        )
        return _Unit(
            lead=lead,
            events=events,
            capacity=capacity,
            state_machine=state_machine,
            engine=AssignmentEngine(self.store, capacity, state_machine, audit, clock=self.clock),
            cancellations=CancellationWorkflow(self.store, state_machine),
        )

    @contextmanager
    def _tracked(self):
        """Count business rejections raised by read paths and guards."""
        try:
            yield
        except WorkflowError as e:
            record_rejection(e.error_code)
            raise

    @contextmanager
    def _unit_of_work(self, lead_key: str, actor: Optional[str]):
        events = EventBuffer()
        try:
            lead_pk = self.store.get_lead(lead_key).id
            with self.locks.hold(lead_pk):
                # Drop anything read before the lock was held
                self.db.expire_all()
                yield self._build_unit(self.store.get_lead(lead_pk), events)
                self.db.commit()
        except WorkflowError as e:
            self.db.rollback()
            events.discard()
            record_rejection(e.error_code)
            raise
        except (OperationalError, DBAPIError) as e:
            self.db.rollback()
            events.discard()
            record_rejection(Unavailable.error_code)
            logger.error(f"Lead store failure on {lead_key}: {e.__class__.__name__}", extra={"lead_id": lead_key})
            raise Unavailable("Lead store is unavailable, please retry", lead_id=lead_key) from e
        except Exception:
            self.db.rollback()
            events.discard()
            raise

        events.flush(actor=actor, trace_id=self.trace_id)
