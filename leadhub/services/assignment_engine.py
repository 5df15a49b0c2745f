"""
Turns an operator's partner selection into committed assignments.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from leadhub.models.enums import AssignmentStatus, PartnerType, value_of
from leadhub.models.lead import Lead
from leadhub.models.partner import Partner
from leadhub.models.partner_assignment import PartnerAssignment
from leadhub.obs.errors import AssignmentLimitReached, DuplicateAssignment, ExclusivityViolation, ValidationError
from leadhub.obs.logging import get_logger
from leadhub.schemas.partners import CapacitySnapshot, PartnerRef
from leadhub.services.audit_logger import AuditLogger
from leadhub.services.capacity_tracker import CapacityTracker
from leadhub.services.lead_store import LeadStore
from leadhub.services.partner_adapter import normalize_partner_ref
from leadhub.services.status_machine import StatusStateMachine

logger = get_logger(__name__)


class SelectionSet:
    """
    Partner selection an operator builds before confirming.

    Selecting an exclusive partner replaces the whole selection. Selecting a
    basic partner while an exclusive one is selected replaces it; otherwise
    basic partners accumulate. Selecting a selected partner deselects it.
    """

    def __init__(self):
        self._items: List[Tuple[PartnerRef, PartnerType]] = []

    def toggle(self, partner, partner_type) -> List[PartnerRef]:
        ref = normalize_partner_ref(partner)
        partner_type = PartnerType(partner_type)

        if ref in self:
            self._items = [(r, t) for r, t in self._items if r != ref]
        elif partner_type == PartnerType.EXCLUSIVE:
            self._items = [(ref, partner_type)]
        elif any(t == PartnerType.EXCLUSIVE for _, t in self._items):
            self._items = [(ref, partner_type)]
        else:
            self._items.append((ref, partner_type))
        return self.selected

    @property
    def selected(self) -> List[PartnerRef]:
        return [ref for ref, _ in self._items]

    @property
    def primary(self) -> Optional[PartnerRef]:
        """The partner a confirmation commits; one partner per confirmation."""
        return self._items[0][0] if self._items else None

    def clear(self):
        self._items = []

    def __contains__(self, ref) -> bool:
        return any(r == ref for r, _ in self._items)

    def __len__(self) -> int:
        return len(self._items)


@dataclass
class CommitResult:
    assignment: PartnerAssignment
    capacity: CapacitySnapshot
    capacity_warning: Optional[str] = None


class AssignmentEngine:
    def __init__(
        self,
        store: LeadStore,
        capacity: CapacityTracker,
        state_machine: StatusStateMachine,
        audit: AuditLogger,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.capacity = capacity
        self.state_machine = state_machine
        self.audit = audit
        self.clock = clock

    def commit(self, lead: Lead, partner: Partner, actor: Optional[str] = None) -> CommitResult:
        """
        Create a pending assignment of ``partner`` on ``lead``.

        Capacity is never enforced here: a partner at or over their weekly
        limit is still assigned and the result carries ``capacity_warning``.
        """
        self.state_machine.ensure_open(lead, "assign")
        now = self.clock()
        self._validate(lead, partner, now)

        current = self.capacity.current_week_count(partner.id, lead.service_type)
        limit = self.capacity.weekly_limit(partner, lead.service_type)
        capacity_warning = None
        if current >= limit:
            capacity_warning = (
                f"{partner.company_name} has already received {current} of {limit} "
                f"{value_of(lead.service_type)} leads this week"
            )

        assignment = self.store.add_assignment(lead, partner, assigned_by=actor, now=now)
        partner.total_leads_received = (partner.total_leads_received or 0) + 1

        self.audit.log_assignment_transition(
            lead=lead,
            assignment=assignment,
            action="assign",
            from_status=None,
            to_status=AssignmentStatus.PENDING,
            actor=actor,
            partner_type=value_of(partner.partner_type),
            capacity_warning=capacity_warning,
        )
        self.state_machine.recompute(lead, actor=actor, reason="assign")

        return CommitResult(
            assignment=assignment,
            capacity=self.capacity.get_capacity(partner, lead.service_type, current=current + 1),
            capacity_warning=capacity_warning,
        )

    def commit_selection(self, lead: Lead, selection: SelectionSet, actor: Optional[str] = None) -> CommitResult:
        if selection.primary is None:
            raise ValidationError("No partner selected", lead_id=lead.display_id)
        partner = self.store.get_partner(selection.primary)
        return self.commit(lead, partner, actor=actor)

    def _validate(self, lead: Lead, partner: Partner, now: datetime):
        if lead.fixed_date is not None and lead.fixed_date < now.date():
            raise ValidationError(
                f"Lead {lead.display_id} service date {lead.fixed_date.isoformat()} has passed",
                lead_id=lead.display_id,
            )
        if not partner.is_active():
            raise ValidationError(
                f"Partner {partner.company_name} is not active",
                partner_id=partner.id,
                partner_status=value_of(partner.status),
            )
        if not partner.offers_service(lead.service_type):
            raise ValidationError(
                f"Partner {partner.company_name} does not offer {value_of(lead.service_type)}",
                partner_id=partner.id,
                service_type=value_of(lead.service_type),
            )

        active = lead.active_assignments()
        if any(a.partner_id == partner.id for a in active):
            raise DuplicateAssignment(
                f"Partner {partner.company_name} already holds an active assignment on lead {lead.display_id}",
                lead_id=lead.display_id,
                partner_id=partner.id,
            )
        if any(a.partner_type == PartnerType.EXCLUSIVE for a in active):
            raise ExclusivityViolation(
                f"Lead {lead.display_id} is held by an exclusive partner",
                lead_id=lead.display_id,
                partner_id=partner.id,
            )
        if partner.partner_type == PartnerType.EXCLUSIVE and active:
            raise ExclusivityViolation(
                f"Lead {lead.display_id} already has active assignments and cannot go to an exclusive partner",
                lead_id=lead.display_id,
                partner_id=partner.id,
                active_assignments=len(active),
            )

        limit = self.state_machine.max_basic_assignments
        if len(active) >= limit:
            raise AssignmentLimitReached(
                f"Lead {lead.display_id} already has {len(active)} active partners (limit {limit})",
                lead_id=lead.display_id,
                limit=limit,
            )
