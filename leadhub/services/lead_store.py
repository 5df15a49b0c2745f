"""
Lead/partner store adapter.

All queries the workflow needs live here. Lookups of missing records raise
NotFound and database connectivity failures surface as Unavailable.
"""
import functools
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import func, or_
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session, joinedload

from leadhub.models.admin_settings import AdminSettings
from leadhub.models.enums import AssignmentStatus, CancellationRequestStatus, PartnerStatus
from leadhub.models.lead import Lead
from leadhub.models.partner import Partner
from leadhub.models.partner_assignment import PartnerAssignment
from leadhub.obs.errors import NotFound, Unavailable
from leadhub.obs.logging import get_logger
from leadhub.schemas.cancellations import CancellationFilters
from leadhub.schemas.partners import PartnerRef

logger = get_logger(__name__)


def translate_db_errors(fn):
    """Re-raise driver level failures as Unavailable."""
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (OperationalError, DBAPIError) as e:
            logger.error(f"Lead store unavailable in {fn.__name__}: {e.__class__.__name__}")
            raise Unavailable("Lead store is unavailable, please retry") from e
    return wrapper


class LeadStore:
    """Session-bound access to leads, partners and assignments."""

    def __init__(self, db: Session):
        self.db = db

    # Leads
    @translate_db_errors
    def get_lead(self, lead_key: str) -> Lead:
        """Find a lead by internal id or human readable lead id."""
        lead = (
            self.db.query(Lead)
            .options(joinedload(Lead.partner_assignments))
            .filter(or_(Lead.id == lead_key, Lead.lead_id == lead_key))
            .first()
        )
        if not lead:
            raise NotFound(f"Lead {lead_key} not found", lead_id=lead_key)
        return lead

    # Partners
    @translate_db_errors
    def get_partner(self, ref: PartnerRef) -> Partner:
        partner = (
            self.db.query(Partner)
            .filter(or_(Partner.id == ref.id, Partner.partner_code == ref.id))
            .first()
        )
        if not partner:
            raise NotFound(f"Partner {ref.id} not found", partner_id=ref.id)
        return partner

    @translate_db_errors
    def active_partners(self) -> List[Partner]:
        return (
            self.db.query(Partner)
            .filter(Partner.status == PartnerStatus.ACTIVE)
            .order_by(Partner.company_name)
            .all()
        )

    # Assignments
    @translate_db_errors
    def get_assignment(self, assignment_id: str, lead: Optional[Lead] = None) -> PartnerAssignment:
        assignment = self.db.query(PartnerAssignment).filter(PartnerAssignment.id == assignment_id).first()
        if not assignment or (lead is not None and assignment.lead_pk != lead.id):
            raise NotFound(
                f"Assignment {assignment_id} not found",
                assignment_id=assignment_id,
                lead_id=lead.display_id if lead is not None else None,
            )
        return assignment

    def latest_assignment_for(self, lead: Lead, partner: Partner) -> PartnerAssignment:
        """The partner's most recent assignment on ``lead``."""
        candidates = [a for a in lead.partner_assignments if a.partner_id == partner.id]
        if not candidates:
            raise NotFound(
                f"Partner {partner.partner_code or partner.id} has no assignment on lead {lead.display_id}",
                lead_id=lead.display_id,
                partner_id=partner.id,
            )
        return max(candidates, key=lambda a: (a.assigned_at, a.position))

    def add_assignment(self, lead: Lead, partner: Partner, assigned_by: Optional[str], now: datetime) -> PartnerAssignment:
        assignment = PartnerAssignment(
            id=str(uuid4()),
            partner_id=partner.id,
            partner_type=partner.partner_type,
            status=AssignmentStatus.PENDING,
            position=len(lead.partner_assignments),
            assigned_by=assigned_by,
            assigned_at=now,
        )
        lead.partner_assignments.append(assignment)
        self.db.add(assignment)
        return assignment

    @translate_db_errors
    def count_assignments_in_window(
        self,
        partner_ids: Iterable[str],
        service_type: str,
        start: datetime,
        end: datetime,
    ) -> Dict[str, int]:
        """Assignments made per partner in [start, end) on leads of ``service_type``, any status."""
        partner_ids = list(partner_ids)
        if not partner_ids:
            return {}
        rows = (
            self.db.query(PartnerAssignment.partner_id, func.count(PartnerAssignment.id))
            .join(Lead, Lead.id == PartnerAssignment.lead_pk)
            .filter(
                PartnerAssignment.partner_id.in_(partner_ids),
                Lead.service_type == service_type,
                PartnerAssignment.assigned_at >= start,
                PartnerAssignment.assigned_at < end,
            )
            .group_by(PartnerAssignment.partner_id)
            .all()
        )
        counts = {partner_id: 0 for partner_id in partner_ids}
        counts.update({partner_id: count for partner_id, count in rows})
        return counts

    @translate_db_errors
    def cancellation_assignments(self, filters: CancellationFilters) -> Tuple[List[PartnerAssignment], int]:
        """Assignments that have ever had a cancellation requested, newest request first."""
        query = (
            self.db.query(PartnerAssignment)
            .join(Lead, Lead.id == PartnerAssignment.lead_pk)
            .join(Partner, Partner.id == PartnerAssignment.partner_id)
            .filter(PartnerAssignment.cancellation_requested_at.isnot(None))
        )

        if filters.request_status == CancellationRequestStatus.PENDING:
            query = query.filter(PartnerAssignment.status == AssignmentStatus.CANCELLATION_REQUESTED)
        elif filters.request_status == CancellationRequestStatus.APPROVED:
            query = query.filter(PartnerAssignment.cancellation_approved.is_(True))
        elif filters.request_status == CancellationRequestStatus.REJECTED:
            query = query.filter(
                PartnerAssignment.cancellation_rejected.is_(True),
                PartnerAssignment.status != AssignmentStatus.CANCELLATION_REQUESTED,
            )

        if filters.partner_id:
            query = query.filter(or_(Partner.id == filters.partner_id, Partner.partner_code == filters.partner_id))
        if filters.service_type:
            query = query.filter(Lead.service_type == filters.service_type)
        if filters.lead_id:
            query = query.filter(or_(Lead.id == filters.lead_id, Lead.lead_id == filters.lead_id))
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            query = query.filter(or_(
                Lead.lead_id.ilike(pattern),
                Partner.company_name.ilike(pattern),
                Partner.partner_code.ilike(pattern),
            ))
        if filters.requested_from:
            query = query.filter(PartnerAssignment.cancellation_requested_at >= filters.requested_from)
        if filters.requested_to:
            query = query.filter(PartnerAssignment.cancellation_requested_at <= filters.requested_to)

        total = query.count()
        items = (
            query.options(joinedload(PartnerAssignment.lead), joinedload(PartnerAssignment.partner))
            .order_by(PartnerAssignment.cancellation_requested_at.desc())
            .offset((filters.page - 1) * filters.page_size)
            .limit(filters.page_size)
            .all()
        )
        return items, total


class AdminSettingsReader:
    """Read-only access to the singleton AdminSettings row."""

    def __init__(self, db: Session):
        self.db = db

    def read(self) -> Optional[AdminSettings]:
        """
        Return the settings row, or None when it was never saved.

        The query runs inside a SAVEPOINT so a failed read leaves the
        surrounding transaction usable.

        Raises:
            Unavailable: when the settings cannot be read
        """
        try:
            with self.db.begin_nested():
                return self._query()
        except (OperationalError, DBAPIError) as e:
            logger.warning(f"Admin settings unavailable: {e.__class__.__name__}")
            raise Unavailable("Admin settings are unavailable") from e

    def _query(self) -> Optional[AdminSettings]:
        return self.db.query(AdminSettings).filter(AdminSettings.id == 1).first()
