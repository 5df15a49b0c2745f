"""
Candidate partner selection for a lead.

Produces the ``basic`` and ``exclusive`` suggestion tabs plus a ``search``
pool, each candidate annotated with weekly capacity and whether it already
holds an active assignment on the lead.
"""
from typing import Iterable, List, Optional

from leadhub.models.enums import PartnerType, value_of
from leadhub.models.lead import Lead
from leadhub.models.partner import Partner
from leadhub.schemas.partners import CandidatePartner, EligiblePartners
from leadhub.services.capacity_tracker import CapacityTracker


def matches_query(partner: Partner, query: str) -> bool:
    """Case-insensitive match on company, identifiers, contact name or email."""
    needle = query.strip().lower()
    if not needle:
        return True
    haystack = [
        partner.company_name,
        partner.partner_code,
        partner.id,
        partner.contact_first_name,
        partner.contact_last_name,
        partner.contact_email,
    ]
    return any(needle in value.lower() for value in haystack if value)


def has_existing_assignment(lead: Lead, partner_id: str) -> bool:
    return any(a.partner_id == partner_id for a in lead.active_assignments())


def is_suggestion_eligible(partner: Partner, lead: Lead, partner_type: PartnerType) -> bool:
    return (
        partner.is_active()
        and partner.offers_service(lead.service_type)
        and partner.partner_type == partner_type
    )


class EligibilityFilter:
    def __init__(self, capacity: CapacityTracker):
        self.capacity = capacity

    def list_eligible(
        self,
        lead: Lead,
        partners: Iterable[Partner],
        query: Optional[str] = None,
        partner_type: Optional[PartnerType] = None,
    ) -> EligiblePartners:
        """
        Build the candidate tabs for ``lead``.

        ``partners`` should be the active partner population; inactive rows
        are dropped anyway. With ``partner_type`` set the search pool is
        limited to that tier and to partners offering the lead's service.
        """
        active = [p for p in partners if p.is_active()]

        basic = [p for p in active if is_suggestion_eligible(p, lead, PartnerType.BASIC)]
        exclusive = [p for p in active if is_suggestion_eligible(p, lead, PartnerType.EXCLUSIVE)]

        search = [p for p in active if matches_query(p, query or "")]
        if partner_type is not None:
            search = [p for p in search if is_suggestion_eligible(p, lead, partner_type)]

        ids = {p.id for p in basic + exclusive + search}
        counts = self.capacity.week_counts(ids, lead.service_type)
        week_start, week_end = self.capacity.current_week()

        def annotate(group: List[Partner]) -> List[CandidatePartner]:
            return [self._candidate(lead, p, counts.get(p.id, 0)) for p in group]

        if exclusive:
            default_tab = PartnerType.EXCLUSIVE
        elif basic:
            default_tab = PartnerType.BASIC
        else:
            default_tab = None

        return EligiblePartners(
            lead_id=lead.display_id,
            service_type=value_of(lead.service_type),
            basic=annotate(basic),
            exclusive=annotate(exclusive),
            search=annotate(search),
            default_tab=default_tab,
            week_start=week_start,
            week_end=week_end,
        )

    def _candidate(self, lead: Lead, partner: Partner, current: int) -> CandidatePartner:
        limit = self.capacity.weekly_limit(partner, lead.service_type)
        existing = has_existing_assignment(lead, partner.id)
        return CandidatePartner(
            partner_id=partner.id,
            partner_code=partner.partner_code,
            company_name=partner.company_name,
            contact_name=partner.contact_name or None,
            contact_email=partner.contact_email,
            partner_type=partner.partner_type,
            current_week_count=current,
            weekly_limit=limit,
            has_capacity=current < limit,
            has_existing_assignment=existing,
            selectable=not existing,
        )
