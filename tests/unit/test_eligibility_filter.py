"""
Unit tests for the eligibility filter over in-memory partners and leads.
"""
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from leadhub.models.enums import AssignmentStatus, PartnerStatus, PartnerType
from leadhub.models.lead import Lead
from leadhub.models.partner import Partner
from leadhub.models.partner_assignment import PartnerAssignment
from leadhub.services.eligibility_filter import EligibilityFilter, matches_query


def make_partner(pid, name, partner_type=PartnerType.BASIC, services=("moving",), status=PartnerStatus.ACTIVE, **kwargs):
    return Partner(
        id=pid,
        partner_code=f"CODE-{pid}",
        company_name=name,
        partner_type=partner_type,
        services=list(services),
        status=status,
        **kwargs,
    )


@pytest.fixture
def capacity():
    tracker = MagicMock()
    tracker.week_counts.return_value = {"b1": 3, "b2": 1}
    tracker.weekly_limit.return_value = 3
    tracker.current_week.return_value = (datetime(2025, 1, 5), datetime(2025, 1, 12))
    return tracker


@pytest.fixture
def partners():
    return [
        make_partner("b1", "Alpha Movers"),
        make_partner("b2", "Bravo Movers", contact_first_name="Dana", contact_email="dana@bravo.test"),
        make_partner("b3", "Legacy Movers", services=(), service_type="moving"),
        make_partner("c1", "Sparkle Cleaning", services=("cleaning",)),
        make_partner("x1", "Xclusive Moving", partner_type=PartnerType.EXCLUSIVE),
        make_partner("s1", "Suspended Movers", status=PartnerStatus.SUSPENDED),
    ]


def lead_with(*assignments):
    return Lead(id="lead-1", lead_id="MOV-250108-AAAA", service_type="moving", partner_assignments=list(assignments))


def tab_ids(candidates):
    return sorted(c.partner_id for c in candidates)


def test_tabs_split_by_tier_and_service(capacity, partners):
    result = EligibilityFilter(capacity).list_eligible(lead_with(), partners)

    assert tab_ids(result.basic) == ["b1", "b2", "b3"]
    assert tab_ids(result.exclusive) == ["x1"]
    assert result.default_tab == PartnerType.EXCLUSIVE
    assert result.week_start == datetime(2025, 1, 5)


def test_inactive_partners_never_appear(capacity, partners):
    result = EligibilityFilter(capacity).list_eligible(lead_with(), partners, query="movers")
    all_ids = {c.partner_id for c in result.basic + result.exclusive + result.search}
    assert "s1" not in all_ids


def test_capacity_annotations(capacity, partners):
    result = EligibilityFilter(capacity).list_eligible(lead_with(), partners)
    by_id = {c.partner_id: c for c in result.basic}

    assert by_id["b1"].current_week_count == 3
    assert by_id["b1"].has_capacity is False
    assert by_id["b1"].selectable is True
    assert by_id["b2"].has_capacity is True
    assert by_id["b3"].current_week_count == 0


def test_existing_active_assignment_marks_partner_unselectable(capacity, partners):
    lead = lead_with(
        PartnerAssignment(partner_id="b1", partner_type=PartnerType.BASIC, status=AssignmentStatus.ACCEPTED),
        PartnerAssignment(partner_id="b2", partner_type=PartnerType.BASIC, status=AssignmentStatus.REJECTED),
    )

    result = EligibilityFilter(capacity).list_eligible(lead, partners)
    by_id = {c.partner_id: c for c in result.basic}

    assert by_id["b1"].has_existing_assignment is True
    assert by_id["b1"].selectable is False
    # Terminal assignments do not block re-assignment
    assert by_id["b2"].has_existing_assignment is False


def test_search_pool_ignores_tabs_without_type_filter(capacity, partners):
    result = EligibilityFilter(capacity).list_eligible(lead_with(), partners, query="sparkle")
    assert tab_ids(result.search) == ["c1"]


def test_search_with_type_filter_requires_service_match(capacity, partners):
    result = EligibilityFilter(capacity).list_eligible(
        lead_with(), partners, query="i", partner_type=PartnerType.BASIC
    )
    assert "c1" not in tab_ids(result.search)
    assert "x1" not in tab_ids(result.search)


def test_search_matches_contact_fields(capacity, partners):
    assert tab_ids(EligibilityFilter(capacity).list_eligible(lead_with(), partners, query="DANA").search) == ["b2"]
    assert tab_ids(EligibilityFilter(capacity).list_eligible(lead_with(), partners, query="code-x1").search) == ["x1"]


def test_default_tab_basic_when_no_exclusive(capacity, partners):
    basics_only = [p for p in partners if p.partner_type == PartnerType.BASIC]
    assert EligibilityFilter(capacity).list_eligible(lead_with(), basics_only).default_tab == PartnerType.BASIC


def test_default_tab_none_without_suggestions(capacity):
    result = EligibilityFilter(capacity).list_eligible(lead_with(), [])
    assert result.default_tab is None
    assert result.basic == [] and result.exclusive == []


def test_matches_query_blank_matches_all():
    assert matches_query(make_partner("z", "Zeta"), "  ")
