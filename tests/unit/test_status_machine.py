"""
Unit tests for the status state machine: transition table and the pure
lead status derivation.
"""
from types import SimpleNamespace

import pytest

from leadhub.models.enums import AssignmentAction, AssignmentStatus, LeadStatus, PartnerType
from leadhub.obs.errors import InvalidTransition
from leadhub.services.status_machine import derive_lead_status, exclusivity_intact, next_status


def a(status, partner_type=PartnerType.BASIC):
    return SimpleNamespace(status=status, partner_type=partner_type)


class TestTransitionTable:

    @pytest.mark.parametrize("current,action,expected", [
        (AssignmentStatus.PENDING, AssignmentAction.ACCEPT, AssignmentStatus.ACCEPTED),
        (AssignmentStatus.PENDING, AssignmentAction.REJECT, AssignmentStatus.REJECTED),
        (AssignmentStatus.ACCEPTED, AssignmentAction.REQUEST_CANCEL, AssignmentStatus.CANCELLATION_REQUESTED),
        (AssignmentStatus.CANCELLATION_REQUESTED, AssignmentAction.APPROVE_CANCEL, AssignmentStatus.CANCELLED),
        (AssignmentStatus.CANCELLATION_REQUESTED, AssignmentAction.REJECT_CANCEL, AssignmentStatus.ACCEPTED),
    ])
    def test_legal_transitions(self, current, action, expected):
        assert next_status(current, action) == expected

    def test_accepts_raw_strings(self):
        assert next_status("pending", "accept") == AssignmentStatus.ACCEPTED

    @pytest.mark.parametrize("current,action", [
        (AssignmentStatus.PENDING, AssignmentAction.REQUEST_CANCEL),
        (AssignmentStatus.ACCEPTED, AssignmentAction.ACCEPT),
        (AssignmentStatus.ACCEPTED, AssignmentAction.REJECT),
        (AssignmentStatus.REJECTED, AssignmentAction.ACCEPT),
        (AssignmentStatus.CANCELLED, AssignmentAction.REQUEST_CANCEL),
        (AssignmentStatus.CANCELLED, AssignmentAction.REJECT_CANCEL),
        (AssignmentStatus.CANCELLATION_REQUESTED, AssignmentAction.ACCEPT),
    ])
    def test_illegal_transitions_name_both_states(self, current, action):
        with pytest.raises(InvalidTransition) as exc_info:
            next_status(current, action)

        assert exc_info.value.current == current.value
        assert exc_info.value.requested == action.value
        assert exc_info.value.error_code == "INVALID_TRANSITION"


class TestDeriveLeadStatus:

    def test_no_assignments_is_pending(self):
        assert derive_lead_status([]) == LeadStatus.PENDING

    def test_single_pending_basic_is_partial(self):
        assert derive_lead_status([a("pending")]) == LeadStatus.PARTIAL_ASSIGNED

    def test_pending_basics_at_limit_are_assigned(self):
        assignments = [a("pending"), a("pending"), a("pending")]
        assert derive_lead_status(assignments, max_basic_assignments=3) == LeadStatus.ASSIGNED
        assert derive_lead_status(assignments, max_basic_assignments=4) == LeadStatus.PARTIAL_ASSIGNED

    def test_single_pending_exclusive_is_assigned(self):
        assert derive_lead_status([a("pending", PartnerType.EXCLUSIVE)]) == LeadStatus.ASSIGNED

    def test_any_accepted_wins_over_pending(self):
        assert derive_lead_status([a("pending"), a("accepted")]) == LeadStatus.ACCEPTED

    def test_cancellation_requested_wins_over_accepted(self):
        assignments = [a("accepted"), a("cancellationRequested")]
        assert derive_lead_status(assignments) == LeadStatus.CANCELLATION_REQUESTED

    def test_terminal_assignments_are_ignored_while_one_is_active(self):
        assignments = [a("rejected"), a("cancelled"), a("pending")]
        assert derive_lead_status(assignments) == LeadStatus.PARTIAL_ASSIGNED

    def test_all_rejected(self):
        assert derive_lead_status([a("rejected"), a("rejected")]) == LeadStatus.REJECTED

    def test_cancelled_when_nothing_active_and_one_cancelled(self):
        assert derive_lead_status([a("rejected"), a("cancelled")]) == LeadStatus.CANCELLED
        assert derive_lead_status([a("cancelled")]) == LeadStatus.CANCELLED

    def test_is_deterministic_over_order(self):
        forward = [a("pending"), a("rejected"), a("accepted")]
        assert derive_lead_status(forward) == derive_lead_status(list(reversed(forward)))


class TestExclusivityIntact:

    def test_lone_exclusive(self):
        assert exclusivity_intact([a("accepted", PartnerType.EXCLUSIVE), a("cancelled")])

    def test_exclusive_beside_active_basic(self):
        assert not exclusivity_intact([a("pending", PartnerType.EXCLUSIVE), a("pending")])

    def test_basics_only(self):
        assert exclusivity_intact([a("pending"), a("accepted"), a("rejected")])
