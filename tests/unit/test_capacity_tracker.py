"""
Unit tests for weekly quota resolution and week boundaries.
"""
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from leadhub.models.admin_settings import AdminSettings
from leadhub.models.enums import PartnerType
from leadhub.models.partner import Partner
from leadhub.obs.errors import Unavailable
from leadhub.services.capacity_tracker import CapacityTracker, fallback_weekly_limit, week_bounds


NOW = datetime(2025, 1, 8, 15, 30)  # Wednesday


def make_tracker(admin_settings=None, counts=None, reader_error=None):
    store = MagicMock()
    store.count_assignments_in_window.return_value = counts or {}
    reader = MagicMock()
    if reader_error:
        reader.read.side_effect = reader_error
    else:
        reader.read.return_value = admin_settings
    return CapacityTracker(store, reader, clock=lambda: NOW), store, reader


def partner(partner_type=PartnerType.BASIC, custom=None):
    return Partner(id="p-1", company_name="Acme Movers", partner_type=partner_type, custom_leads_per_week=custom)


class TestWeekBounds:

    def test_week_starts_sunday_midnight(self):
        start, end = week_bounds(NOW)
        assert start == datetime(2025, 1, 5)
        assert end == datetime(2025, 1, 12)

    def test_sunday_belongs_to_its_own_week(self):
        start, _ = week_bounds(datetime(2025, 1, 12, 0, 0))
        assert start == datetime(2025, 1, 12)

    def test_saturday_night_is_still_previous_week(self):
        start, end = week_bounds(datetime(2025, 1, 11, 23, 59, 59))
        assert start == datetime(2025, 1, 5)
        assert end == datetime(2025, 1, 12)


class TestWeeklyLimit:

    def test_custom_override_wins(self):
        settings_row = AdminSettings(lead_distribution={"moving": {"basic": {"leadsPerWeek": 9}}})
        tracker, _, _ = make_tracker(admin_settings=settings_row)
        assert tracker.weekly_limit(partner(custom=12), "moving") == 12

    def test_zero_override_is_ignored(self):
        tracker, _, _ = make_tracker(admin_settings=None)
        assert tracker.weekly_limit(partner(custom=0), "moving") == 3

    def test_admin_matrix_used_when_present(self):
        settings_row = AdminSettings(lead_distribution={"moving": {"basic": {"leadsPerWeek": 9}}})
        tracker, _, _ = make_tracker(admin_settings=settings_row)
        assert tracker.weekly_limit(partner(), "moving") == 9

    def test_missing_matrix_entry_falls_back(self):
        settings_row = AdminSettings(lead_distribution={"moving": {"basic": {"leadsPerWeek": 9}}})
        tracker, _, _ = make_tracker(admin_settings=settings_row)
        assert tracker.weekly_limit(partner(PartnerType.EXCLUSIVE), "moving") == 5

    @pytest.mark.parametrize("service,partner_type,expected", [
        ("moving", PartnerType.BASIC, 3),
        ("moving", PartnerType.EXCLUSIVE, 5),
        ("cleaning", PartnerType.BASIC, 5),
        ("cleaning", PartnerType.EXCLUSIVE, 8),
        ("gardening", PartnerType.EXCLUSIVE, 8),
    ])
    def test_fallback_constants(self, service, partner_type, expected):
        assert fallback_weekly_limit(service, partner_type) == expected

    def test_unavailable_settings_degrade_to_fallback(self):
        tracker, _, reader = make_tracker(reader_error=Unavailable("down"))

        assert tracker.weekly_limit(partner(), "cleaning") == 5
        assert tracker.weekly_limit(partner(PartnerType.EXCLUSIVE), "cleaning") == 8
        # Read once per tracker
        assert reader.read.call_count == 1


class TestUsage:

    def test_current_week_count_queries_current_window(self):
        tracker, store, _ = make_tracker(counts={"p-1": 2})

        assert tracker.current_week_count("p-1", "moving") == 2
        store.count_assignments_in_window.assert_called_once_with(
            ["p-1"], "moving", datetime(2025, 1, 5), datetime(2025, 1, 12)
        )

    def test_has_capacity_is_strictly_below_limit(self):
        tracker, store, _ = make_tracker(counts={"p-1": 3})
        assert tracker.has_capacity(partner(), "moving") is False

        store.count_assignments_in_window.return_value = {"p-1": 2}
        assert tracker.has_capacity(partner(), "moving") is True

    def test_get_capacity_snapshot(self):
        tracker, _, _ = make_tracker(counts={"p-1": 4})

        snapshot = tracker.get_capacity(partner(), "moving")

        assert snapshot.current == 4
        assert snapshot.limit == 3
        assert snapshot.has_capacity is False
        assert snapshot.week_start == datetime(2025, 1, 5)

    def test_max_basic_assignments_prefers_settings(self):
        tracker, _, _ = make_tracker(admin_settings=AdminSettings(basic_partner_lead_limit=5))
        assert tracker.max_basic_assignments() == 5

    def test_max_basic_assignments_env_fallback(self):
        tracker, _, _ = make_tracker(admin_settings=None)
        assert tracker.max_basic_assignments() == 3
