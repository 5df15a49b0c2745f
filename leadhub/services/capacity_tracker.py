"""
Weekly lead quota accounting.

A partner's usage is the number of assignments made to them in the current
week on leads of one service type, whatever the assignment's status now.
Capacity is advisory: callers surface a warning, they never block on it.
"""
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, Optional, Tuple

from leadhub.config import settings as app_settings
from leadhub.models.admin_settings import AdminSettings
from leadhub.models.enums import PartnerType, ServiceType, value_of
from leadhub.models.partner import Partner
from leadhub.obs.errors import Unavailable
from leadhub.obs.logging import get_logger
from leadhub.schemas.partners import CapacitySnapshot
from leadhub.services.lead_store import AdminSettingsReader, LeadStore

logger = get_logger(__name__)


FALLBACK_WEEKLY_LIMITS = {
    ServiceType.MOVING.value: {PartnerType.BASIC.value: 3, PartnerType.EXCLUSIVE.value: 5},
}
DEFAULT_FALLBACK_LIMITS = {PartnerType.BASIC.value: 5, PartnerType.EXCLUSIVE.value: 8}


def week_bounds(now: datetime) -> Tuple[datetime, datetime]:
    """[Sunday 00:00, next Sunday 00:00) around ``now``."""
    days_since_sunday = (now.weekday() + 1) % 7
    start = (now - timedelta(days=days_since_sunday)).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=7)


def fallback_weekly_limit(service_type, partner_type) -> int:
    limits = FALLBACK_WEEKLY_LIMITS.get(value_of(service_type), DEFAULT_FALLBACK_LIMITS)
    return limits[value_of(partner_type)]


class CapacityTracker:
    """Answers how many leads a partner got this week and what their limit is."""

    def __init__(
        self,
        store: LeadStore,
        settings_reader: AdminSettingsReader,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.settings_reader = settings_reader
        self.clock = clock
        self._admin_settings: Optional[AdminSettings] = None
        self._settings_loaded = False

    @property
    def admin_settings(self) -> Optional[AdminSettings]:
        """Settings row, read once per tracker; None when unreadable."""
        if not self._settings_loaded:
            self._settings_loaded = True
            try:
                self._admin_settings = self.settings_reader.read()
            except Unavailable:
                logger.warning("Admin settings unavailable, using fallback lead quotas")
                self._admin_settings = None
        return self._admin_settings

    def current_week(self) -> Tuple[datetime, datetime]:
        return week_bounds(self.clock())

    def weekly_limit(self, partner: Partner, service_type) -> int:
        if partner.custom_leads_per_week and partner.custom_leads_per_week > 0:
            return partner.custom_leads_per_week

        admin_settings = self.admin_settings
        if admin_settings is not None:
            configured = admin_settings.leads_per_week(service_type, partner.partner_type)
            if configured is not None:
                return configured

        return fallback_weekly_limit(service_type, partner.partner_type)

    def week_counts(self, partner_ids: Iterable[str], service_type) -> Dict[str, int]:
        start, end = self.current_week()
        return self.store.count_assignments_in_window(partner_ids, value_of(service_type), start, end)

    def current_week_count(self, partner_id: str, service_type) -> int:
        return self.week_counts([partner_id], service_type).get(partner_id, 0)

    def has_capacity(self, partner: Partner, service_type) -> bool:
        return self.current_week_count(partner.id, service_type) < self.weekly_limit(partner, service_type)

    def get_capacity(self, partner: Partner, service_type, current: Optional[int] = None) -> CapacitySnapshot:
        if current is None:
            current = self.current_week_count(partner.id, service_type)
        limit = self.weekly_limit(partner, service_type)
        start, end = self.current_week()
        return CapacitySnapshot(
            partner_id=partner.id,
            service_type=value_of(service_type),
            current=current,
            limit=limit,
            has_capacity=current < limit,
            week_start=start,
            week_end=end,
        )

    def max_basic_assignments(self) -> int:
        """Active assignments after which a lead counts as fully assigned."""
        admin_settings = self.admin_settings
        if admin_settings is not None and admin_settings.basic_partner_lead_limit:
            return admin_settings.basic_partner_lead_limit
        return app_settings.BASIC_PARTNER_LEAD_LIMIT
