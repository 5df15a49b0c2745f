"""
Admin Settings model: marketplace-wide configuration read by the workflow.
"""
from copy import deepcopy
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, JSON, String

from leadhub.database import Base
from leadhub.models.enums import value_of


# Matches the defaults an admin sees before editing the distribution matrix
DEFAULT_LEAD_DISTRIBUTION = {
    "moving": {
        "basic": {"leadsPerWeek": 3},
        "exclusive": {"leadsPerWeek": 8},
    },
    "cleaning": {
        "basic": {"leadsPerWeek": 5},
        "exclusive": {"leadsPerWeek": 12},
    },
}


class AdminSettings(Base):
    """
    Singleton settings row.

    ``lead_distribution`` is the ``[serviceType][partnerType].leadsPerWeek``
    quota matrix; ``basic_partner_lead_limit`` is the number of concurrently
    active basic assignments after which a lead counts as fully assigned.
    """
    __tablename__ = "admin_settings"

    id = Column(Integer, primary_key=True, default=1)
    lead_distribution = Column(JSON, nullable=True, default=lambda: deepcopy(DEFAULT_LEAD_DISTRIBUTION))
    basic_partner_lead_limit = Column(Integer, nullable=True)

    last_modified_by = Column(String, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def leads_per_week(self, service_type: str, partner_type: str):
        """Configured weekly quota or None when the matrix has no entry."""
        service_entry = (self.lead_distribution or {}).get(value_of(service_type)) or {}
        tier_entry = service_entry.get(value_of(partner_type)) or {}
        value = tier_entry.get("leadsPerWeek")
        return int(value) if value is not None else None
