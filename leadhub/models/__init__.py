from leadhub.models.admin_settings import AdminSettings
from leadhub.models.audit_log import AuditLog
from leadhub.models.lead import Lead
from leadhub.models.lead_status_history import LeadStatusHistory
from leadhub.models.partner import Partner
from leadhub.models.partner_assignment import PartnerAssignment

__all__ = [
    "AdminSettings",
    "AuditLog",
    "Lead",
    "LeadStatusHistory",
    "Partner",
    "PartnerAssignment",
]
