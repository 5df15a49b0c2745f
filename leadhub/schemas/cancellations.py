"""
Cancellation request schemas.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from leadhub.models.enums import CancellationRequestStatus, LeadStatus, PartnerType


class CancellationRequestCreate(BaseModel):
    assignment_id: str
    reason: Optional[str] = None


class CancellationRow(BaseModel):
    """Read-only projection of one assignment's cancellation cycle."""
    assignment_id: str
    lead_pk: str
    lead_id: str
    service_type: str
    lead_status: LeadStatus
    partner_id: str
    partner_code: Optional[str] = None
    company_name: Optional[str] = None
    partner_type: PartnerType
    request_status: CancellationRequestStatus
    reason: Optional[str] = None
    requested_at: datetime
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


@dataclass
class CancellationFilters:
    request_status: Optional[CancellationRequestStatus] = None
    partner_id: Optional[str] = None
    service_type: Optional[str] = None
    lead_id: Optional[str] = None
    search: Optional[str] = None
    requested_from: Optional[datetime] = None
    requested_to: Optional[datetime] = None
    page: int = 1
    page_size: int = 20
