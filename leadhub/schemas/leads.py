"""
Lead and assignment schemas for the assignment endpoints.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from leadhub.models.enums import AssignmentStatus, LeadStatus, PartnerType
from leadhub.schemas.partners import CapacitySnapshot


class AssignmentOut(BaseModel):
    id: str
    partner_id: str
    partner_type: PartnerType
    status: AssignmentStatus
    position: int
    assigned_by: Optional[str] = None
    assigned_at: datetime
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancellation_requested_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancellation_approved: bool = False
    cancellation_approved_at: Optional[datetime] = None
    cancellation_rejected: bool = False
    cancellation_rejected_at: Optional[datetime] = None
    cancellation_rejection_reason: Optional[str] = None

    class Config:
        from_attributes = True


class LeadOut(BaseModel):
    id: str
    lead_id: Optional[str] = None
    service_type: str
    status: LeadStatus
    customer_name: Optional[str] = None
    fixed_date: Optional[date] = None
    accepted_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    closed_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    partner_assignments: List[AssignmentOut] = Field(default_factory=list)

    class Config:
        from_attributes = True


class CommitAssignmentRequest(BaseModel):
    """
    Body of an assignment confirmation.

    ``partner`` takes a partner id or code, or a legacy partner object
    carrying ``_id``/``id``/``partnerId``.
    """
    partner: Union[str, Dict[str, Any]]


class CommitAssignmentOut(BaseModel):
    lead: LeadOut
    assignment: AssignmentOut
    capacity: CapacitySnapshot
    capacity_warning: Optional[str] = None


class ReasonRequest(BaseModel):
    reason: Optional[str] = None
