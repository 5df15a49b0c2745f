"""
Partner-facing schemas: references, capacity and eligibility candidates.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from leadhub.models.enums import PartnerType


class PartnerRef(BaseModel):
    """
    The single partner identifier used inside the workflow.

    Either a partner's internal id or its ``partner_code``.
    """
    id: str = Field(..., min_length=1)

    class Config:
        frozen = True

    @field_validator("id")
    @classmethod
    def strip_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("partner id must not be blank")
        return v

    def __str__(self) -> str:
        return self.id


class CapacitySnapshot(BaseModel):
    """A partner's weekly usage for one service type."""
    partner_id: str
    service_type: str
    current: int = Field(..., description="Assignments made to the partner this week")
    limit: int = Field(..., description="Weekly lead quota")
    has_capacity: bool
    week_start: datetime
    week_end: datetime


class CandidatePartner(BaseModel):
    """One row of an eligibility tab."""
    partner_id: str
    partner_code: Optional[str] = None
    company_name: str
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    partner_type: PartnerType
    current_week_count: int
    weekly_limit: int
    has_capacity: bool
    has_existing_assignment: bool = Field(
        ..., description="Partner already holds an active assignment on this lead"
    )
    selectable: bool


class EligiblePartners(BaseModel):
    lead_id: str
    service_type: str
    basic: List[CandidatePartner] = Field(default_factory=list)
    exclusive: List[CandidatePartner] = Field(default_factory=list)
    search: List[CandidatePartner] = Field(default_factory=list)
    default_tab: Optional[PartnerType] = None
    week_start: datetime
    week_end: datetime
