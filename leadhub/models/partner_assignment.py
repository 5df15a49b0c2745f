"""
Partner Assignment model: one partner's relationship to one lead.
"""
from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, Text, Index
from sqlalchemy.orm import relationship

from leadhub.database import Base
from leadhub.models.enums import AssignmentStatus, PartnerType, is_active_assignment_status


class PartnerAssignment(Base):
    """
    Owned by its parent Lead. ``partner_type`` is snapshotted at assignment
    time so later tier changes never rewrite history.

    Once ``cancelled`` or ``rejected`` only audit fields may change, and an
    assignment is never re-activated: re-assigning the same partner creates a
    new row.
    """
    __tablename__ = "partner_assignments"
    __table_args__ = (
        Index("ix_partner_assignments_lead_partner", "lead_pk", "partner_id"),
        Index("ix_partner_assignments_partner_assigned", "partner_id", "assigned_at"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    lead_pk = Column(String, ForeignKey("leads.id"), nullable=False, index=True)
    partner_id = Column(String, ForeignKey("partners.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0, comment="Insertion order on the lead")

    partner_type = Column(
        Enum(PartnerType, native_enum=False, name="assignment_partner_type"),
        nullable=False,
    )
    status = Column(
        Enum(AssignmentStatus, native_enum=False, name="assignment_status"),
        default=AssignmentStatus.PENDING,
        nullable=False,
    )
    assigned_by = Column(String, nullable=True)
    assigned_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    accepted_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # Cancellation cycle
    cancellation_requested_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancellation_approved = Column(Boolean, default=False, nullable=False)
    cancellation_approved_at = Column(DateTime, nullable=True)
    cancellation_rejected = Column(Boolean, default=False, nullable=False, comment="Sticky: no further cancellation requests")
    cancellation_rejected_at = Column(DateTime, nullable=True)
    cancellation_rejection_reason = Column(Text, nullable=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    lead = relationship("Lead", back_populates="partner_assignments")
    partner = relationship("Partner", back_populates="assignments")

    def is_active(self) -> bool:
        return is_active_assignment_status(self.status)

    def is_exclusive(self) -> bool:
        return self.partner_type == PartnerType.EXCLUSIVE

    def __repr__(self):
        return f"<PartnerAssignment {self.id} partner={self.partner_id} {self.status}>"
