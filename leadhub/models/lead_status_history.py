"""
Lead Status History model for tracking lead status roll-up changes.
"""
from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, Index
from sqlalchemy.orm import relationship

from leadhub.database import Base


class LeadStatusHistory(Base):
    """
    Tracks transitions in lead status.

    Records when status changes: pending -> assigned -> accepted -> completed
    or: assigned -> cancellationRequested -> cancelled
    """
    __tablename__ = "lead_status_history"
    __table_args__ = (
        Index("ix_lead_status_history_lead", "lead_pk", "created_at"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    lead_pk = Column(String, ForeignKey("leads.id"), nullable=False, index=True)

    from_status = Column(String, nullable=True, comment="Previous status")
    to_status = Column(String, nullable=False, comment="New status")

    reason = Column(Text, nullable=True, comment="Assignment action that triggered the change")
    triggered_by = Column(String, nullable=True, comment="Actor id, 'system' if automatic")

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    lead = relationship("Lead", back_populates="status_history")
