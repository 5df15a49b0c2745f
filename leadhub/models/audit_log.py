"""
Audit Log model for lead workflow transitions.
Every assignment and lead status change leaves one row.
"""
from sqlalchemy import Column, String, Text, DateTime, JSON, Index
from ..database import Base
from datetime import datetime


class AuditLog(Base):
    """
    Append-only record of who changed what on a lead.

    Features:
    - Immutable (never delete audit logs)
    - Before/after status captured in ``changes``
    - Request context capture for correlation with logs
    """
    __tablename__ = "audit_logs"

    id = Column(String, primary_key=True)  # UUID

    actor = Column(String, nullable=True, index=True)  # Null for system actions

    action = Column(String, nullable=False, index=True)
    # Examples: "assignment_committed", "assignment_accepted", "cancellation_approved", "lead_status_changed"

    resource_type = Column(String, nullable=False, index=True)
    # "lead" or "partner_assignment"

    resource_id = Column(String, nullable=False, index=True)
    lead_id = Column(String, nullable=False, index=True)

    changes = Column(JSON, nullable=True)
    # Format: {"from_status": "pending", "to_status": "accepted"}

    context = Column(JSON, nullable=True)
    # Additional context: {"partner_id": "...", "reason": "..."}

    request_id = Column(String, nullable=True)

    success = Column(String, nullable=False, default="success")
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('ix_audit_lead_created', 'lead_id', 'created_at'),
        Index('ix_audit_resource', 'resource_type', 'resource_id'),
    )

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "actor": self.actor,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "lead_id": self.lead_id,
            "changes": self.changes,
            "context": self.context,
            "request_id": self.request_id,
            "success": self.success,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
