"""
Audit logging service for lead workflow transitions.
Provides simple interface for recording who moved a lead or assignment.
"""
import uuid
from typing import Optional, Dict, Any
from sqlalchemy.orm import Session

from leadhub.models.audit_log import AuditLog
from leadhub.models.enums import value_of
from leadhub.obs.logging import get_logger, log_transition

logger = get_logger(__name__)


class AuditLogger:
    """
    Service for recording audit events.

    Rows are added to the caller's session and committed together with the
    mutation they describe, so a rolled back operation leaves no audit trail
    behind.

    Usage:
        audit = AuditLogger(db, request_id=trace_id)
        audit.log_assignment_transition(
            lead=lead,
            assignment=assignment,
            action="accept",
            from_status="pending",
            to_status="accepted",
            actor=user_id,
        )
    """

    def __init__(self, db: Session, request_id: Optional[str] = None):
        self.db = db
        self.request_id = request_id
        self.entries = []

    def log_action(
        self,
        action: str,
        resource_type: str,
        resource_id: str,
        lead_id: str,
        actor: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
        success: str = "success",
        error_message: Optional[str] = None
    ) -> AuditLog:
        audit_log = AuditLog(
            id=str(uuid.uuid4()),
            actor=actor,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            lead_id=lead_id,
            changes=changes,
            context=context,
            request_id=self.request_id,
            success=success,
            error_message=error_message,
        )
        self.db.add(audit_log)
        self.entries.append(audit_log)
        return audit_log

    def log_assignment_transition(
        self,
        lead,
        assignment,
        action: str,
        from_status,
        to_status,
        actor: Optional[str] = None,
        **context
    ) -> AuditLog:
        """Record one assignment status change."""
        from_value = value_of(from_status)
        to_value = value_of(to_status)

        entry = self.log_action(
            action=f"assignment_{value_of(action)}",
            resource_type="partner_assignment",
            resource_id=assignment.id,
            lead_id=lead.id,
            actor=actor,
            changes={"from_status": from_value, "to_status": to_value},
            context={"partner_id": assignment.partner_id, **context},
        )

        log_transition(
            logger,
            action=value_of(action),
            lead_id=lead.display_id,
            from_status=from_value,
            to_status=to_value,
            actor=actor,
            assignment_id=assignment.id,
            partner_id=assignment.partner_id,
        )
        return entry

    def log_lead_status_change(
        self,
        lead,
        from_status,
        to_status,
        actor: Optional[str] = None,
        reason: Optional[str] = None
    ) -> AuditLog:
        """Record a lead status roll-up change."""
        from_value = value_of(from_status)
        to_value = value_of(to_status)

        entry = self.log_action(
            action="lead_status_changed",
            resource_type="lead",
            resource_id=lead.id,
            lead_id=lead.id,
            actor=actor,
            changes={"from_status": from_value, "to_status": to_value},
            context={"reason": reason} if reason else None,
        )

        log_transition(
            logger,
            action="lead_status_changed",
            lead_id=lead.display_id,
            from_status=from_value,
            to_status=to_value,
            actor=actor,
        )
        return entry
