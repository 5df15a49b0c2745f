from datetime import datetime
import random
import string
from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, Enum, String, Text, Index, event
from sqlalchemy.orm import relationship

from leadhub.database import Base
from leadhub.models.enums import LeadStatus, ServiceType, is_active_assignment_status, value_of


class Lead(Base):
    """
    A customer service request routed to one or more partners.

    ``status`` is a roll-up of ``partner_assignments`` recomputed by the
    status state machine after every assignment mutation; only the admin
    ``completed`` transition is written directly. Leads are never deleted.
    """

    __tablename__ = "leads"
    __table_args__ = (
        Index("ix_leads_service_status", "service_type", "status"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    lead_id = Column(String, unique=True, index=True, nullable=True, comment="Human readable id, e.g. MOV-250101-AB12")
    service_type = Column(String, nullable=False)

    status = Column(
        Enum(LeadStatus, native_enum=False, name="lead_status"),
        default=LeadStatus.PENDING,
        nullable=False,
    )

    customer_name = Column(String, nullable=True)
    fixed_date = Column(Date, nullable=True, comment="Requested service date; no assignment after it passed")

    accepted_at = Column(DateTime, nullable=True, comment="First partner acceptance")
    closed_at = Column(DateTime, nullable=True, comment="Set when an admin completes the lead")
    closed_by = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    partner_assignments = relationship(
        "PartnerAssignment",
        back_populates="lead",
        order_by="PartnerAssignment.position",
        cascade="all, delete-orphan",
    )
    status_history = relationship(
        "LeadStatusHistory",
        back_populates="lead",
        order_by="LeadStatusHistory.created_at",
    )

    def active_assignments(self):
        return [a for a in self.partner_assignments if is_active_assignment_status(a.status)]

    def is_closed(self) -> bool:
        return self.closed_at is not None or self.status == LeadStatus.COMPLETED

    @property
    def display_id(self) -> str:
        return self.lead_id or self.id

    def __repr__(self):
        return f"<Lead {self.display_id} {self.status}>"


def generate_lead_id(service_type, now=None) -> str:
    prefixes = {ServiceType.MOVING.value: "MOV", ServiceType.CLEANING.value: "CLN"}
    prefix = prefixes.get(value_of(service_type), "CAN")
    now = now or datetime.utcnow()
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=4))
    return f"{prefix}-{now.strftime('%y%m%d')}-{suffix}"


@event.listens_for(Lead, "before_insert")
def _assign_lead_id(mapper, connection, target):
    if not target.lead_id:
        target.lead_id = generate_lead_id(target.service_type)
