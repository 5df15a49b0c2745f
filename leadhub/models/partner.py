"""
Partner model: a service provider eligible to receive leads.

Registration and profile management live outside this service; the
workflow only reads partners and bumps their lead counters.
"""
from datetime import datetime
import random
import string
import time
from uuid import uuid4

from sqlalchemy import Column, DateTime, Enum, Integer, JSON, String, Index, event
from sqlalchemy.orm import relationship

from leadhub.database import Base
from leadhub.models.enums import PartnerStatus, PartnerType, ServiceType, value_of


class Partner(Base):
    __tablename__ = "partners"
    __table_args__ = (
        Index("ix_partners_status_type", "status", "partner_type"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    partner_code = Column(String, unique=True, index=True, nullable=True, comment="Human readable id, e.g. BAS-MOV-123456")

    company_name = Column(String, nullable=False)
    contact_first_name = Column(String, nullable=True)
    contact_last_name = Column(String, nullable=True)
    contact_email = Column(String, nullable=True)
    contact_phone = Column(String, nullable=True)

    partner_type = Column(
        Enum(PartnerType, native_enum=False, name="partner_type"),
        default=PartnerType.BASIC,
        nullable=False,
    )
    status = Column(
        Enum(PartnerStatus, native_enum=False, name="partner_status"),
        default=PartnerStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Legacy single-service partners only set service_type
    service_type = Column(String, nullable=True, index=True)
    services = Column(JSON, nullable=True, comment="List of service types offered")

    # customPricing.leadsPerWeek override
    custom_leads_per_week = Column(Integer, nullable=True)

    # Lead counters (the only partner fields the workflow writes)
    total_leads_received = Column(Integer, default=0, nullable=False)
    total_leads_accepted = Column(Integer, default=0, nullable=False)
    total_leads_rejected = Column(Integer, default=0, nullable=False)
    total_leads_cancelled = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    assignments = relationship("PartnerAssignment", back_populates="partner")

    def offers_service(self, service_type: str) -> bool:
        offered = [value_of(s) for s in (self.services or [])]
        if value_of(service_type) in offered:
            return True
        return self.service_type == value_of(service_type)

    def is_active(self) -> bool:
        return self.status == PartnerStatus.ACTIVE

    @property
    def contact_name(self) -> str:
        return " ".join(p for p in [self.contact_first_name, self.contact_last_name] if p)

    def __repr__(self):
        return f"<Partner {self.partner_code or self.id} {self.partner_type}>"


def generate_partner_code(partner_type, service_type) -> str:
    type_prefix = "EXC" if partner_type == PartnerType.EXCLUSIVE else "BAS"
    service_prefix = "MOV" if service_type == ServiceType.MOVING else "CLN"
    timestamp = str(int(time.time() * 1000))[-6:]
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=3))
    return f"{type_prefix}-{service_prefix}-{timestamp}{suffix}"


@event.listens_for(Partner, "before_insert")
def _assign_partner_code(mapper, connection, target):
    if not target.partner_code:
        service = target.service_type or next(iter(target.services or []), None)
        target.partner_code = generate_partner_code(target.partner_type or PartnerType.BASIC, service)
