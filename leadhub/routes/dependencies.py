"""
Shared FastAPI dependencies for the workflow routes.
"""
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from leadhub.database import get_db
from leadhub.middleware.rbac import is_admin
from leadhub.schemas.responses import APIMetadata
from leadhub.services.lead_workflow import LeadWorkflow


def get_workflow(request: Request, db: Session = Depends(get_db)) -> LeadWorkflow:
    return LeadWorkflow(db, trace_id=getattr(request.state, "trace_id", None))


def get_actor(request: Request) -> Optional[str]:
    return getattr(request.state, "user_id", None)


def acting_partner(request: Request) -> Optional[str]:
    """Partner identity to scope assignment access to; None for admins."""
    if is_admin(request):
        return None
    return getattr(request.state, "user_id", None)


def response_meta(request: Request) -> APIMetadata:
    return APIMetadata(request_id=getattr(request.state, "trace_id", None))
