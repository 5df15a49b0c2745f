"""
Partner capacity endpoint.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from leadhub.middleware.rbac import require_role, RBACError, ROLE_PARTNER
from leadhub.routes.dependencies import acting_partner, get_workflow, response_meta
from leadhub.schemas.partners import CapacitySnapshot
from leadhub.schemas.responses import APIResponse, ErrorResponse
from leadhub.services.lead_workflow import LeadWorkflow

router = APIRouter(
    prefix="/api/v1/partners",
    tags=["partners"],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)


@router.get("/{partner_id}/capacity", response_model=APIResponse[CapacitySnapshot])
@require_role(ROLE_PARTNER)
def get_capacity(
    request: Request,
    partner_id: str,
    service_type: Optional[str] = Query(None, description="Defaults to the partner's primary service"),
    workflow: LeadWorkflow = Depends(get_workflow),
) -> APIResponse[CapacitySnapshot]:
    """Leads received this week against the weekly quota."""
    snapshot = workflow.get_capacity(partner_id, service_type)

    own = acting_partner(request)
    if own is not None and own != snapshot.partner_id and own != partner_id:
        raise RBACError([ROLE_PARTNER], getattr(request.state, "user_role", None))

    return APIResponse(data=snapshot, meta=response_meta(request))
