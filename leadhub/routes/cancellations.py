"""
Cancellation request endpoints.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from leadhub.middleware.rbac import require_role, ROLE_ADMIN, ROLE_PARTNER
from leadhub.models.enums import CancellationRequestStatus
from leadhub.routes.dependencies import acting_partner, get_actor, get_workflow, response_meta
from leadhub.schemas.cancellations import CancellationFilters, CancellationRequestCreate, CancellationRow
from leadhub.schemas.leads import AssignmentOut, LeadOut, ReasonRequest
from leadhub.schemas.responses import APIResponse, ErrorResponse, PaginatedResponse, PaginationMeta
from leadhub.services.lead_workflow import LeadWorkflow

router = APIRouter(
    prefix="/api/v1/cancellations",
    tags=["cancellations"],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


@router.get("", response_model=PaginatedResponse[CancellationRow])
@require_role(ROLE_ADMIN)
def list_cancellation_requests(
    request: Request,
    request_status: Optional[CancellationRequestStatus] = Query(None, description="pending, cancellation_approved or cancellation_rejected"),
    partner_id: Optional[str] = Query(None, description="Partner id or code"),
    service_type: Optional[str] = Query(None),
    lead_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Matches lead id, partner code or company name"),
    requested_from: Optional[datetime] = Query(None),
    requested_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    workflow: LeadWorkflow = Depends(get_workflow),
) -> PaginatedResponse[CancellationRow]:
    """
    Every assignment that has had a cancellation requested, newest first,
    with its computed request status.
    """
    filters = CancellationFilters(
        request_status=request_status,
        partner_id=partner_id,
        service_type=service_type,
        lead_id=lead_id,
        search=search,
        requested_from=requested_from,
        requested_to=requested_to,
        page=page,
        page_size=page_size,
    )
    rows, total = workflow.list_cancellation_requests(filters)
    return PaginatedResponse(items=rows, meta=PaginationMeta.build(total, page, page_size))


@router.post("", response_model=APIResponse[AssignmentOut], status_code=201)
@require_role(ROLE_PARTNER)
def request_cancellation(
    request: Request,
    body: CancellationRequestCreate,
    workflow: LeadWorkflow = Depends(get_workflow),
) -> APIResponse[AssignmentOut]:
    assignment = workflow.request_cancellation(
        body.assignment_id,
        body.reason,
        actor=get_actor(request),
        acting_partner=acting_partner(request),
    )
    return APIResponse(data=AssignmentOut.model_validate(assignment), meta=response_meta(request))


@router.post("/{lead_id}/{partner_id}/approve", response_model=APIResponse[LeadOut])
@require_role(ROLE_ADMIN)
def approve_cancellation(
    request: Request,
    lead_id: str,
    partner_id: str,
    workflow: LeadWorkflow = Depends(get_workflow),
) -> APIResponse[LeadOut]:
    lead = workflow.approve_cancellation(lead_id, partner_id, actor=get_actor(request))
    return APIResponse(data=LeadOut.model_validate(lead), meta=response_meta(request))


@router.post("/{lead_id}/{partner_id}/reject", response_model=APIResponse[AssignmentOut])
@require_role(ROLE_ADMIN)
def reject_cancellation(
    request: Request,
    lead_id: str,
    partner_id: str,
    body: ReasonRequest,
    workflow: LeadWorkflow = Depends(get_workflow),
) -> APIResponse[AssignmentOut]:
    assignment = workflow.reject_cancellation(lead_id, partner_id, body.reason, actor=get_actor(request))
    return APIResponse(data=AssignmentOut.model_validate(assignment), meta=response_meta(request))
