"""
Lead assignment endpoints: eligibility, commit, accept/reject and completion.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from leadhub.middleware.rbac import require_role, ROLE_ADMIN, ROLE_PARTNER
from leadhub.models.enums import PartnerType
from leadhub.routes.dependencies import acting_partner, get_actor, get_workflow, response_meta
from leadhub.schemas.leads import CommitAssignmentOut, CommitAssignmentRequest, LeadOut, AssignmentOut, ReasonRequest
from leadhub.schemas.partners import EligiblePartners
from leadhub.schemas.responses import APIResponse, ErrorResponse
from leadhub.services.lead_workflow import LeadWorkflow

router = APIRouter(
    prefix="/api/v1/leads",
    tags=["leads"],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


@router.get("/{lead_id}", response_model=APIResponse[LeadOut])
@require_role(ROLE_ADMIN)
def get_lead(
    request: Request,
    lead_id: str,
    workflow: LeadWorkflow = Depends(get_workflow),
) -> APIResponse[LeadOut]:
    lead = workflow.store.get_lead(lead_id)
    return APIResponse(data=LeadOut.model_validate(lead), meta=response_meta(request))


@router.get("/{lead_id}/eligible-partners", response_model=APIResponse[EligiblePartners])
@require_role(ROLE_ADMIN)
def list_eligible_partners(
    request: Request,
    lead_id: str,
    q: Optional[str] = Query(None, description="Free-text search over company, id, contact name or email"),
    partner_type: Optional[PartnerType] = Query(None, description="Restrict the search pool to one tier"),
    workflow: LeadWorkflow = Depends(get_workflow),
) -> APIResponse[EligiblePartners]:
    """
    Candidate partners for a lead, split into basic/exclusive suggestion tabs
    and a search pool. Partners already holding an active assignment on the
    lead come back with ``selectable`` false.
    """
    eligible = workflow.list_eligible_partners(lead_id, query=q, partner_type=partner_type)
    return APIResponse(data=eligible, meta=response_meta(request))


@router.post("/{lead_id}/assignments", response_model=APIResponse[CommitAssignmentOut], status_code=201)
@require_role(ROLE_ADMIN)
def commit_assignment(
    request: Request,
    lead_id: str,
    body: CommitAssignmentRequest,
    workflow: LeadWorkflow = Depends(get_workflow),
) -> APIResponse[CommitAssignmentOut]:
    result = workflow.commit_assignment(lead_id, body.partner, actor=get_actor(request))
    data = CommitAssignmentOut(
        lead=LeadOut.model_validate(result.assignment.lead),
        assignment=AssignmentOut.model_validate(result.assignment),
        capacity=result.capacity,
        capacity_warning=result.capacity_warning,
    )
    return APIResponse(data=data, meta=response_meta(request), message=result.capacity_warning)


@router.post("/{lead_id}/assignments/{assignment_id}/accept", response_model=APIResponse[LeadOut])
@require_role(ROLE_PARTNER)
def accept_assignment(
    request: Request,
    lead_id: str,
    assignment_id: str,
    workflow: LeadWorkflow = Depends(get_workflow),
) -> APIResponse[LeadOut]:
    lead = workflow.accept_assignment(
        lead_id,
        assignment_id,
        actor=get_actor(request),
        acting_partner=acting_partner(request),
    )
    return APIResponse(data=LeadOut.model_validate(lead), meta=response_meta(request))


@router.post("/{lead_id}/assignments/{assignment_id}/reject", response_model=APIResponse[LeadOut])
@require_role(ROLE_PARTNER)
def reject_assignment(
    request: Request,
    lead_id: str,
    assignment_id: str,
    body: ReasonRequest,
    workflow: LeadWorkflow = Depends(get_workflow),
) -> APIResponse[LeadOut]:
    lead = workflow.reject_assignment(
        lead_id,
        assignment_id,
        body.reason,
        actor=get_actor(request),
        acting_partner=acting_partner(request),
    )
    return APIResponse(data=LeadOut.model_validate(lead), meta=response_meta(request))


@router.post("/{lead_id}/complete", response_model=APIResponse[LeadOut])
@require_role(ROLE_ADMIN)
def complete_lead(
    request: Request,
    lead_id: str,
    workflow: LeadWorkflow = Depends(get_workflow),
) -> APIResponse[LeadOut]:
    lead = workflow.complete_lead(lead_id, actor=get_actor(request))
    return APIResponse(data=LeadOut.model_validate(lead), meta=response_meta(request))
