from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import status
from loguru import logger

from shelter_api.dependencies import get_adoption_workflow
from shelter_api.dependencies import get_current_actor
from shelter_api.lifecycle.adoption import AdoptionWorkflow
from shelter_api.lifecycle.models import Actor
from shelter_api.lifecycle.models import AdoptionApplication
from shelter_api.lifecycle.models import AdoptionDecision
from shelter_api.lifecycle.models import AdoptionRequest
from shelter_api.schemas.schemas import AdoptionResponse
from shelter_api.schemas.schemas import GetAdoptionsQueryParams
from shelter_api.schemas.schemas import GetAdoptionsResponse
from shelter_api.schemas.schemas import MessageResponse
from shelter_api.schemas.schemas import PaginationInfo
from shelter_api.schemas.schemas import StatusOverviewResponse

ROUTER_ADOPTIONS = APIRouter(tags=["Adoptions"])

_CONFLICT_EXAMPLE = {
    "detail": "Pet 7 was claimed by a concurrent request",
    "error_type": "ConflictingUpdate",
    "retryable": True,
}


@ROUTER_ADOPTIONS.get("/adoptions")
async def list_adoptions(
    request: Request,
    query_params: GetAdoptionsQueryParams = Depends(),
    actor: Actor = Depends(get_current_actor),
    workflow: AdoptionWorkflow = Depends(get_adoption_workflow),
) -> GetAdoptionsResponse:
    """
    List adoption requests visible to the caller.

    Users see their own applications, shelters see applications for pets they listed,
    admins see everything.
    """
    logger.info(
        "Listing adoption requests",
        status=query_params.status,
        page=query_params.page,
        method=request.method,
        path=request.url.path,
    )
    page = await workflow.list_requests(actor, query_params.to_page(), status=query_params.status)
    return GetAdoptionsResponse(adoptions=page.items, pagination=PaginationInfo.from_page(page))


@ROUTER_ADOPTIONS.get("/adoptions/stats/overview")
async def adoption_stats(
    actor: Actor = Depends(get_current_actor),
    workflow: AdoptionWorkflow = Depends(get_adoption_workflow),
) -> StatusOverviewResponse:
    """Adoption request counts per status (admin only)."""
    counts = await workflow.stats(actor)
    return StatusOverviewResponse.from_counts(counts)


@ROUTER_ADOPTIONS.get("/adoptions/{request_id}")
async def get_adoption(
    request_id: int,
    actor: Actor = Depends(get_current_actor),
    workflow: AdoptionWorkflow = Depends(get_adoption_workflow),
) -> AdoptionRequest:
    return await workflow.get(actor, request_id)


##########################


@ROUTER_ADOPTIONS.post(
    "/adoptions",
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_409_CONFLICT: {
            "description": "Pet not available, duplicate request, or lost a concurrent claim",
            "content": {"application/json": {"example": _CONFLICT_EXAMPLE}},
        },
    },
)
async def submit_adoption(
    application: AdoptionApplication,
    actor: Actor = Depends(get_current_actor),
    workflow: AdoptionWorkflow = Depends(get_adoption_workflow),
) -> AdoptionResponse:
    """Apply to adopt an available pet (role user)."""
    adoption = await workflow.submit(actor, application)
    return AdoptionResponse(message="Adoption request submitted successfully", adoption=adoption)


@ROUTER_ADOPTIONS.put(
    "/adoptions/{request_id}",
    responses={
        status.HTTP_409_CONFLICT: {
            "description": "Transition not allowed, or the pet's claim changed",
            "content": {"application/json": {"example": _CONFLICT_EXAMPLE}},
        },
    },
)
async def decide_adoption(
    request_id: int,
    decision: AdoptionDecision,
    actor: Actor = Depends(get_current_actor),
    workflow: AdoptionWorkflow = Depends(get_adoption_workflow),
) -> AdoptionResponse:
    """Approve, reject, complete or re-open a request (owning shelter or admin)."""
    adoption = await workflow.decide(actor, request_id, decision)
    return AdoptionResponse(message=f"Adoption request {adoption.status.value} successfully", adoption=adoption)


@ROUTER_ADOPTIONS.post("/adoptions/{request_id}/withdraw")
async def withdraw_adoption(
    request_id: int,
    actor: Actor = Depends(get_current_actor),
    workflow: AdoptionWorkflow = Depends(get_adoption_workflow),
) -> MessageResponse:
    """Withdraw your own pending request; the pet returns to the pool."""
    await workflow.withdraw(actor, request_id)
    return MessageResponse(message="Adoption request withdrawn successfully")


@ROUTER_ADOPTIONS.delete("/adoptions/{request_id}")
async def delete_adoption(
    request_id: int,
    actor: Actor = Depends(get_current_actor),
    workflow: AdoptionWorkflow = Depends(get_adoption_workflow),
) -> MessageResponse:
    """Delete a request in any status (admin only)."""
    await workflow.delete(actor, request_id)
    return MessageResponse(message="Adoption request deleted successfully")
