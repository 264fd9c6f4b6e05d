from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import status
from loguru import logger

from shelter_api.dependencies import get_current_actor
from shelter_api.dependencies import get_donation_workflow
from shelter_api.dependencies import get_multipart_payload
from shelter_api.lifecycle.donation import DonationWorkflow
from shelter_api.lifecycle.models import Actor
from shelter_api.lifecycle.models import DonationDecision
from shelter_api.lifecycle.models import DonationOffer
from shelter_api.lifecycle.models import DonationOfferCreate
from shelter_api.lifecycle.models import DonorDetails
from shelter_api.lifecycle.models import PetAttributes
from shelter_api.schemas.schemas import DonationResponse
from shelter_api.schemas.schemas import GetDonationsQueryParams
from shelter_api.schemas.schemas import GetDonationsResponse
from shelter_api.schemas.schemas import MessageResponse
from shelter_api.schemas.schemas import MultipartPayload
from shelter_api.schemas.schemas import PaginationInfo
from shelter_api.schemas.schemas import StatusOverviewResponse

ROUTER_DONATIONS = APIRouter(tags=["Donations"])


@ROUTER_DONATIONS.get("/donations")
async def list_donations(
    request: Request,
    query_params: GetDonationsQueryParams = Depends(),
    actor: Actor = Depends(get_current_actor),
    workflow: DonationWorkflow = Depends(get_donation_workflow),
) -> GetDonationsResponse:
    """
    List donation offers visible to the caller.

    Shelters see offers addressed to them, users see offers they made, admins see everything.
    """
    logger.info(
        "Listing donation offers",
        status=query_params.status,
        page=query_params.page,
        method=request.method,
        path=request.url.path,
    )
    page = await workflow.list_offers(actor, query_params.to_page(), status=query_params.status)
    return GetDonationsResponse(donations=page.items, pagination=PaginationInfo.from_page(page))


@ROUTER_DONATIONS.get("/donations/stats/overview")
async def donation_stats(
    actor: Actor = Depends(get_current_actor),
    workflow: DonationWorkflow = Depends(get_donation_workflow),
) -> StatusOverviewResponse:
    """Donation offer counts per status (admin only)."""
    counts = await workflow.stats(actor)
    return StatusOverviewResponse.from_counts(counts)


@ROUTER_DONATIONS.get("/donations/{offer_id}")
async def get_donation(
    offer_id: int,
    actor: Actor = Depends(get_current_actor),
    workflow: DonationWorkflow = Depends(get_donation_workflow),
) -> DonationOffer:
    return await workflow.get(actor, offer_id)


##########################


@ROUTER_DONATIONS.post(
    "/donations",
    status_code=status.HTTP_201_CREATED,
    openapi_extra={
        "requestBody": {
            "content": {"multipart/form-data": {"schema": {"type": "object"}}},
            "description": "shelter_id, pet fields and donor fields as form fields plus up to 3 'images' files",
        }
    },
    responses={
        status.HTTP_404_NOT_FOUND: {
            "description": "Shelter not found or inactive",
            "content": {
                "application/json": {
                    "example": {"detail": "Shelter not found or inactive: 3", "error_type": "ShelterNotFound"}
                }
            },
        },
    },
)
async def create_donation(
    actor: Actor = Depends(get_current_actor),
    payload: MultipartPayload = Depends(get_multipart_payload),
    workflow: DonationWorkflow = Depends(get_donation_workflow),
) -> DonationResponse:
    """Offer a pet to a shelter. The pet stays hidden until the shelter accepts the offer."""
    offer = DonationOfferCreate(
        shelter_id=payload.fields.get("shelter_id"),
        pet=PetAttributes(**payload.pick(PetAttributes.model_fields)),
        donor=DonorDetails(**payload.pick(DonorDetails.model_fields)),
    )
    donation = await workflow.create(actor, offer, payload.uploads)
    return DonationResponse(message="Donation request submitted successfully", donation=donation)


@ROUTER_DONATIONS.put("/donations/{offer_id}")
async def decide_donation(
    offer_id: int,
    decision: DonationDecision,
    actor: Actor = Depends(get_current_actor),
    workflow: DonationWorkflow = Depends(get_donation_workflow),
) -> DonationResponse:
    """Accept, reject or complete an offer (receiving shelter or admin)."""
    donation = await workflow.decide(actor, offer_id, decision)
    return DonationResponse(message=f"Donation request {donation.status.value} successfully", donation=donation)


@ROUTER_DONATIONS.delete("/donations/{offer_id}")
async def delete_donation(
    offer_id: int,
    actor: Actor = Depends(get_current_actor),
    workflow: DonationWorkflow = Depends(get_donation_workflow),
) -> MessageResponse:
    """Delete an offer (admin only). A pet that was never listed is removed with it."""
    await workflow.delete(actor, offer_id)
    return MessageResponse(message="Donation request deleted successfully")
