from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import status
from loguru import logger

from shelter_api.dependencies import get_current_actor
from shelter_api.dependencies import get_multipart_payload
from shelter_api.dependencies import get_optional_actor
from shelter_api.dependencies import get_registry
from shelter_api.lifecycle.models import Actor
from shelter_api.lifecycle.models import Pet
from shelter_api.lifecycle.models import PetAttributes
from shelter_api.lifecycle.models import PetUpdate
from shelter_api.lifecycle.registry import PetRegistry
from shelter_api.schemas.schemas import GetPetsQueryParams
from shelter_api.schemas.schemas import GetPetsResponse
from shelter_api.schemas.schemas import GetUserPetsQueryParams
from shelter_api.schemas.schemas import MessageResponse
from shelter_api.schemas.schemas import MultipartPayload
from shelter_api.schemas.schemas import PaginationInfo
from shelter_api.schemas.schemas import PetResponse
from shelter_api.schemas.schemas import PetStatsResponse

ROUTER_PETS = APIRouter(tags=["Pets"])


@ROUTER_PETS.get("/pets")
async def list_pets(
    request: Request,
    query_params: GetPetsQueryParams = Depends(),
    actor: Optional[Actor] = Depends(get_optional_actor),
    registry: PetRegistry = Depends(get_registry),
) -> GetPetsResponse:
    """List pets with optional filters. Pets awaiting donation intake are hidden from the public."""
    logger.info(
        "Listing pets",
        filters=query_params.model_dump(exclude_none=True),
        method=request.method,
        path=request.url.path,
    )
    page = await registry.list_pets(actor, query_params.to_filter(), query_params.to_page())
    return GetPetsResponse(pets=page.items, pagination=PaginationInfo.from_page(page))


@ROUTER_PETS.get("/pets/stats/overview")
async def pet_stats(
    actor: Actor = Depends(get_current_actor),
    registry: PetRegistry = Depends(get_registry),
) -> PetStatsResponse:
    """Pet counts per adoption status, recent additions and top breeds (admin only)."""
    stats = await registry.stats(actor)
    return PetStatsResponse.from_stats(stats)


@ROUTER_PETS.get(
    "/pets/user/{user_id}",
    responses={
        status.HTTP_403_FORBIDDEN: {
            "description": "Caller is neither an admin nor the account being listed",
            "content": {
                "application/json": {
                    "example": {
                        "detail": "Access denied. You can only manage your own resources.",
                        "error_type": "Forbidden",
                        "reason": "not_owner",
                    }
                }
            },
        },
    },
)
async def list_user_pets(
    user_id: int,
    query_params: GetUserPetsQueryParams = Depends(),
    actor: Actor = Depends(get_current_actor),
    registry: PetRegistry = Depends(get_registry),
) -> GetPetsResponse:
    """Every pet an account uploaded, in any status (that account or an admin)."""
    logger.info("Listing pets by uploader", user_id=user_id, actor_id=actor.id)
    page = await registry.list_owned(actor, user_id, query_params.to_page())
    return GetPetsResponse(pets=page.items, pagination=PaginationInfo.from_page(page))


@ROUTER_PETS.get(
    "/pets/{pet_id}",
    responses={
        status.HTTP_404_NOT_FOUND: {
            "description": "Pet not found",
            "content": {"application/json": {"example": {"detail": "Pet not found: 7", "error_type": "PetNotFound"}}},
        },
    },
)
async def get_pet(
    pet_id: int,
    actor: Optional[Actor] = Depends(get_optional_actor),
    registry: PetRegistry = Depends(get_registry),
) -> Pet:
    """Get a single pet."""
    return await registry.get_pet(actor, pet_id)


##########################


@ROUTER_PETS.post(
    "/pets",
    status_code=status.HTTP_201_CREATED,
    openapi_extra={
        "requestBody": {
            "content": {"multipart/form-data": {"schema": {"type": "object"}}},
            "description": "Pet fields as form fields plus up to 5 'images' files",
        }
    },
)
async def create_pet(
    actor: Actor = Depends(get_current_actor),
    payload: MultipartPayload = Depends(get_multipart_payload),
    registry: PetRegistry = Depends(get_registry),
) -> PetResponse:
    """Create a direct listing (shelter or admin)."""
    attributes = PetAttributes(**payload.pick(PetAttributes.model_fields))
    pet = await registry.create_listing(actor, attributes, payload.uploads)
    return PetResponse(message="Pet created successfully", pet=pet)


@ROUTER_PETS.put("/pets/{pet_id}")
async def update_pet(
    pet_id: int,
    actor: Actor = Depends(get_current_actor),
    payload: MultipartPayload = Depends(get_multipart_payload),
    registry: PetRegistry = Depends(get_registry),
) -> PetResponse:
    """Edit a listing's descriptive fields or replace its images (owning shelter or admin)."""
    update = PetUpdate(**payload.pick(PetUpdate.model_fields))
    pet = await registry.update_listing(actor, pet_id, update, payload.uploads)
    return PetResponse(message="Pet updated successfully", pet=pet)


@ROUTER_PETS.delete("/pets/{pet_id}")
async def delete_pet(
    pet_id: int,
    actor: Actor = Depends(get_current_actor),
    registry: PetRegistry = Depends(get_registry),
) -> MessageResponse:
    """Delete a listing unless a pending adoption request or donation offer holds it."""
    await registry.delete_listing(actor, pet_id)
    return MessageResponse(message="Pet deleted successfully")
