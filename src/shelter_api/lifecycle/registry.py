"""
Pet Registry

Owns every pet's adoption_status and active claim. The workflows never write
those columns themselves; they call the claim primitives below from inside
their own transaction. Each primitive is a compare-and-set against the
(status, claim) the caller just read, so a pet can never end up with two
claims, and a lost race surfaces as ConflictingUpdate.

Direct listings (pets a shelter puts up itself, outside the donation intake)
are created, edited and removed here as well.
"""

from typing import Collection
from typing import List
from typing import Optional

from loguru import logger

from shelter_api.lifecycle.db.store import LifecycleStore
from shelter_api.lifecycle.db.store import StoreSession
from shelter_api.lifecycle.enums import Action
from shelter_api.lifecycle.enums import PetStatus
from shelter_api.lifecycle.exceptions import ConflictingUpdate
from shelter_api.lifecycle.exceptions import PetNotAvailable
from shelter_api.lifecycle.exceptions import PetNotFound
from shelter_api.lifecycle.images import LISTING_IMAGE_LIMITS
from shelter_api.lifecycle.images import ImageLimits
from shelter_api.lifecycle.images import UploadedImage
from shelter_api.lifecycle.images import encode_images
from shelter_api.lifecycle.models import Actor
from shelter_api.lifecycle.models import AdoptionRequest
from shelter_api.lifecycle.models import DonationOffer
from shelter_api.lifecycle.models import Page
from shelter_api.lifecycle.models import PageRequest
from shelter_api.lifecycle.models import Pet
from shelter_api.lifecycle.models import PetAttributes
from shelter_api.lifecycle.models import PetClaim
from shelter_api.lifecycle.models import PetFilter
from shelter_api.lifecycle.models import PetStats
from shelter_api.lifecycle.models import PetUpdate
from shelter_api.lifecycle.policy import Resource
from shelter_api.lifecycle.policy import authorize
from shelter_api.lifecycle.policy import require


def pet_resource(pet: Pet) -> Resource:
    return Resource(pet_owner_id=pet.uploaded_by)


class PetRegistry:
    """Claim primitives plus direct listing management."""

    def __init__(self, store: LifecycleStore, listing_limits: ImageLimits = LISTING_IMAGE_LIMITS):
        self.store = store
        self.listing_limits = listing_limits

    # ════════════════════════════════════════════════════════════════════════
    # Claim primitives (called inside a workflow transaction)
    # ════════════════════════════════════════════════════════════════════════

    async def _swap(
        self,
        session: StoreSession,
        pet: Pet,
        expected_status: Collection[PetStatus],
        expected_claim: Optional[PetClaim],
        new_status: PetStatus,
        new_claim: Optional[PetClaim],
    ) -> Pet:
        swapped = await session.compare_and_set_claim(pet.id, expected_status, expected_claim, new_status, new_claim)
        if not swapped:
            logger.warning(
                "Pet claim changed underneath caller",
                pet_id=pet.id,
                observed_status=pet.adoption_status.value,
                observed_claim=pet.active_claim.model_dump(mode="json") if pet.active_claim else None,
                target_status=new_status.value,
            )
            raise ConflictingUpdate(pet.id)

        logger.debug(
            "Pet claim updated",
            pet_id=pet.id,
            from_status=pet.adoption_status.value,
            to_status=new_status.value,
            claim=new_claim.model_dump(mode="json") if new_claim else None,
        )
        return pet.model_copy(update={"adoption_status": new_status, "active_claim": new_claim})

    async def _take_for_adoption(
        self,
        session: StoreSession,
        pet: Pet,
        request: AdoptionRequest,
        new_status: PetStatus,
    ) -> Pet:
        claim = request.claim
        if pet.is_claimed_by(claim):
            return await self._swap(session, pet, {pet.adoption_status}, claim, new_status, claim)
        if pet.is_claimable:
            return await self._swap(session, pet, {PetStatus.AVAILABLE}, None, new_status, claim)
        raise PetNotAvailable(pet.id, detail="Pet is held by another adoption request or donation offer")

    async def claim_for_adoption(self, session: StoreSession, pet: Pet, request: AdoptionRequest) -> Pet:
        """available/unclaimed -> pending under the request's claim."""
        if not pet.is_claimable:
            raise PetNotAvailable(pet.id)
        return await self._swap(session, pet, {PetStatus.AVAILABLE}, None, PetStatus.PENDING, request.claim)

    async def reclaim_for_adoption(self, session: StoreSession, pet: Pet, request: AdoptionRequest) -> Pet:
        """Re-open: the request keeps (or retakes) the claim and the pet goes back to pending."""
        return await self._take_for_adoption(session, pet, request, PetStatus.PENDING)

    async def mark_adopted(self, session: StoreSession, pet: Pet, request: AdoptionRequest) -> Pet:
        """Approval: the pet becomes adopted and stays claimed by the approved request."""
        return await self._take_for_adoption(session, pet, request, PetStatus.ADOPTED)

    async def release_adoption_claim(self, session: StoreSession, pet: Pet, request: AdoptionRequest) -> Pet:
        """Return the pet to the pool. Only the request holding the claim may release it."""
        if not pet.is_claimed_by(request.claim):
            raise ConflictingUpdate(pet.id, f"Adoption request {request.id} no longer holds pet {pet.id}")
        return await self._swap(
            session,
            pet,
            {PetStatus.PENDING, PetStatus.ADOPTED},
            request.claim,
            PetStatus.AVAILABLE,
            None,
        )

    async def drop_settled_claim(self, session: StoreSession, pet: Pet, request: AdoptionRequest) -> Pet:
        """The settled request holding the pet is going away: clear the claim, keep the status."""
        return await self._swap(session, pet, {pet.adoption_status}, request.claim, pet.adoption_status, None)

    async def hold_for_donation(self, session: StoreSession, pet: Pet, offer: DonationOffer) -> Pet:
        """Freshly inserted intake pet -> held (and hidden) by its donation offer."""
        return await self._swap(session, pet, {PetStatus.PENDING}, None, PetStatus.PENDING, offer.hold)

    async def release_donation_hold(self, session: StoreSession, pet: Pet, offer: DonationOffer) -> Pet:
        """Accepted intake: the pet becomes a normal available listing."""
        return await self._swap(session, pet, {PetStatus.PENDING}, offer.hold, PetStatus.AVAILABLE, None)

    # ════════════════════════════════════════════════════════════════════════
    # Listings
    # ════════════════════════════════════════════════════════════════════════

    async def create_listing(
        self,
        actor: Actor,
        attributes: PetAttributes,
        uploads: Optional[List[UploadedImage]] = None,
    ) -> Pet:
        require(actor, Action.PET_CREATE)
        images = encode_images(uploads or [], self.listing_limits)

        async with self.store.transaction() as session:
            pet = await session.insert_pet(attributes, uploaded_by=actor.id, status=PetStatus.AVAILABLE, images=images)

        logger.info("Pet listed", pet_id=pet.id, uploaded_by=actor.id, images=len(images))
        return pet

    async def get_pet(self, actor: Optional[Actor], pet_id: int) -> Pet:
        """Fetch one pet. Donation-held pets look missing to anyone but their owner and admins."""
        async with self.store.session() as session:
            pet = await session.get_pet(pet_id)

        if pet is None:
            raise PetNotFound(pet_id)
        if pet.is_intake_pending and not authorize(actor, Action.PET_VIEW_HIDDEN, pet_resource(pet)):
            raise PetNotFound(pet_id)
        return pet

    async def list_pets(self, actor: Optional[Actor], pet_filter: PetFilter, page: PageRequest) -> Page[Pet]:
        pet_filter = pet_filter.model_copy(
            update={
                # No owner on the resource: only a role that sees every hidden pet is allowed
                "show_hidden": bool(authorize(actor, Action.PET_VIEW_HIDDEN, Resource())),
                "hidden_visible_to": actor.id if actor else None,
            }
        )
        async with self.store.session() as session:
            return await session.list_pets(pet_filter, page)

    async def list_owned(self, actor: Actor, user_id: int, page: PageRequest) -> Page[Pet]:
        """Every pet one account has listed or donated, hidden intake pets included."""
        require(actor, Action.PET_LIST_OWNED, Resource(pet_owner_id=user_id))
        async with self.store.session() as session:
            return await session.list_pets(PetFilter(uploaded_by=user_id, show_hidden=True), page)

    async def stats(self, actor: Actor) -> PetStats:
        require(actor, Action.PET_STATS)
        async with self.store.session() as session:
            return await session.count_pets()

    async def update_listing(
        self,
        actor: Actor,
        pet_id: int,
        update: PetUpdate,
        uploads: Optional[List[UploadedImage]] = None,
    ) -> Pet:
        fields = update.model_dump(exclude_unset=True)
        if uploads:
            fields["images"] = encode_images(uploads, self.listing_limits)

        async with self.store.transaction() as session:
            pet = await session.get_pet(pet_id, for_update=True)
            if pet is None:
                raise PetNotFound(pet_id)
            require(actor, Action.PET_UPDATE, pet_resource(pet))
            if not fields:
                return pet
            updated = await session.update_pet(pet_id, fields)

        logger.info("Pet updated", pet_id=pet_id, fields=sorted(fields), actor_id=actor.id)
        return updated

    async def delete_listing(self, actor: Actor, pet_id: int) -> None:
        async with self.store.transaction() as session:
            pet = await session.get_pet(pet_id, for_update=True)
            if pet is None:
                raise PetNotFound(pet_id)
            require(actor, Action.PET_DELETE, pet_resource(pet))
            if pet.has_claim_in_flight:
                raise PetNotAvailable(pet_id, detail="Pet has a pending adoption request or donation offer")
            await session.delete_pet(pet_id)

        logger.info("Pet deleted", pet_id=pet_id, actor_id=actor.id)
