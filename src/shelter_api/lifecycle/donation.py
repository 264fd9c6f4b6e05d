"""
Donation Intake Workflow

A donor offers an animal to a shelter. The offer and its pet are created
together: the pet starts pending and hidden under the offer's donation hold,
and only becomes a normal available listing when the receiving shelter (or an
admin) accepts the offer.

Offer transitions accepted by decide():

    pending  -> pending | accepted | rejected
    accepted -> completed
    rejected -> completed
"""

from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Dict
from typing import FrozenSet
from typing import List
from typing import Optional

from loguru import logger

from shelter_api.lifecycle.db.store import LifecycleStore
from shelter_api.lifecycle.db.store import StoreSession
from shelter_api.lifecycle.enums import Action
from shelter_api.lifecycle.enums import DonationStatus
from shelter_api.lifecycle.enums import PetStatus
from shelter_api.lifecycle.enums import Role
from shelter_api.lifecycle.exceptions import InvalidTransition
from shelter_api.lifecycle.exceptions import OfferNotFound
from shelter_api.lifecycle.exceptions import PetNotFound
from shelter_api.lifecycle.exceptions import ShelterNotFound
from shelter_api.lifecycle.images import DONATION_IMAGE_LIMITS
from shelter_api.lifecycle.images import ImageLimits
from shelter_api.lifecycle.images import UploadedImage
from shelter_api.lifecycle.images import encode_images
from shelter_api.lifecycle.models import Actor
from shelter_api.lifecycle.models import DonationDecision
from shelter_api.lifecycle.models import DonationOffer
from shelter_api.lifecycle.models import DonationOfferCreate
from shelter_api.lifecycle.models import Page
from shelter_api.lifecycle.models import PageRequest
from shelter_api.lifecycle.models import Pet
from shelter_api.lifecycle.models import StatusCounts
from shelter_api.lifecycle.policy import Resource
from shelter_api.lifecycle.policy import donation_scope
from shelter_api.lifecycle.policy import require
from shelter_api.lifecycle.registry import PetRegistry

DONATION_TRANSITIONS: Dict[DonationStatus, FrozenSet[DonationStatus]] = {
    DonationStatus.PENDING: frozenset({DonationStatus.PENDING, DonationStatus.ACCEPTED, DonationStatus.REJECTED}),
    DonationStatus.ACCEPTED: frozenset({DonationStatus.COMPLETED}),
    DonationStatus.REJECTED: frozenset({DonationStatus.COMPLETED}),
    DonationStatus.COMPLETED: frozenset(),
}


def donation_resource(offer: DonationOffer) -> Resource:
    return Resource(shelter_id=offer.shelter_id, donor_user_id=offer.donor_user_id)


class DonationWorkflow:
    """Create, decide and delete donation offers."""

    def __init__(
        self,
        store: LifecycleStore,
        registry: PetRegistry,
        image_limits: ImageLimits = DONATION_IMAGE_LIMITS,
    ):
        self.store = store
        self.registry = registry
        self.image_limits = image_limits

    async def _load(self, session: StoreSession, offer_id: int, for_update: bool = False) -> DonationOffer:
        offer = await session.get_donation(offer_id, for_update=for_update)
        if offer is None:
            raise OfferNotFound(offer_id)
        return offer

    async def create(
        self,
        actor: Actor,
        offer: DonationOfferCreate,
        uploads: Optional[List[UploadedImage]] = None,
    ) -> DonationOffer:
        """
        Create the intake pet and its offer as one unit.

        Parameters
        ----------
        actor : Actor
            Donor; any authenticated account
        offer : DonationOfferCreate
            Receiving shelter, pet attributes and donor details
        uploads : list of UploadedImage, optional
            Photos; oversized or surplus files are dropped

        Returns
        -------
        DonationOffer
            The pending offer. Its pet is pending and held by the offer.

        Raises
        ------
        ShelterNotFound
            shelter_id is not an active shelter account
        ValidationFailed
            An upload is not an allowed image type
        """
        require(actor, Action.DONATION_CREATE)
        images = encode_images(uploads or [], self.image_limits)

        async with self.store.transaction() as session:
            shelter = await session.get_account(offer.shelter_id)
            if shelter is None or not shelter.is_active or shelter.role != Role.SHELTER:
                raise ShelterNotFound(offer.shelter_id)

            pet = await session.insert_pet(offer.pet, uploaded_by=actor.id, status=PetStatus.PENDING, images=images)
            created = await session.insert_donation(
                pet_id=pet.id,
                shelter_id=shelter.id,
                donor_user_id=actor.id,
                donor=offer.donor,
            )
            await self.registry.hold_for_donation(session, pet, created)

        logger.info(
            "Donation offer created",
            offer_id=created.id,
            pet_id=pet.id,
            shelter_id=shelter.id,
            donor_user_id=actor.id,
            images=len(images),
        )
        return created

    async def decide(self, actor: Actor, offer_id: int, decision: DonationDecision) -> DonationOffer:
        """
        Record a shelter/admin decision on an offer.

        Raises
        ------
        OfferNotFound
        Forbidden
            Caller is neither an admin nor the receiving shelter
        InvalidTransition
            The move is not in DONATION_TRANSITIONS
        ConflictingUpdate
            The pet is no longer under this offer's hold
        """
        target = decision.status

        async with self.store.transaction() as session:
            offer = await self._load(session, offer_id, for_update=True)
            require(actor, Action.DONATION_DECIDE, donation_resource(offer))
            if target not in DONATION_TRANSITIONS[offer.status]:
                raise InvalidTransition("donation offer", offer.id, offer.status.value, target.value)

            fields: Dict[str, Any] = {
                "status": target,
                "admin_notes": decision.admin_notes,
                "processed_by": actor.id,
                "processed_at": datetime.now(timezone.utc),
            }
            if decision.pickup_date is not None:
                fields["pickup_date"] = decision.pickup_date

            if target == DonationStatus.ACCEPTED:
                pet = await session.get_pet(offer.pet_id, for_update=True)
                if pet is None:
                    raise PetNotFound(offer.pet_id)
                await self.registry.release_donation_hold(session, pet, offer)
                # The receiving shelter now owns the listing
                await session.update_pet(pet.id, {"uploaded_by": offer.shelter_id})

            updated = await session.update_donation(offer.id, fields)

        logger.info(
            "Donation offer decided",
            offer_id=offer.id,
            pet_id=offer.pet_id,
            from_status=offer.status.value,
            to_status=target.value,
            actor_id=actor.id,
            actor_role=actor.role.value,
        )
        return updated

    async def delete(self, actor: Actor, offer_id: int) -> None:
        """Admin removal. A never-listed pet still held by the offer goes with it."""
        async with self.store.transaction() as session:
            offer = await self._load(session, offer_id, for_update=True)
            require(actor, Action.DONATION_DELETE, donation_resource(offer))

            pet: Optional[Pet] = await session.get_pet(offer.pet_id, for_update=True)
            orphaned = pet is not None and pet.is_claimed_by(offer.hold)
            await session.delete_donation(offer.id)
            if orphaned:
                await session.delete_pet(pet.id)

        logger.info(
            "Donation offer deleted",
            offer_id=offer_id,
            pet_id=offer.pet_id,
            status=offer.status.value,
            pet_deleted=orphaned,
        )

    async def get(self, actor: Actor, offer_id: int) -> DonationOffer:
        async with self.store.session() as session:
            offer = await self._load(session, offer_id)
        require(actor, Action.DONATION_READ, donation_resource(offer))
        return offer

    async def list_offers(
        self,
        actor: Actor,
        page: PageRequest,
        status: Optional[DonationStatus] = None,
    ) -> Page[DonationOffer]:
        require(actor, Action.DONATION_LIST)
        async with self.store.session() as session:
            return await session.list_donations(donation_scope(actor, status), page)

    async def stats(self, actor: Actor) -> StatusCounts:
        require(actor, Action.DONATION_STATS)
        async with self.store.session() as session:
            return await session.count_donations()
