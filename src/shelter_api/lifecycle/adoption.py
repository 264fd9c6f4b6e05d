"""
Adoption Workflow

Drives one pet through available -> pending -> adopted (or back to available)
via applicant submissions and shelter/admin decisions.

Request transitions accepted by decide():

    pending   -> pending | approved | rejected
    approved  -> pending | rejected | completed
    rejected  -> pending | approved
    completed -> (terminal)

Every pet-status change goes through PetRegistry inside the same transaction
as the request write, so the request row and the pet claim never disagree.
"""

from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Dict
from typing import FrozenSet
from typing import Optional

from loguru import logger

from shelter_api.lifecycle.db.store import LifecycleStore
from shelter_api.lifecycle.db.store import StoreSession
from shelter_api.lifecycle.enums import Action
from shelter_api.lifecycle.enums import AdoptionRequestStatus
from shelter_api.lifecycle.exceptions import DuplicatePendingRequest
from shelter_api.lifecycle.exceptions import InvalidTransition
from shelter_api.lifecycle.exceptions import PetNotAvailable
from shelter_api.lifecycle.exceptions import PetNotFound
from shelter_api.lifecycle.exceptions import RequestNotFound
from shelter_api.lifecycle.models import Actor
from shelter_api.lifecycle.models import AdoptionApplication
from shelter_api.lifecycle.models import AdoptionDecision
from shelter_api.lifecycle.models import AdoptionRequest
from shelter_api.lifecycle.models import Page
from shelter_api.lifecycle.models import PageRequest
from shelter_api.lifecycle.models import Pet
from shelter_api.lifecycle.models import StatusCounts
from shelter_api.lifecycle.policy import Resource
from shelter_api.lifecycle.policy import adoption_scope
from shelter_api.lifecycle.policy import require
from shelter_api.lifecycle.registry import PetRegistry

ADOPTION_TRANSITIONS: Dict[AdoptionRequestStatus, FrozenSet[AdoptionRequestStatus]] = {
    AdoptionRequestStatus.PENDING: frozenset(
        {AdoptionRequestStatus.PENDING, AdoptionRequestStatus.APPROVED, AdoptionRequestStatus.REJECTED}
    ),
    AdoptionRequestStatus.APPROVED: frozenset(
        {AdoptionRequestStatus.PENDING, AdoptionRequestStatus.REJECTED, AdoptionRequestStatus.COMPLETED}
    ),
    AdoptionRequestStatus.REJECTED: frozenset({AdoptionRequestStatus.PENDING, AdoptionRequestStatus.APPROVED}),
    AdoptionRequestStatus.COMPLETED: frozenset(),
}


def adoption_resource(request: AdoptionRequest, pet: Optional[Pet]) -> Resource:
    return Resource(
        applicant_user_id=request.applicant_user_id,
        pet_owner_id=pet.uploaded_by if pet else None,
    )


class AdoptionWorkflow:
    """Submit, decide, withdraw and delete adoption requests."""

    def __init__(self, store: LifecycleStore, registry: PetRegistry):
        self.store = store
        self.registry = registry

    async def _load(self, session: StoreSession, request_id: int, for_update: bool = False):
        request = await session.get_adoption(request_id, for_update=for_update)
        if request is None:
            raise RequestNotFound(request_id)
        pet = await session.get_pet(request.pet_id, for_update=for_update)
        return request, pet

    async def submit(self, actor: Actor, application: AdoptionApplication) -> AdoptionRequest:
        """
        Create a pending request and claim the pet for it.

        Parameters
        ----------
        actor : Actor
            Applicant (role user)
        application : AdoptionApplication
            Pet id and applicant fields

        Returns
        -------
        AdoptionRequest
            The new pending request

        Raises
        ------
        PetNotFound
            Pet does not exist
        DuplicatePendingRequest
            Applicant already has a pending request for this pet
        PetNotAvailable
            Pet is not available or claimed by someone else
        ConflictingUpdate
            Another request claimed the pet concurrently
        """
        require(actor, Action.ADOPTION_SUBMIT)

        async with self.store.transaction() as session:
            pet = await session.get_pet(application.pet_id, for_update=True)
            if pet is None:
                raise PetNotFound(application.pet_id)
            if await session.find_pending_adoption(pet.id, applicant_user_id=actor.id) is not None:
                raise DuplicatePendingRequest(pet.id, actor.id)
            if not pet.is_claimable:
                raise PetNotAvailable(pet.id)

            request = await session.insert_adoption(application, applicant_user_id=actor.id)
            await self.registry.claim_for_adoption(session, pet, request)

        logger.info("Adoption request submitted", request_id=request.id, pet_id=pet.id, applicant_user_id=actor.id)
        return request

    async def decide(self, actor: Actor, request_id: int, decision: AdoptionDecision) -> AdoptionRequest:
        """
        Move a request to decision.status and apply the pet side effect.

        Raises
        ------
        RequestNotFound
        Forbidden
            Caller is neither an admin nor the shelter that listed the pet
        InvalidTransition
            The move is not in ADOPTION_TRANSITIONS
        PetNotAvailable
            Re-opening or approving while another record holds the pet
        ConflictingUpdate
            The pet's claim changed during the decision
        """
        target = decision.status
        now = datetime.now(timezone.utc)

        async with self.store.transaction() as session:
            request, pet = await self._load(session, request_id, for_update=True)
            require(actor, Action.ADOPTION_DECIDE, adoption_resource(request, pet))
            if pet is None:
                raise PetNotFound(request.pet_id)
            if target not in ADOPTION_TRANSITIONS[request.status]:
                raise InvalidTransition("adoption request", request.id, request.status.value, target.value)

            fields: Dict[str, Any] = {"status": target}
            if decision.admin_notes is not None:
                fields["admin_notes"] = decision.admin_notes

            if target == AdoptionRequestStatus.APPROVED:
                await self.registry.mark_adopted(session, pet, request)
                fields.update(approved_by=actor.id, approved_at=now)
            elif target == AdoptionRequestStatus.REJECTED:
                fields["rejection_reason"] = decision.rejection_reason
                if pet.is_claimed_by(request.claim):
                    await self.registry.release_adoption_claim(session, pet, request)
            elif target == AdoptionRequestStatus.COMPLETED:
                fields["completed_at"] = now
            else:
                await self.registry.reclaim_for_adoption(session, pet, request)

            updated = await session.update_adoption(request.id, fields)

        logger.info(
            "Adoption request decided",
            request_id=request.id,
            pet_id=request.pet_id,
            from_status=request.status.value,
            to_status=target.value,
            actor_id=actor.id,
            actor_role=actor.role.value,
        )
        return updated

    async def _remove(self, session: StoreSession, request: AdoptionRequest, pet: Optional[Pet]) -> bool:
        """
        Delete the request and detach it from the pet.

        A pending request that still holds the pet returns it to the pool. A
        settled request (approved, completed) only drops its claim, so the pet
        keeps its adopted status. Returns True when the pet was released.
        """
        released = False
        if pet is not None and pet.is_claimed_by(request.claim):
            if request.status == AdoptionRequestStatus.PENDING:
                await self.registry.release_adoption_claim(session, pet, request)
                released = True
            else:
                await self.registry.drop_settled_claim(session, pet, request)
        await session.delete_adoption(request.id)
        return released

    async def withdraw(self, actor: Actor, request_id: int) -> None:
        """Applicant cancels their own pending request."""
        async with self.store.transaction() as session:
            request, pet = await self._load(session, request_id, for_update=True)
            require(actor, Action.ADOPTION_WITHDRAW, adoption_resource(request, pet))
            if request.status != AdoptionRequestStatus.PENDING:
                raise InvalidTransition("adoption request", request.id, request.status.value, "withdrawn")
            released = await self._remove(session, request, pet)

        logger.info("Adoption request withdrawn", request_id=request_id, pet_id=request.pet_id, pet_released=released)

    async def delete(self, actor: Actor, request_id: int) -> None:
        """Admin removal in any status; settled outcomes keep their pet status."""
        async with self.store.transaction() as session:
            request, pet = await self._load(session, request_id, for_update=True)
            require(actor, Action.ADOPTION_DELETE, adoption_resource(request, pet))
            released = await self._remove(session, request, pet)

        logger.info(
            "Adoption request deleted",
            request_id=request_id,
            pet_id=request.pet_id,
            status=request.status.value,
            pet_released=released,
        )

    async def get(self, actor: Actor, request_id: int) -> AdoptionRequest:
        async with self.store.session() as session:
            request, pet = await self._load(session, request_id)
        require(actor, Action.ADOPTION_READ, adoption_resource(request, pet))
        return request

    async def list_requests(
        self,
        actor: Actor,
        page: PageRequest,
        status: Optional[AdoptionRequestStatus] = None,
    ) -> Page[AdoptionRequest]:
        require(actor, Action.ADOPTION_LIST)
        async with self.store.session() as session:
            return await session.list_adoptions(adoption_scope(actor, status), page)

    async def stats(self, actor: Actor) -> StatusCounts:
        require(actor, Action.ADOPTION_STATS)
        async with self.store.session() as session:
            return await session.count_adoptions()
