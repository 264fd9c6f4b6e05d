"""Tests for the adoption workflow."""

import asyncio

import pytest

from shelter_api.lifecycle.adoption import ADOPTION_TRANSITIONS
from shelter_api.lifecycle.enums import AdoptionRequestStatus
from shelter_api.lifecycle.enums import ClaimKind
from shelter_api.lifecycle.enums import PetStatus
from shelter_api.lifecycle.exceptions import ConflictingUpdate
from shelter_api.lifecycle.exceptions import DuplicatePendingRequest
from shelter_api.lifecycle.exceptions import Forbidden
from shelter_api.lifecycle.exceptions import InvalidTransition
from shelter_api.lifecycle.exceptions import PetNotAvailable
from shelter_api.lifecycle.exceptions import PetNotFound
from shelter_api.lifecycle.exceptions import RequestNotFound
from shelter_api.lifecycle.exceptions import Unauthenticated
from shelter_api.lifecycle.models import AdoptionDecision
from shelter_api.lifecycle.models import PageRequest

APPROVE = AdoptionDecision(status=AdoptionRequestStatus.APPROVED, admin_notes="Great match")
REJECT = AdoptionDecision(status=AdoptionRequestStatus.REJECTED, rejection_reason="No yard")
COMPLETE = AdoptionDecision(status=AdoptionRequestStatus.COMPLETED)
REOPEN = AdoptionDecision(status=AdoptionRequestStatus.PENDING)


async def _pet(registry, pet_id):
    return await registry.get_pet(None, pet_id)


class TestSubmit:
    """Tests for AdoptionWorkflow.submit."""

    @pytest.mark.asyncio
    async def test_submit_claims_pet(self, adoption_workflow, registry, actors, listed_pet, make_application):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))

        assert request.status == AdoptionRequestStatus.PENDING
        assert request.applicant_user_id == actors.user.id

        pet = await _pet(registry, listed_pet.id)
        assert pet.adoption_status == PetStatus.PENDING
        assert pet.active_claim.kind == ClaimKind.ADOPTION
        assert pet.active_claim.ref_id == request.id

    @pytest.mark.asyncio
    async def test_second_applicant_rejected(self, adoption_workflow, actors, listed_pet, make_application):
        await adoption_workflow.submit(actors.user, make_application(listed_pet.id))

        with pytest.raises(PetNotAvailable):
            await adoption_workflow.submit(actors.other_user, make_application(listed_pet.id))

    @pytest.mark.asyncio
    async def test_duplicate_pending_request(self, adoption_workflow, actors, listed_pet, make_application):
        """Applying again while the first request is pending names the duplicate, not the busy pet."""
        await adoption_workflow.submit(actors.user, make_application(listed_pet.id))

        with pytest.raises(DuplicatePendingRequest) as exc_info:
            await adoption_workflow.submit(actors.user, make_application(listed_pet.id))

        assert exc_info.value.http_status == 409

    @pytest.mark.asyncio
    async def test_submit_missing_pet(self, adoption_workflow, actors, make_application):
        with pytest.raises(PetNotFound):
            await adoption_workflow.submit(actors.user, make_application(404))

    @pytest.mark.asyncio
    async def test_submit_for_intake_pending_pet(
        self, adoption_workflow, donation_workflow, actors, make_offer, make_application
    ):
        offer = await donation_workflow.create(actors.other_user, make_offer())

        with pytest.raises(PetNotAvailable):
            await adoption_workflow.submit(actors.user, make_application(offer.pet_id))

    @pytest.mark.asyncio
    async def test_only_users_submit(self, adoption_workflow, actors, listed_pet, make_application):
        with pytest.raises(Forbidden):
            await adoption_workflow.submit(actors.shelter, make_application(listed_pet.id))
        with pytest.raises(Unauthenticated):
            await adoption_workflow.submit(None, make_application(listed_pet.id))

    @pytest.mark.asyncio
    async def test_concurrent_submissions_one_winner(
        self, adoption_workflow, registry, actors, listed_pet, make_application
    ):
        """Two applicants racing for one pet: exactly one request wins the claim."""
        results = await asyncio.gather(
            adoption_workflow.submit(actors.user, make_application(listed_pet.id)),
            adoption_workflow.submit(actors.other_user, make_application(listed_pet.id)),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], (PetNotAvailable, ConflictingUpdate))

        pet = await _pet(registry, listed_pet.id)
        assert pet.active_claim == winners[0].claim


class TestDecide:
    """Tests for AdoptionWorkflow.decide."""

    @pytest.mark.asyncio
    async def test_approve_then_complete(self, adoption_workflow, registry, actors, listed_pet, make_application):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))

        approved = await adoption_workflow.decide(actors.shelter, request.id, APPROVE)
        assert approved.status == AdoptionRequestStatus.APPROVED
        assert approved.approved_by == actors.shelter.id
        assert approved.approved_at is not None
        assert approved.admin_notes == "Great match"
        assert (await _pet(registry, listed_pet.id)).adoption_status == PetStatus.ADOPTED

        completed = await adoption_workflow.decide(actors.shelter, request.id, COMPLETE)
        assert completed.status == AdoptionRequestStatus.COMPLETED
        assert completed.completed_at is not None
        assert (await _pet(registry, listed_pet.id)).adoption_status == PetStatus.ADOPTED

    @pytest.mark.asyncio
    async def test_reject_releases_pet(self, adoption_workflow, registry, actors, listed_pet, make_application):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))

        rejected = await adoption_workflow.decide(actors.shelter, request.id, REJECT)

        assert rejected.rejection_reason == "No yard"
        pet = await _pet(registry, listed_pet.id)
        assert pet.adoption_status == PetStatus.AVAILABLE
        assert pet.active_claim is None

        # The pet is open to a new applicant
        second = await adoption_workflow.submit(actors.other_user, make_application(listed_pet.id))
        assert second.status == AdoptionRequestStatus.PENDING

    @pytest.mark.asyncio
    async def test_reject_after_approval_returns_pet(
        self, adoption_workflow, registry, actors, listed_pet, make_application
    ):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))
        await adoption_workflow.decide(actors.admin, request.id, APPROVE)

        await adoption_workflow.decide(actors.admin, request.id, REJECT)

        assert (await _pet(registry, listed_pet.id)).adoption_status == PetStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_reopen_rejected_request(self, adoption_workflow, registry, actors, listed_pet, make_application):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))
        await adoption_workflow.decide(actors.shelter, request.id, REJECT)

        reopened = await adoption_workflow.decide(actors.shelter, request.id, REOPEN)

        assert reopened.status == AdoptionRequestStatus.PENDING
        pet = await _pet(registry, listed_pet.id)
        assert pet.adoption_status == PetStatus.PENDING
        assert pet.active_claim == request.claim

    @pytest.mark.asyncio
    async def test_reopen_blocked_when_pet_taken(
        self, adoption_workflow, registry, actors, listed_pet, make_application
    ):
        """A stale request cannot re-open over another applicant's claim."""
        first = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))
        await adoption_workflow.decide(actors.shelter, first.id, REJECT)
        second = await adoption_workflow.submit(actors.other_user, make_application(listed_pet.id))

        with pytest.raises(PetNotAvailable):
            await adoption_workflow.decide(actors.shelter, first.id, REOPEN)

        pet = await _pet(registry, listed_pet.id)
        assert pet.active_claim == second.claim
        assert (await adoption_workflow.get(actors.admin, first.id)).status == AdoptionRequestStatus.REJECTED

    @pytest.mark.asyncio
    async def test_stale_approval_blocked(self, adoption_workflow, registry, actors, listed_pet, make_application):
        """Approving a rejected request fails once another request has adopted the pet."""
        first = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))
        await adoption_workflow.decide(actors.shelter, first.id, REJECT)
        second = await adoption_workflow.submit(actors.other_user, make_application(listed_pet.id))
        await adoption_workflow.decide(actors.shelter, second.id, APPROVE)

        with pytest.raises(PetNotAvailable):
            await adoption_workflow.decide(actors.shelter, first.id, APPROVE)

        pet = await _pet(registry, listed_pet.id)
        assert pet.adoption_status == PetStatus.ADOPTED
        assert pet.active_claim == second.claim

    @pytest.mark.asyncio
    async def test_completed_is_terminal(self, adoption_workflow, actors, listed_pet, make_application):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))
        await adoption_workflow.decide(actors.shelter, request.id, APPROVE)
        await adoption_workflow.decide(actors.shelter, request.id, COMPLETE)

        for decision in (APPROVE, REJECT, REOPEN, COMPLETE):
            with pytest.raises(InvalidTransition):
                await adoption_workflow.decide(actors.shelter, request.id, decision)

    @pytest.mark.asyncio
    async def test_pending_cannot_complete(self, adoption_workflow, actors, listed_pet, make_application):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))

        with pytest.raises(InvalidTransition):
            await adoption_workflow.decide(actors.shelter, request.id, COMPLETE)

    @pytest.mark.asyncio
    async def test_other_shelter_forbidden(self, adoption_workflow, actors, listed_pet, make_application):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))

        with pytest.raises(Forbidden):
            await adoption_workflow.decide(actors.other_shelter, request.id, APPROVE)
        with pytest.raises(Forbidden):
            await adoption_workflow.decide(actors.user, request.id, APPROVE)

    @pytest.mark.asyncio
    async def test_decide_missing_request(self, adoption_workflow, actors):
        with pytest.raises(RequestNotFound):
            await adoption_workflow.decide(actors.admin, 12345, APPROVE)

    def test_transition_table_covers_every_status(self):
        assert set(ADOPTION_TRANSITIONS) == set(AdoptionRequestStatus)
        assert ADOPTION_TRANSITIONS[AdoptionRequestStatus.COMPLETED] == frozenset()


class TestWithdrawAndDelete:
    """Tests for AdoptionWorkflow.withdraw and delete."""

    @pytest.mark.asyncio
    async def test_withdraw_releases_pet(self, adoption_workflow, registry, actors, listed_pet, make_application):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))

        await adoption_workflow.withdraw(actors.user, request.id)

        assert (await _pet(registry, listed_pet.id)).is_claimable
        with pytest.raises(RequestNotFound):
            await adoption_workflow.get(actors.admin, request.id)

    @pytest.mark.asyncio
    async def test_withdraw_someone_elses_request(self, adoption_workflow, actors, listed_pet, make_application):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))

        with pytest.raises(Forbidden):
            await adoption_workflow.withdraw(actors.other_user, request.id)

    @pytest.mark.asyncio
    async def test_withdraw_only_pending(self, adoption_workflow, actors, listed_pet, make_application):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))
        await adoption_workflow.decide(actors.shelter, request.id, APPROVE)

        with pytest.raises(InvalidTransition):
            await adoption_workflow.withdraw(actors.user, request.id)

    @pytest.mark.asyncio
    async def test_delete_approved_keeps_pet_adopted(
        self, adoption_workflow, registry, actors, listed_pet, make_application
    ):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))
        await adoption_workflow.decide(actors.shelter, request.id, APPROVE)

        await adoption_workflow.delete(actors.admin, request.id)

        pet = await _pet(registry, listed_pet.id)
        assert pet.adoption_status == PetStatus.ADOPTED
        assert pet.active_claim is None

    @pytest.mark.asyncio
    async def test_delete_completed_lets_listing_go(
        self, adoption_workflow, registry, actors, listed_pet, make_application
    ):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))
        await adoption_workflow.decide(actors.shelter, request.id, APPROVE)
        await adoption_workflow.decide(actors.shelter, request.id, COMPLETE)

        await adoption_workflow.delete(actors.admin, request.id)
        await registry.delete_listing(actors.shelter, listed_pet.id)

        with pytest.raises(PetNotFound):
            await _pet(registry, listed_pet.id)

    @pytest.mark.asyncio
    async def test_delete_pending_releases_pet(
        self, adoption_workflow, registry, actors, listed_pet, make_application
    ):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))

        await adoption_workflow.delete(actors.admin, request.id)

        assert (await _pet(registry, listed_pet.id)).adoption_status == PetStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_only_admin_deletes(self, adoption_workflow, actors, listed_pet, make_application):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))

        with pytest.raises(Forbidden):
            await adoption_workflow.delete(actors.shelter, request.id)


class TestQueries:
    """Tests for get, list_requests and stats."""

    @pytest.mark.asyncio
    async def test_list_is_scoped(
        self, adoption_workflow, registry, actors, pet_attributes, make_application
    ):
        own = await registry.create_listing(actors.shelter, pet_attributes)
        other = await registry.create_listing(actors.other_shelter, pet_attributes)
        await adoption_workflow.submit(actors.user, make_application(own.id))
        await adoption_workflow.submit(actors.other_user, make_application(other.id))

        user_page = await adoption_workflow.list_requests(actors.user, PageRequest())
        shelter_page = await adoption_workflow.list_requests(actors.shelter, PageRequest())
        admin_page = await adoption_workflow.list_requests(actors.admin, PageRequest())

        assert user_page.total == 1
        assert user_page.items[0].applicant_user_id == actors.user.id
        assert shelter_page.total == 1
        assert shelter_page.items[0].pet_id == own.id
        assert admin_page.total == 2

    @pytest.mark.asyncio
    async def test_list_status_filter(self, adoption_workflow, actors, listed_pet, make_application):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))
        await adoption_workflow.decide(actors.shelter, request.id, REJECT)

        pending = await adoption_workflow.list_requests(actors.admin, PageRequest(), AdoptionRequestStatus.PENDING)
        rejected = await adoption_workflow.list_requests(actors.admin, PageRequest(), AdoptionRequestStatus.REJECTED)

        assert pending.total == 0
        assert rejected.total == 1

    @pytest.mark.asyncio
    async def test_get_scoped_to_applicant_and_lister(
        self, adoption_workflow, actors, listed_pet, make_application
    ):
        request = await adoption_workflow.submit(actors.user, make_application(listed_pet.id))

        assert (await adoption_workflow.get(actors.user, request.id)).id == request.id
        assert (await adoption_workflow.get(actors.shelter, request.id)).id == request.id
        with pytest.raises(Forbidden):
            await adoption_workflow.get(actors.other_user, request.id)
        with pytest.raises(Forbidden):
            await adoption_workflow.get(actors.other_shelter, request.id)

    @pytest.mark.asyncio
    async def test_stats(self, adoption_workflow, registry, actors, pet_attributes, make_application):
        first = await registry.create_listing(actors.shelter, pet_attributes)
        second = await registry.create_listing(actors.shelter, pet_attributes)
        approved = await adoption_workflow.submit(actors.user, make_application(first.id))
        await adoption_workflow.submit(actors.user, make_application(second.id))
        await adoption_workflow.decide(actors.shelter, approved.id, APPROVE)

        counts = await adoption_workflow.stats(actors.admin)

        assert counts.counts["pending"] == 1
        assert counts.counts["approved"] == 1
        assert counts.counts["rejected"] == 0
        assert counts.total == 2
        assert counts.this_month == 2

        with pytest.raises(Forbidden):
            await adoption_workflow.stats(actors.shelter)
