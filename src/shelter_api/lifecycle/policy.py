"""
Authorization Policy

One policy object per role, all answering the same three questions:

- decide(actor, action, resource): may this actor perform this action on this resource?
- adoption_scope(actor): which adoption requests may this actor ever see?
- donation_scope(actor): which donation offers may this actor ever see?

Decisions are values, never exceptions. Workflows call require() to turn a
Deny into Unauthenticated/Forbidden at the point they need to stop.

Scopes are applied inside the store query (not after fetching) so that page
totals never reveal rows outside the caller's reach.
"""

from abc import ABC
from abc import abstractmethod
from typing import Dict
from typing import Optional

from loguru import logger
from pydantic import BaseModel
from pydantic import ConfigDict

from shelter_api.lifecycle.enums import Action
from shelter_api.lifecycle.enums import AdoptionRequestStatus
from shelter_api.lifecycle.enums import DenyReason
from shelter_api.lifecycle.enums import DonationStatus
from shelter_api.lifecycle.enums import Role
from shelter_api.lifecycle.exceptions import Forbidden
from shelter_api.lifecycle.exceptions import Unauthenticated
from shelter_api.lifecycle.models.adoption import AdoptionScope
from shelter_api.lifecycle.models.donation import DonationScope
from shelter_api.lifecycle.models.identity import Actor


class Resource(BaseModel):
    """Ownership facts about the target of an action. Unset fields are unknown, not wildcards."""

    pet_owner_id: Optional[int] = None
    applicant_user_id: Optional[int] = None
    shelter_id: Optional[int] = None
    donor_user_id: Optional[int] = None

    model_config = ConfigDict(frozen=True)


class Decision(BaseModel):
    allowed: bool
    reason: Optional[DenyReason] = None

    model_config = ConfigDict(frozen=True)

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(allowed=True)


def deny(reason: DenyReason) -> Decision:
    return Decision(allowed=False, reason=reason)


def _owned(owner_id: Optional[int], actor: Actor) -> Decision:
    return ALLOW if owner_id is not None and owner_id == actor.id else deny(DenyReason.NOT_OWNER)


class RolePolicy(ABC):
    """Decision interface shared by every role."""

    role: Role

    @abstractmethod
    def decide(self, actor: Actor, action: Action, resource: Resource) -> Decision:
        ...

    @abstractmethod
    def adoption_scope(self, actor: Actor) -> AdoptionScope:
        ...

    @abstractmethod
    def donation_scope(self, actor: Actor) -> DonationScope:
        ...


class AdminPolicy(RolePolicy):
    """Admins may do everything and see everything."""

    role = Role.ADMIN

    def decide(self, actor: Actor, action: Action, resource: Resource) -> Decision:
        return ALLOW

    def adoption_scope(self, actor: Actor) -> AdoptionScope:
        return AdoptionScope()

    def donation_scope(self, actor: Actor) -> DonationScope:
        return DonationScope()


class ShelterPolicy(RolePolicy):
    """Shelters manage their own listings and the offers addressed to them."""

    role = Role.SHELTER

    def decide(self, actor: Actor, action: Action, resource: Resource) -> Decision:
        if action in (Action.PET_CREATE, Action.ADOPTION_LIST, Action.DONATION_CREATE, Action.DONATION_LIST):
            return ALLOW
        if action in (Action.PET_UPDATE, Action.PET_DELETE, Action.PET_VIEW_HIDDEN, Action.PET_LIST_OWNED):
            return _owned(resource.pet_owner_id, actor)
        if action in (Action.ADOPTION_READ, Action.ADOPTION_DECIDE):
            return _owned(resource.pet_owner_id, actor)
        if action in (Action.DONATION_READ, Action.DONATION_DECIDE):
            return _owned(resource.shelter_id, actor)
        return deny(DenyReason.INSUFFICIENT_ROLE)

    def adoption_scope(self, actor: Actor) -> AdoptionScope:
        return AdoptionScope(pet_owner_id=actor.id)

    def donation_scope(self, actor: Actor) -> DonationScope:
        return DonationScope(shelter_id=actor.id)


class UserPolicy(RolePolicy):
    """Users apply for pets, donate pets, and see only their own records."""

    role = Role.USER

    def decide(self, actor: Actor, action: Action, resource: Resource) -> Decision:
        if action in (Action.ADOPTION_SUBMIT, Action.ADOPTION_LIST, Action.DONATION_CREATE, Action.DONATION_LIST):
            return ALLOW
        if action in (Action.ADOPTION_READ, Action.ADOPTION_WITHDRAW):
            return _owned(resource.applicant_user_id, actor)
        if action == Action.DONATION_READ:
            return _owned(resource.donor_user_id, actor)
        if action in (Action.PET_VIEW_HIDDEN, Action.PET_LIST_OWNED):
            return _owned(resource.pet_owner_id, actor)
        # Users never change a request's status directly
        return deny(DenyReason.INSUFFICIENT_ROLE)

    def adoption_scope(self, actor: Actor) -> AdoptionScope:
        return AdoptionScope(applicant_user_id=actor.id)

    def donation_scope(self, actor: Actor) -> DonationScope:
        return DonationScope(donor_user_id=actor.id)


_POLICIES: Dict[Role, RolePolicy] = {
    Role.ADMIN: AdminPolicy(),
    Role.SHELTER: ShelterPolicy(),
    Role.USER: UserPolicy(),
}


def policy_for(role: Role) -> RolePolicy:
    return _POLICIES[Role(role)]


def authorize(actor: Optional[Actor], action: Action, resource: Optional[Resource] = None) -> Decision:
    """Evaluate the policy for one action. Never raises."""
    if actor is None:
        return deny(DenyReason.UNAUTHENTICATED)
    return policy_for(actor.role).decide(actor, action, resource or Resource())


def require(actor: Optional[Actor], action: Action, resource: Optional[Resource] = None) -> Actor:
    """
    Evaluate the policy and raise if denied.

    Raises
    ------
    Unauthenticated
        No actor was resolved for the request
    Forbidden
        Authenticated but the role or ownership check failed
    """
    decision = authorize(actor, action, resource)
    if decision.allowed:
        return actor

    logger.warning(
        "Authorization denied",
        action=action.value,
        reason=decision.reason.value,
        actor_id=actor.id if actor else None,
        actor_role=actor.role.value if actor else None,
    )
    if decision.reason == DenyReason.UNAUTHENTICATED:
        raise Unauthenticated("Access token required")
    raise Forbidden(decision.reason)


def adoption_scope(actor: Actor, status: Optional[AdoptionRequestStatus] = None) -> AdoptionScope:
    scope = policy_for(actor.role).adoption_scope(actor)
    return scope.model_copy(update={"status": status})


def donation_scope(actor: Actor, status: Optional[DonationStatus] = None) -> DonationScope:
    scope = policy_for(actor.role).donation_scope(actor)
    return scope.model_copy(update={"status": status})
