"""
Lifecycle Exceptions

Error taxonomy raised by the workflows. errors.handle_lifecycle_errors turns each
family into a typed JSON response, so nothing here reaches the broad 500 handler.
"""

from typing import Optional

from shelter_api.lifecycle.enums import DenyReason


class LifecycleError(Exception):
    """Base class for every error the lifecycle core raises on purpose."""

    http_status = 500
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def error_type(self) -> str:
        return type(self).__name__


# ════════════════════════════════════════════════════════════════════════════
# NotFound
# ════════════════════════════════════════════════════════════════════════════


class NotFound(LifecycleError):
    http_status = 404


class PetNotFound(NotFound):
    def __init__(self, pet_id: int):
        super().__init__(f"Pet not found: {pet_id}")
        self.pet_id = pet_id


class RequestNotFound(NotFound):
    def __init__(self, request_id: int):
        super().__init__(f"Adoption request not found: {request_id}")
        self.request_id = request_id


class OfferNotFound(NotFound):
    def __init__(self, offer_id: int):
        super().__init__(f"Donation offer not found: {offer_id}")
        self.offer_id = offer_id


class ShelterNotFound(NotFound):
    def __init__(self, shelter_id: int):
        super().__init__(f"Shelter not found or inactive: {shelter_id}")
        self.shelter_id = shelter_id


# ════════════════════════════════════════════════════════════════════════════
# InvalidState
# ════════════════════════════════════════════════════════════════════════════


class InvalidState(LifecycleError):
    """Business rule violation; retrying the same call will fail the same way."""

    http_status = 409


class PetNotAvailable(InvalidState):
    def __init__(self, pet_id: int, detail: str = "Pet is not available for adoption"):
        super().__init__(f"{detail}: {pet_id}")
        self.pet_id = pet_id


class DuplicatePendingRequest(InvalidState):
    def __init__(self, pet_id: int, applicant_user_id: int):
        super().__init__(f"You already have a pending adoption request for pet {pet_id}")
        self.pet_id = pet_id
        self.applicant_user_id = applicant_user_id


class InvalidTransition(InvalidState):
    def __init__(self, entity: str, entity_id: int, current: str, target: str):
        super().__init__(f"Cannot move {entity} {entity_id} from '{current}' to '{target}'")
        self.current = current
        self.target = target


# ════════════════════════════════════════════════════════════════════════════
# Access
# ════════════════════════════════════════════════════════════════════════════


class Unauthenticated(LifecycleError):
    http_status = 401


class Forbidden(LifecycleError):
    http_status = 403

    def __init__(self, reason: DenyReason, message: Optional[str] = None):
        super().__init__(message or _FORBIDDEN_MESSAGES[reason])
        self.reason = reason


_FORBIDDEN_MESSAGES = {
    DenyReason.UNAUTHENTICATED: "Authentication required",
    DenyReason.INSUFFICIENT_ROLE: "Insufficient permissions",
    DenyReason.NOT_OWNER: "Access denied. You can only manage your own resources.",
}


# ════════════════════════════════════════════════════════════════════════════
# Input and concurrency
# ════════════════════════════════════════════════════════════════════════════


class ValidationFailed(LifecycleError):
    http_status = 400


class ConflictingUpdate(LifecycleError):
    """Lost a race for a pet's claim; the caller may re-read and retry."""

    http_status = 409
    retryable = True

    def __init__(self, pet_id: int, message: Optional[str] = None):
        super().__init__(message or f"Pet {pet_id} was claimed by a concurrent request")
        self.pet_id = pet_id
