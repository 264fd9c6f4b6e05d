"""
Lifecycle Models Module

All Pydantic models for the lifecycle system:
- Identity models (accounts, resolved actors)
- Database entity models (pets, adoption requests, donation offers)
- Query and aggregate models (scopes, pages, status counts)
"""

# Identity Models
from shelter_api.lifecycle.models.identity import Account, Actor

# Database Entity Models
from shelter_api.lifecycle.models.pet import (
    Pet,
    PetAttributes,
    PetClaim,
    PetFilter,
    PetUpdate,
)
from shelter_api.lifecycle.models.adoption import (
    AdoptionApplication,
    AdoptionDecision,
    AdoptionRequest,
    AdoptionScope,
)
from shelter_api.lifecycle.models.donation import (
    DonationDecision,
    DonationOffer,
    DonationOfferCreate,
    DonationScope,
    DonorDetails,
)

# Query Models
from shelter_api.lifecycle.models.page import BreedCount, Page, PageRequest, PetStats, StatusCounts

__all__ = [
    # Identity
    "Account",
    "Actor",
    # Pets
    "Pet",
    "PetAttributes",
    "PetClaim",
    "PetFilter",
    "PetUpdate",
    # Adoption
    "AdoptionApplication",
    "AdoptionDecision",
    "AdoptionRequest",
    "AdoptionScope",
    # Donation
    "DonationDecision",
    "DonationOffer",
    "DonationOfferCreate",
    "DonationScope",
    "DonorDetails",
    # Queries
    "BreedCount",
    "Page",
    "PageRequest",
    "PetStats",
    "StatusCounts",
]
