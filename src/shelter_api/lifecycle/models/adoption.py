"""
Adoption Request Model

Database model for adoption requests and the inputs that create and decide them.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from shelter_api.lifecycle.enums import AdoptionRequestStatus
from shelter_api.lifecycle.enums import ClaimKind
from shelter_api.lifecycle.models.pet import PetClaim


class AdoptionApplication(BaseModel):
    """Fields an applicant submits."""

    pet_id: int = Field(..., gt=0)
    application_message: str = Field(..., min_length=1)
    contact_phone: Optional[str] = None
    contact_address: Optional[str] = None
    experience_with_pets: Optional[str] = None
    living_situation: Optional[str] = None
    other_pets: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class AdoptionDecision(BaseModel):
    """Status change requested by the owning shelter or an admin."""

    status: AdoptionRequestStatus
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class AdoptionRequest(BaseModel):
    """Adoption request database model."""

    id: int
    pet_id: int
    applicant_user_id: int
    status: AdoptionRequestStatus
    application_message: str
    contact_phone: Optional[str] = None
    contact_address: Optional[str] = None
    experience_with_pets: Optional[str] = None
    living_situation: Optional[str] = None
    other_pets: Optional[str] = None

    # Decision columns
    admin_notes: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @property
    def claim(self) -> PetClaim:
        return PetClaim(kind=ClaimKind.ADOPTION, ref_id=self.id)


class AdoptionScope(BaseModel):
    """Row filter the policy imposes on adoption queries (empty means unrestricted)."""

    applicant_user_id: Optional[int] = None
    pet_owner_id: Optional[int] = None
    status: Optional[AdoptionRequestStatus] = None
