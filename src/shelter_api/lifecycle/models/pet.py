"""
Pet Model

Database model for pets plus the inputs used to create, edit and filter them.
"""

from datetime import datetime
from typing import List
from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import model_validator

from shelter_api.lifecycle.enums import ClaimKind
from shelter_api.lifecycle.enums import EnergyLevel
from shelter_api.lifecycle.enums import Gender
from shelter_api.lifecycle.enums import HealthStatus
from shelter_api.lifecycle.enums import PetSize
from shelter_api.lifecycle.enums import PetStatus


class PetClaim(BaseModel):
    """The one in-flight record allowed to hold a pet (None when unclaimed)."""

    kind: ClaimKind
    ref_id: int

    model_config = ConfigDict(frozen=True)


class PetAttributes(BaseModel):
    """Descriptive fields; none of them affect the lifecycle."""

    name: str = Field(..., min_length=1, max_length=100)
    breed: str = Field(..., min_length=1)
    age: int = Field(..., ge=0, le=30)
    gender: Gender
    size: PetSize
    color: Optional[str] = None
    description: Optional[str] = None
    health_status: HealthStatus = HealthStatus.HEALTHY
    vaccination_status: bool = False
    spayed_neutered: bool = False
    adoption_fee: float = Field(0.0, ge=0)
    special_needs: Optional[str] = None
    good_with_kids: bool = True
    good_with_pets: bool = True
    energy_level: EnergyLevel = EnergyLevel.MEDIUM

    model_config = ConfigDict(str_strip_whitespace=True)


class PetUpdate(BaseModel):
    """Partial edit of a listing. Status only changes through the workflows."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    breed: Optional[str] = Field(None, min_length=1)
    age: Optional[int] = Field(None, ge=0, le=30)
    gender: Optional[Gender] = None
    size: Optional[PetSize] = None
    color: Optional[str] = None
    description: Optional[str] = None
    health_status: Optional[HealthStatus] = None
    vaccination_status: Optional[bool] = None
    spayed_neutered: Optional[bool] = None
    adoption_fee: Optional[float] = Field(None, ge=0)
    special_needs: Optional[str] = None
    good_with_kids: Optional[bool] = None
    good_with_pets: Optional[bool] = None
    energy_level: Optional[EnergyLevel] = None

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")


class Pet(PetAttributes):
    """Pet database model."""

    id: int
    adoption_status: PetStatus
    uploaded_by: int
    active_claim: Optional[PetClaim] = None
    images: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_claimable(self) -> bool:
        return self.adoption_status == PetStatus.AVAILABLE and self.active_claim is None

    @property
    def is_intake_pending(self) -> bool:
        """Donated pet not yet accepted into a shelter (never listed)."""
        return self.active_claim is not None and self.active_claim.kind == ClaimKind.DONATION

    @property
    def has_claim_in_flight(self) -> bool:
        """A pending adoption request or an unprocessed donation offer holds the pet."""
        return self.active_claim is not None and self.adoption_status == PetStatus.PENDING

    def is_claimed_by(self, claim: PetClaim) -> bool:
        return self.active_claim == claim


class PetFilter(BaseModel):
    """Listing filters. Donation-held pets are hidden unless show_hidden or owned by hidden_visible_to."""

    status: Optional[PetStatus] = None
    breed: Optional[str] = None
    size: Optional[PetSize] = None
    gender: Optional[Gender] = None
    min_age: Optional[int] = Field(None, ge=0)
    max_age: Optional[int] = Field(None, le=30)
    health_status: Optional[HealthStatus] = None
    good_with_kids: Optional[bool] = None
    good_with_pets: Optional[bool] = None
    energy_level: Optional[EnergyLevel] = None
    search: Optional[str] = None
    uploaded_by: Optional[int] = None
    show_hidden: bool = False
    hidden_visible_to: Optional[int] = None

    @model_validator(mode="after")
    def check_age_range(self):
        """Validate that min_age does not exceed max_age."""
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise ValueError("min_age must not be greater than max_age")
        return self
