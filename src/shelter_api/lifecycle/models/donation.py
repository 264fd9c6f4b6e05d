"""
Donation Offer Model

Database model for donation offers and the inputs that create and decide them.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import EmailStr
from pydantic import Field

from shelter_api.lifecycle.enums import ClaimKind
from shelter_api.lifecycle.enums import DonationStatus
from shelter_api.lifecycle.models.pet import PetAttributes
from shelter_api.lifecycle.models.pet import PetClaim


class DonorDetails(BaseModel):
    """Donor contact and hand-over details."""

    donor_name: str = Field(..., min_length=1)
    donor_email: EmailStr
    donor_phone: str = Field(..., min_length=1)
    donation_reason: str = Field(..., min_length=1)
    pet_background: str = Field(..., min_length=1)
    pickup_date: datetime
    notes: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class DonationOfferCreate(BaseModel):
    """Everything a donor submits: the animal, themselves, and the receiving shelter."""

    shelter_id: int = Field(..., gt=0)
    pet: PetAttributes
    donor: DonorDetails


class DonationDecision(BaseModel):
    """Status change requested by the receiving shelter or an admin."""

    status: DonationStatus
    admin_notes: Optional[str] = None
    pickup_date: Optional[datetime] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class DonationOffer(BaseModel):
    """Donation offer database model."""

    id: int
    pet_id: int
    shelter_id: int
    donor_user_id: int
    donor_name: Optional[str] = None
    donor_email: Optional[str] = None
    donor_phone: Optional[str] = None
    donation_reason: Optional[str] = None
    pet_background: Optional[str] = None
    pickup_date: Optional[datetime] = None
    notes: Optional[str] = None
    status: DonationStatus

    # Processing columns
    admin_notes: Optional[str] = None
    processed_by: Optional[int] = None
    processed_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @property
    def hold(self) -> PetClaim:
        return PetClaim(kind=ClaimKind.DONATION, ref_id=self.id)


class DonationScope(BaseModel):
    """Row filter the policy imposes on donation queries (empty means unrestricted)."""

    shelter_id: Optional[int] = None
    donor_user_id: Optional[int] = None
    status: Optional[DonationStatus] = None
