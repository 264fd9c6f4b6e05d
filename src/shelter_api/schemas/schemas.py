####################################
# --- Request/response schemas --- #
####################################

from typing import Dict
from typing import List
from typing import Optional

from pydantic import BaseModel
from pydantic import Field

from shelter_api.lifecycle.enums import AdoptionRequestStatus
from shelter_api.lifecycle.enums import DonationStatus
from shelter_api.lifecycle.enums import EnergyLevel
from shelter_api.lifecycle.enums import Gender
from shelter_api.lifecycle.enums import HealthStatus
from shelter_api.lifecycle.enums import PetSize
from shelter_api.lifecycle.enums import PetStatus
from shelter_api.lifecycle.images import UploadedImage
from shelter_api.lifecycle.models import AdoptionRequest
from shelter_api.lifecycle.models import DonationOffer
from shelter_api.lifecycle.models import Page
from shelter_api.lifecycle.models import PageRequest
from shelter_api.lifecycle.models import Pet
from shelter_api.lifecycle.models import PetFilter
from shelter_api.lifecycle.models import PetStats
from shelter_api.lifecycle.models import StatusCounts
from shelter_api.lifecycle.models.page import MAX_PAGE_SIZE


class MultipartPayload(BaseModel):
    """Text fields and files of a multipart request, split apart."""

    fields: Dict[str, str] = Field(default_factory=dict)
    uploads: List[UploadedImage] = Field(default_factory=list)

    def pick(self, names) -> Dict[str, str]:
        """Return the submitted fields whose names are in ``names``."""
        return {k: v for k, v in self.fields.items() if k in names}


class PaginationInfo(BaseModel):
    """Pagination block attached to every list response."""

    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int

    @classmethod
    def from_page(cls, page: Page) -> "PaginationInfo":
        return cls(
            current_page=page.page,
            total_pages=page.total_pages,
            total_items=page.total,
            items_per_page=page.limit,
        )


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


# read (cRud)
class GetPetsQueryParams(BaseModel):
    """Query parameters for listing pets. Only available pets unless another status is asked for."""

    page: int = Field(1, ge=1)
    limit: int = Field(12, ge=1, le=MAX_PAGE_SIZE)
    status: PetStatus = PetStatus.AVAILABLE
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

    def to_filter(self) -> PetFilter:
        return PetFilter(**self.model_dump(exclude={"page", "limit"}))

    def to_page(self) -> PageRequest:
        return PageRequest(page=self.page, limit=self.limit)


class GetUserPetsQueryParams(BaseModel):
    """Query parameters for listing the pets one account uploaded."""

    page: int = Field(1, ge=1)
    limit: int = Field(12, ge=1, le=MAX_PAGE_SIZE)

    def to_page(self) -> PageRequest:
        return PageRequest(page=self.page, limit=self.limit)


class GetAdoptionsQueryParams(BaseModel):
    """Query parameters for listing adoption requests."""

    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=MAX_PAGE_SIZE)
    status: Optional[AdoptionRequestStatus] = None

    def to_page(self) -> PageRequest:
        return PageRequest(page=self.page, limit=self.limit)


class GetDonationsQueryParams(BaseModel):
    """Query parameters for listing donation offers."""

    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=MAX_PAGE_SIZE)
    status: Optional[DonationStatus] = None

    def to_page(self) -> PageRequest:
        return PageRequest(page=self.page, limit=self.limit)


class GetPetsResponse(BaseModel):
    """Response model for listing pets."""

    pets: List[Pet]
    pagination: PaginationInfo


class GetAdoptionsResponse(BaseModel):
    """Response model for listing adoption requests."""

    adoptions: List[AdoptionRequest]
    pagination: PaginationInfo


class GetDonationsResponse(BaseModel):
    """Response model for listing donation offers."""

    donations: List[DonationOffer]
    pagination: PaginationInfo


class PetResponse(BaseModel):
    message: str
    pet: Pet


class AdoptionResponse(BaseModel):
    message: str
    adoption: AdoptionRequest


class DonationResponse(BaseModel):
    message: str
    donation: DonationOffer


class StatusOverviewResponse(BaseModel):
    """Admin overview: count per status, overall total, and records created this calendar month."""

    by_status: Dict[str, int]
    total: int
    this_month: int

    @classmethod
    def from_counts(cls, counts: StatusCounts) -> "StatusOverviewResponse":
        return cls(by_status=counts.counts, total=counts.total, this_month=counts.this_month)


class BreedCountResponse(BaseModel):
    name: str
    count: int


class PetStatsResponse(BaseModel):
    """Admin pet overview: totals per adoption status, pets added in the last 30 days, top breeds."""

    total: int
    available: int
    pending: int
    adopted: int
    added_last_30_days: int
    top_breeds: List[BreedCountResponse]

    @classmethod
    def from_stats(cls, stats: PetStats) -> "PetStatsResponse":
        return cls(
            total=stats.total,
            available=stats.counts.get(PetStatus.AVAILABLE.value, 0),
            pending=stats.counts.get(PetStatus.PENDING.value, 0),
            adopted=stats.counts.get(PetStatus.ADOPTED.value, 0),
            added_last_30_days=stats.added_recently,
            top_breeds=[BreedCountResponse(name=b.name, count=b.count) for b in stats.top_breeds],
        )
