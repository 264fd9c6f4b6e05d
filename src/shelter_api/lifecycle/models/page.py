"""Pagination and aggregate result models shared by the list and stats queries."""

from math import ceil
from typing import Dict
from typing import Generic
from typing import List
from typing import TypeVar

from pydantic import BaseModel
from pydantic import Field

T = TypeVar("T")

MAX_PAGE_SIZE = 100


class PageRequest(BaseModel):
    """Page number and size requested by the caller."""

    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Page(BaseModel, Generic[T]):
    """One page of a scoped query plus the total the scope allows."""

    items: List[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return ceil(self.total / self.limit) if self.limit else 0


class StatusCounts(BaseModel):
    """Per-status counts for the admin overview."""

    counts: Dict[str, int] = Field(default_factory=dict)
    this_month: int = 0

    @property
    def total(self) -> int:
        return sum(self.counts.values())


class BreedCount(BaseModel):
    name: str
    count: int


class PetStats(BaseModel):
    """Admin overview of the pet table."""

    counts: Dict[str, int] = Field(default_factory=dict)
    added_recently: int = 0
    top_breeds: List[BreedCount] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.counts.values())
