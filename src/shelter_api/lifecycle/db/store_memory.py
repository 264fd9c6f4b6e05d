"""
In-process Lifecycle Store

Keeps every table in a dict of immutable pydantic rows. A transaction works on a
shallow copy of the tables and swaps it in on success, so a failed transaction
leaves committed state untouched. Transactions are serialized by one
asyncio.Lock, which makes compare_and_set_claim trivially atomic.

Used for local development (storage_backend=memory) and the test suite.
"""

import asyncio
import itertools
from collections import Counter
from contextlib import asynccontextmanager
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Any
from typing import AsyncIterator
from typing import Callable
from typing import Collection
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from typing import TypeVar

from loguru import logger

from shelter_api.lifecycle.db.store import ADOPTION_DECISION_FIELDS
from shelter_api.lifecycle.db.store import DONATION_DECISION_FIELDS
from shelter_api.lifecycle.db.store import PET_EDITABLE_FIELDS
from shelter_api.lifecycle.db.store import RECENT_PET_DAYS
from shelter_api.lifecycle.db.store import TOP_BREEDS
from shelter_api.lifecycle.db.store import LifecycleStore
from shelter_api.lifecycle.db.store import StoreSession
from shelter_api.lifecycle.db.store import check_fields
from shelter_api.lifecycle.enums import AdoptionRequestStatus
from shelter_api.lifecycle.enums import DonationStatus
from shelter_api.lifecycle.enums import PetStatus
from shelter_api.lifecycle.enums import Role
from shelter_api.lifecycle.exceptions import ConflictingUpdate
from shelter_api.lifecycle.models import Account
from shelter_api.lifecycle.models import AdoptionApplication
from shelter_api.lifecycle.models import AdoptionRequest
from shelter_api.lifecycle.models import AdoptionScope
from shelter_api.lifecycle.models import BreedCount
from shelter_api.lifecycle.models import DonationOffer
from shelter_api.lifecycle.models import DonationScope
from shelter_api.lifecycle.models import DonorDetails
from shelter_api.lifecycle.models import Page
from shelter_api.lifecycle.models import PageRequest
from shelter_api.lifecycle.models import Pet
from shelter_api.lifecycle.models import PetAttributes
from shelter_api.lifecycle.models import PetClaim
from shelter_api.lifecycle.models import PetFilter
from shelter_api.lifecycle.models import PetStats
from shelter_api.lifecycle.models import StatusCounts

Row = TypeVar("Row", Pet, AdoptionRequest, DonationOffer)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Tables:
    accounts: Dict[int, Account] = field(default_factory=dict)
    pets: Dict[int, Pet] = field(default_factory=dict)
    adoptions: Dict[int, AdoptionRequest] = field(default_factory=dict)
    donations: Dict[int, DonationOffer] = field(default_factory=dict)

    def copy(self) -> "_Tables":
        return _Tables(
            accounts=dict(self.accounts),
            pets=dict(self.pets),
            adoptions=dict(self.adoptions),
            donations=dict(self.donations),
        )


def _paginate(rows: Iterable[Row], page: PageRequest) -> Page[Row]:
    ordered = sorted(rows, key=lambda r: (r.created_at, r.id), reverse=True)
    return Page(
        items=ordered[page.offset : page.offset + page.limit],
        total=len(ordered),
        page=page.page,
        limit=page.limit,
    )


def _count_by_status(rows: Iterable[Row], statuses: Iterable[str]) -> StatusCounts:
    rows = list(rows)
    counts = {status: 0 for status in statuses}
    for row in rows:
        counts[row.status.value] += 1
    now = _now()
    this_month = sum(1 for r in rows if r.created_at.year == now.year and r.created_at.month == now.month)
    return StatusCounts(counts=counts, this_month=this_month)


def _contains(haystack: Optional[str], needle: str) -> bool:
    return haystack is not None and needle.lower() in haystack.lower()


class MemoryStoreSession(StoreSession):
    """Session over one set of tables (committed, or a transaction's working copy)."""

    def __init__(self, tables: _Tables, next_id: Callable[[str], int]):
        self._t = tables
        self._next_id = next_id

    # ── Accounts ───────────────────────────────────────────────────────────

    async def get_account(self, account_id: int) -> Optional[Account]:
        return self._t.accounts.get(account_id)

    async def insert_account(
        self,
        name: str,
        email: str,
        role: Role,
        phone: Optional[str] = None,
        is_active: bool = True,
    ) -> Account:
        account = Account(
            id=self._next_id("accounts"), name=name, email=email, role=role, phone=phone, is_active=is_active
        )
        self._t.accounts[account.id] = account
        return account

    # ── Pets ───────────────────────────────────────────────────────────────

    async def get_pet(self, pet_id: int, for_update: bool = False) -> Optional[Pet]:
        return self._t.pets.get(pet_id)

    async def insert_pet(
        self,
        attributes: PetAttributes,
        uploaded_by: int,
        status: PetStatus,
        images: List[str],
    ) -> Pet:
        now = _now()
        pet = Pet(
            **attributes.model_dump(),
            id=self._next_id("pets"),
            adoption_status=status,
            uploaded_by=uploaded_by,
            active_claim=None,
            images=list(images),
            created_at=now,
            updated_at=now,
        )
        self._t.pets[pet.id] = pet
        return pet

    async def update_pet(self, pet_id: int, fields: Dict[str, Any]) -> Optional[Pet]:
        check_fields(fields, PET_EDITABLE_FIELDS, "pet")
        pet = self._t.pets.get(pet_id)
        if pet is None:
            return None
        updated = pet.model_copy(update={**fields, "updated_at": _now()})
        self._t.pets[pet_id] = updated
        return updated

    async def delete_pet(self, pet_id: int) -> bool:
        if self._t.pets.pop(pet_id, None) is None:
            return False
        # Same as ON DELETE CASCADE in schema.sql
        self._t.adoptions = {k: r for k, r in self._t.adoptions.items() if r.pet_id != pet_id}
        self._t.donations = {k: o for k, o in self._t.donations.items() if o.pet_id != pet_id}
        return True

    async def list_pets(self, pet_filter: PetFilter, page: PageRequest) -> Page[Pet]:
        f = pet_filter

        def visible(pet: Pet) -> bool:
            if not pet.is_intake_pending or f.show_hidden:
                return True
            return f.hidden_visible_to is not None and pet.uploaded_by == f.hidden_visible_to

        def matches(pet: Pet) -> bool:
            if f.status is not None and pet.adoption_status != f.status:
                return False
            if f.breed and not _contains(pet.breed, f.breed):
                return False
            if f.size is not None and pet.size != f.size:
                return False
            if f.gender is not None and pet.gender != f.gender:
                return False
            if f.min_age is not None and pet.age < f.min_age:
                return False
            if f.max_age is not None and pet.age > f.max_age:
                return False
            if f.health_status is not None and pet.health_status != f.health_status:
                return False
            if f.good_with_kids is not None and pet.good_with_kids != f.good_with_kids:
                return False
            if f.good_with_pets is not None and pet.good_with_pets != f.good_with_pets:
                return False
            if f.energy_level is not None and pet.energy_level != f.energy_level:
                return False
            if f.uploaded_by is not None and pet.uploaded_by != f.uploaded_by:
                return False
            if f.search and not any(_contains(v, f.search) for v in (pet.name, pet.breed, pet.description)):
                return False
            return True

        return _paginate((p for p in self._t.pets.values() if visible(p) and matches(p)), page)

    async def count_pets(self) -> PetStats:
        pets = list(self._t.pets.values())
        counts = {status.value: 0 for status in PetStatus}
        for pet in pets:
            counts[pet.adoption_status.value] += 1
        since = _now() - timedelta(days=RECENT_PET_DAYS)
        breeds = Counter(pet.breed for pet in pets)
        top = sorted(breeds.items(), key=lambda item: (-item[1], item[0]))[:TOP_BREEDS]
        return PetStats(
            counts=counts,
            added_recently=sum(1 for pet in pets if pet.created_at >= since),
            top_breeds=[BreedCount(name=name, count=n) for name, n in top],
        )

    async def compare_and_set_claim(
        self,
        pet_id: int,
        expected_status: Collection[PetStatus],
        expected_claim: Optional[PetClaim],
        new_status: PetStatus,
        new_claim: Optional[PetClaim],
    ) -> bool:
        pet = self._t.pets.get(pet_id)
        if pet is None or pet.adoption_status not in expected_status or pet.active_claim != expected_claim:
            return False
        self._t.pets[pet_id] = pet.model_copy(
            update={"adoption_status": new_status, "active_claim": new_claim, "updated_at": _now()}
        )
        return True

    # ── Adoption requests ─────────────────────────────────────────────────

    async def get_adoption(self, request_id: int, for_update: bool = False) -> Optional[AdoptionRequest]:
        return self._t.adoptions.get(request_id)

    async def find_pending_adoption(
        self,
        pet_id: int,
        applicant_user_id: Optional[int] = None,
    ) -> Optional[AdoptionRequest]:
        for request in self._t.adoptions.values():
            if request.pet_id != pet_id or request.status != AdoptionRequestStatus.PENDING:
                continue
            if applicant_user_id is None or request.applicant_user_id == applicant_user_id:
                return request
        return None

    async def insert_adoption(self, application: AdoptionApplication, applicant_user_id: int) -> AdoptionRequest:
        # Same guarantee as the partial unique index in schema.sql
        if await self.find_pending_adoption(application.pet_id) is not None:
            raise ConflictingUpdate(application.pet_id, "Another adoption request for this pet is already pending")

        now = _now()
        request = AdoptionRequest(
            **application.model_dump(),
            id=self._next_id("adoptions"),
            applicant_user_id=applicant_user_id,
            status=AdoptionRequestStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self._t.adoptions[request.id] = request
        return request

    async def update_adoption(self, request_id: int, fields: Dict[str, Any]) -> AdoptionRequest:
        check_fields(fields, ADOPTION_DECISION_FIELDS, "adoption request")
        request = self._t.adoptions[request_id]
        if fields.get("status") == AdoptionRequestStatus.PENDING and request.status != AdoptionRequestStatus.PENDING:
            other = await self.find_pending_adoption(request.pet_id)
            if other is not None and other.id != request_id:
                raise ConflictingUpdate(request.pet_id, "Another adoption request for this pet is already pending")
        updated = request.model_copy(update={**fields, "updated_at": _now()})
        self._t.adoptions[request_id] = updated
        return updated

    async def delete_adoption(self, request_id: int) -> bool:
        return self._t.adoptions.pop(request_id, None) is not None

    async def list_adoptions(self, scope: AdoptionScope, page: PageRequest) -> Page[AdoptionRequest]:
        def in_scope(request: AdoptionRequest) -> bool:
            if scope.status is not None and request.status != scope.status:
                return False
            if scope.applicant_user_id is not None and request.applicant_user_id != scope.applicant_user_id:
                return False
            if scope.pet_owner_id is not None:
                pet = self._t.pets.get(request.pet_id)
                if pet is None or pet.uploaded_by != scope.pet_owner_id:
                    return False
            return True

        return _paginate((r for r in self._t.adoptions.values() if in_scope(r)), page)

    async def count_adoptions(self) -> StatusCounts:
        return _count_by_status(self._t.adoptions.values(), (s.value for s in AdoptionRequestStatus))

    # ── Donation offers ───────────────────────────────────────────────────

    async def get_donation(self, offer_id: int, for_update: bool = False) -> Optional[DonationOffer]:
        return self._t.donations.get(offer_id)

    async def insert_donation(
        self,
        pet_id: int,
        shelter_id: int,
        donor_user_id: int,
        donor: DonorDetails,
    ) -> DonationOffer:
        if pet_id not in self._t.pets:
            raise ValueError(f"Donation offer references missing pet {pet_id}")
        now = _now()
        offer = DonationOffer(
            **donor.model_dump(),
            id=self._next_id("donations"),
            pet_id=pet_id,
            shelter_id=shelter_id,
            donor_user_id=donor_user_id,
            status=DonationStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self._t.donations[offer.id] = offer
        return offer

    async def update_donation(self, offer_id: int, fields: Dict[str, Any]) -> DonationOffer:
        check_fields(fields, DONATION_DECISION_FIELDS, "donation offer")
        updated = self._t.donations[offer_id].model_copy(update={**fields, "updated_at": _now()})
        self._t.donations[offer_id] = updated
        return updated

    async def delete_donation(self, offer_id: int) -> bool:
        return self._t.donations.pop(offer_id, None) is not None

    async def list_donations(self, scope: DonationScope, page: PageRequest) -> Page[DonationOffer]:
        def in_scope(offer: DonationOffer) -> bool:
            if scope.status is not None and offer.status != scope.status:
                return False
            if scope.shelter_id is not None and offer.shelter_id != scope.shelter_id:
                return False
            if scope.donor_user_id is not None and offer.donor_user_id != scope.donor_user_id:
                return False
            return True

        return _paginate((o for o in self._t.donations.values() if in_scope(o)), page)

    async def count_donations(self) -> StatusCounts:
        return _count_by_status(self._t.donations.values(), (s.value for s in DonationStatus))


class MemoryLifecycleStore(LifecycleStore):
    """Lifecycle store held entirely in process memory."""

    def __init__(self):
        self._tables = _Tables()
        self._lock = asyncio.Lock()
        self._sequences = {name: itertools.count(1) for name in ("accounts", "pets", "adoptions", "donations")}

    def _next_id(self, table: str) -> int:
        return next(self._sequences[table])

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreSession]:
        async with self._lock:
            working = self._tables.copy()
            yield MemoryStoreSession(working, self._next_id)
            # Only reached when the block exits cleanly; an exception skips the swap
            self._tables = working

    @asynccontextmanager
    async def session(self) -> AsyncIterator[StoreSession]:
        yield MemoryStoreSession(self._tables.copy(), self._next_id)

    async def initialize(self) -> None:
        logger.info("Using in-memory lifecycle store (data is lost on restart)")

    async def health_check(self) -> bool:
        return True
