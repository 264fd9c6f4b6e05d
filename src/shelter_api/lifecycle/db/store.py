"""
Lifecycle Store

Storage boundary for the lifecycle core. Two backends implement it:

- PostgresLifecycleStore (store_postgres.py): asyncpg pool, real transactions,
  row locks and a partial unique index on pending adoption requests.
- MemoryLifecycleStore (store_memory.py): in-process dicts, transactions
  serialized by an asyncio.Lock and committed by swapping a working copy.

Every write that spans more than one row happens inside ``transaction()``.
Pet status only ever changes through ``compare_and_set_claim``, a conditional
write that succeeds only if the pet still has the status and claim the caller
observed.
"""

from abc import ABC
from abc import abstractmethod
from typing import Any
from typing import AsyncContextManager
from typing import Collection
from typing import Dict
from typing import List
from typing import Optional

from shelter_api.lifecycle.enums import PetStatus
from shelter_api.lifecycle.enums import Role
from shelter_api.lifecycle.models import Account
from shelter_api.lifecycle.models import AdoptionApplication
from shelter_api.lifecycle.models import AdoptionRequest
from shelter_api.lifecycle.models import AdoptionScope
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

# Columns a listing edit may touch; status and claim columns are excluded.
PET_EDITABLE_FIELDS = frozenset(PetAttributes.model_fields) | {"images", "uploaded_by"}
ADOPTION_DECISION_FIELDS = frozenset(
    {"status", "admin_notes", "approved_by", "approved_at", "completed_at", "rejection_reason"}
)
DONATION_DECISION_FIELDS = frozenset({"status", "admin_notes", "processed_by", "processed_at", "pickup_date"})

RECENT_PET_DAYS = 30
TOP_BREEDS = 5


class StoreSession(ABC):
    """Operations available inside a session or transaction."""

    # ── Accounts ───────────────────────────────────────────────────────────

    @abstractmethod
    async def get_account(self, account_id: int) -> Optional[Account]:
        ...

    @abstractmethod
    async def insert_account(
        self,
        name: str,
        email: str,
        role: Role,
        phone: Optional[str] = None,
        is_active: bool = True,
    ) -> Account:
        ...

    # ── Pets ───────────────────────────────────────────────────────────────

    @abstractmethod
    async def get_pet(self, pet_id: int, for_update: bool = False) -> Optional[Pet]:
        ...

    @abstractmethod
    async def insert_pet(
        self,
        attributes: PetAttributes,
        uploaded_by: int,
        status: PetStatus,
        images: List[str],
    ) -> Pet:
        """Insert an unclaimed pet. Claims are only ever set through compare_and_set_claim."""

    @abstractmethod
    async def update_pet(self, pet_id: int, fields: Dict[str, Any]) -> Optional[Pet]:
        """Update editable columns (PET_EDITABLE_FIELDS) and return the new row."""

    @abstractmethod
    async def delete_pet(self, pet_id: int) -> bool:
        """Delete the pet together with its adoption requests and donation offers."""

    @abstractmethod
    async def list_pets(self, pet_filter: PetFilter, page: PageRequest) -> Page[Pet]:
        ...

    @abstractmethod
    async def count_pets(self) -> PetStats:
        """
        Admin overview: pets per adoption_status, pets added in the last
        RECENT_PET_DAYS days and the TOP_BREEDS most common breeds.
        """

    @abstractmethod
    async def compare_and_set_claim(
        self,
        pet_id: int,
        expected_status: Collection[PetStatus],
        expected_claim: Optional[PetClaim],
        new_status: PetStatus,
        new_claim: Optional[PetClaim],
    ) -> bool:
        """
        Atomically move a pet to (new_status, new_claim).

        The write only applies when the pet's current status is one of
        expected_status AND its current claim equals expected_claim.

        Returns
        -------
        bool
            True if the row was updated, False if the precondition no longer held
        """

    # ── Adoption requests ─────────────────────────────────────────────────

    @abstractmethod
    async def get_adoption(self, request_id: int, for_update: bool = False) -> Optional[AdoptionRequest]:
        ...

    @abstractmethod
    async def find_pending_adoption(
        self,
        pet_id: int,
        applicant_user_id: Optional[int] = None,
    ) -> Optional[AdoptionRequest]:
        ...

    @abstractmethod
    async def insert_adoption(self, application: AdoptionApplication, applicant_user_id: int) -> AdoptionRequest:
        """
        Insert a pending adoption request.

        Raises
        ------
        ConflictingUpdate
            If another pending request for the same pet exists at the storage layer
        """

    @abstractmethod
    async def update_adoption(self, request_id: int, fields: Dict[str, Any]) -> AdoptionRequest:
        ...

    @abstractmethod
    async def delete_adoption(self, request_id: int) -> bool:
        ...

    @abstractmethod
    async def list_adoptions(self, scope: AdoptionScope, page: PageRequest) -> Page[AdoptionRequest]:
        ...

    @abstractmethod
    async def count_adoptions(self) -> StatusCounts:
        ...

    # ── Donation offers ───────────────────────────────────────────────────

    @abstractmethod
    async def get_donation(self, offer_id: int, for_update: bool = False) -> Optional[DonationOffer]:
        ...

    @abstractmethod
    async def insert_donation(
        self,
        pet_id: int,
        shelter_id: int,
        donor_user_id: int,
        donor: DonorDetails,
    ) -> DonationOffer:
        ...

    @abstractmethod
    async def update_donation(self, offer_id: int, fields: Dict[str, Any]) -> DonationOffer:
        ...

    @abstractmethod
    async def delete_donation(self, offer_id: int) -> bool:
        ...

    @abstractmethod
    async def list_donations(self, scope: DonationScope, page: PageRequest) -> Page[DonationOffer]:
        ...

    @abstractmethod
    async def count_donations(self) -> StatusCounts:
        ...


class LifecycleStore(ABC):
    """Backend factory for sessions and transactions."""

    @abstractmethod
    def transaction(self) -> AsyncContextManager[StoreSession]:
        """All writes made through the yielded session commit together or not at all."""

    @abstractmethod
    def session(self) -> AsyncContextManager[StoreSession]:
        """Read-only access to committed state."""

    async def initialize(self) -> None:
        return None

    async def close(self) -> None:
        return None

    @abstractmethod
    async def health_check(self) -> bool:
        ...


def check_fields(fields: Dict[str, Any], allowed: Collection[str], entity: str) -> None:
    unknown = set(fields) - set(allowed)
    if unknown:
        raise ValueError(f"Cannot update {entity} columns: {sorted(unknown)}")
