"""
PostgreSQL Lifecycle Store

asyncpg implementation of the lifecycle store. Transactions map onto real
database transactions; rows that a workflow is about to decide on are read with
SELECT ... FOR UPDATE, and compare_and_set_claim is a single conditional UPDATE.

The partial unique index uq_adoption_requests_pending_pet backs the
one-pending-request-per-pet rule; a violation surfaces as ConflictingUpdate.
"""

from contextlib import asynccontextmanager
from enum import Enum
from typing import Any
from typing import AsyncIterator
from typing import Collection
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple

import asyncpg
from loguru import logger

from shelter_api.lifecycle.db.pool import DomainDBPool
from shelter_api.lifecycle.db.store import ADOPTION_DECISION_FIELDS
from shelter_api.lifecycle.db.store import DONATION_DECISION_FIELDS
from shelter_api.lifecycle.db.store import PET_EDITABLE_FIELDS
from shelter_api.lifecycle.db.store import RECENT_PET_DAYS
from shelter_api.lifecycle.db.store import TOP_BREEDS
from shelter_api.lifecycle.db.store import LifecycleStore
from shelter_api.lifecycle.db.store import StoreSession
from shelter_api.lifecycle.db.store import check_fields
from shelter_api.lifecycle.enums import AdoptionRequestStatus
from shelter_api.lifecycle.enums import ClaimKind
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

PENDING_ADOPTION_INDEX = "uq_adoption_requests_pending_pet"


def _db_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _pet_from_row(row: asyncpg.Record) -> Pet:
    data = dict(row)
    kind = data.pop("claim_kind")
    ref_id = data.pop("claim_ref_id")
    data["active_claim"] = PetClaim(kind=ClaimKind(kind), ref_id=ref_id) if kind else None
    data["adoption_fee"] = float(data["adoption_fee"])
    data["images"] = list(data["images"] or [])
    return Pet(**data)


def _claim_columns(claim: Optional[PetClaim]) -> Tuple[Optional[str], Optional[int]]:
    if claim is None:
        return None, None
    return claim.kind.value, claim.ref_id


def _set_clause(fields: Dict[str, Any], start: int) -> Tuple[str, List[Any]]:
    """Build "col = $n, ..." for already-validated column names."""
    assignments = [f"{column} = ${start + i}" for i, column in enumerate(fields)]
    assignments.append("updated_at = NOW()")
    return ", ".join(assignments), [_db_value(v) for v in fields.values()]


class _Where:
    """Accumulates WHERE conditions and their positional parameters."""

    def __init__(self):
        self.conditions: List[str] = []
        self.params: List[Any] = []

    def add(self, template: str, *values: Any) -> None:
        placeholders = []
        for value in values:
            self.params.append(_db_value(value))
            placeholders.append(f"${len(self.params)}")
        self.conditions.append(template.format(*placeholders))

    def sql(self) -> str:
        return "WHERE " + " AND ".join(self.conditions) if self.conditions else ""


class PostgresStoreSession(StoreSession):
    """Store operations bound to one pooled connection."""

    def __init__(self, conn: asyncpg.Connection):
        self.conn = conn

    async def _page(self, select: str, count: str, where: _Where, order: str, page: PageRequest, mapper) -> Page:
        total = await self.conn.fetchval(f"{count} {where.sql()}", *where.params)
        n = len(where.params)
        rows = await self.conn.fetch(
            f"{select} {where.sql()} ORDER BY {order} LIMIT ${n + 1} OFFSET ${n + 2}",
            *where.params,
            page.limit,
            page.offset,
        )
        return Page(items=[mapper(r) for r in rows], total=total, page=page.page, limit=page.limit)

    async def _count_by_status(self, table: str, statuses: Collection[str]) -> StatusCounts:
        rows = await self.conn.fetch(f"SELECT status, COUNT(*) AS n FROM shelter.{table} GROUP BY status")
        counts = {status: 0 for status in statuses}
        counts.update({row["status"]: row["n"] for row in rows})
        this_month = await self.conn.fetchval(
            f"SELECT COUNT(*) FROM shelter.{table} WHERE created_at >= date_trunc('month', NOW())"
        )
        return StatusCounts(counts=counts, this_month=this_month)

    # ── Accounts ───────────────────────────────────────────────────────────

    async def get_account(self, account_id: int) -> Optional[Account]:
        row = await self.conn.fetchrow("SELECT * FROM shelter.accounts WHERE id = $1", account_id)
        return Account(**dict(row)) if row else None

    async def insert_account(
        self,
        name: str,
        email: str,
        role: Role,
        phone: Optional[str] = None,
        is_active: bool = True,
    ) -> Account:
        row = await self.conn.fetchrow(
            """
            INSERT INTO shelter.accounts (name, email, phone, role, is_active)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *
            """,
            name,
            email,
            phone,
            _db_value(role),
            is_active,
        )
        return Account(**dict(row))

    # ── Pets ───────────────────────────────────────────────────────────────

    async def get_pet(self, pet_id: int, for_update: bool = False) -> Optional[Pet]:
        lock = " FOR UPDATE" if for_update else ""
        row = await self.conn.fetchrow(f"SELECT * FROM shelter.pets WHERE id = $1{lock}", pet_id)
        return _pet_from_row(row) if row else None

    async def insert_pet(
        self,
        attributes: PetAttributes,
        uploaded_by: int,
        status: PetStatus,
        images: List[str],
    ) -> Pet:
        fields = {k: _db_value(v) for k, v in attributes.model_dump().items()}
        fields.update(uploaded_by=uploaded_by, adoption_status=_db_value(status), images=list(images))
        columns = ", ".join(fields)
        placeholders = ", ".join(f"${i + 1}" for i in range(len(fields)))
        row = await self.conn.fetchrow(
            f"INSERT INTO shelter.pets ({columns}) VALUES ({placeholders}) RETURNING *",
            *fields.values(),
        )
        return _pet_from_row(row)

    async def update_pet(self, pet_id: int, fields: Dict[str, Any]) -> Optional[Pet]:
        check_fields(fields, PET_EDITABLE_FIELDS, "pet")
        assignments, values = _set_clause(fields, start=2)
        row = await self.conn.fetchrow(
            f"UPDATE shelter.pets SET {assignments} WHERE id = $1 RETURNING *",
            pet_id,
            *values,
        )
        return _pet_from_row(row) if row else None

    async def delete_pet(self, pet_id: int) -> bool:
        result = await self.conn.execute("DELETE FROM shelter.pets WHERE id = $1", pet_id)
        return result.endswith(" 1")

    async def list_pets(self, pet_filter: PetFilter, page: PageRequest) -> Page[Pet]:
        f = pet_filter
        where = _Where()
        if not f.show_hidden:
            if f.hidden_visible_to is not None:
                where.add("(claim_kind IS DISTINCT FROM 'donation' OR uploaded_by = {})", f.hidden_visible_to)
            else:
                where.add("claim_kind IS DISTINCT FROM 'donation'")
        if f.status is not None:
            where.add("adoption_status = {}", f.status)
        if f.breed:
            where.add("breed ILIKE {}", f"%{f.breed}%")
        if f.size is not None:
            where.add("size = {}", f.size)
        if f.gender is not None:
            where.add("gender = {}", f.gender)
        if f.min_age is not None:
            where.add("age >= {}", f.min_age)
        if f.max_age is not None:
            where.add("age <= {}", f.max_age)
        if f.health_status is not None:
            where.add("health_status = {}", f.health_status)
        if f.good_with_kids is not None:
            where.add("good_with_kids = {}", f.good_with_kids)
        if f.good_with_pets is not None:
            where.add("good_with_pets = {}", f.good_with_pets)
        if f.energy_level is not None:
            where.add("energy_level = {}", f.energy_level)
        if f.uploaded_by is not None:
            where.add("uploaded_by = {}", f.uploaded_by)
        if f.search:
            where.add("(name ILIKE {0} OR breed ILIKE {0} OR description ILIKE {0})", f"%{f.search}%")

        return await self._page(
            "SELECT * FROM shelter.pets",
            "SELECT COUNT(*) FROM shelter.pets",
            where,
            "created_at DESC, id DESC",
            page,
            _pet_from_row,
        )

    async def count_pets(self) -> PetStats:
        rows = await self.conn.fetch("SELECT adoption_status, COUNT(*) AS n FROM shelter.pets GROUP BY adoption_status")
        counts = {status.value: 0 for status in PetStatus}
        counts.update({row["adoption_status"]: row["n"] for row in rows})
        added_recently = await self.conn.fetchval(
            "SELECT COUNT(*) FROM shelter.pets WHERE created_at >= NOW() - make_interval(days => $1)",
            RECENT_PET_DAYS,
        )
        breeds = await self.conn.fetch(
            """
            SELECT breed, COUNT(*) AS n FROM shelter.pets
            GROUP BY breed
            ORDER BY n DESC, breed
            LIMIT $1
            """,
            TOP_BREEDS,
        )
        return PetStats(
            counts=counts,
            added_recently=added_recently,
            top_breeds=[BreedCount(name=row["breed"], count=row["n"]) for row in breeds],
        )

    async def compare_and_set_claim(
        self,
        pet_id: int,
        expected_status: Collection[PetStatus],
        expected_claim: Optional[PetClaim],
        new_status: PetStatus,
        new_claim: Optional[PetClaim],
    ) -> bool:
        expected_kind, expected_ref = _claim_columns(expected_claim)
        new_kind, new_ref = _claim_columns(new_claim)
        updated = await self.conn.fetchval(
            """
            UPDATE shelter.pets
            SET adoption_status = $2, claim_kind = $3, claim_ref_id = $4, updated_at = NOW()
            WHERE id = $1
              AND adoption_status = ANY($5::varchar[])
              AND claim_kind IS NOT DISTINCT FROM $6::varchar
              AND claim_ref_id IS NOT DISTINCT FROM $7::bigint
            RETURNING id
            """,
            pet_id,
            _db_value(new_status),
            new_kind,
            new_ref,
            [_db_value(s) for s in expected_status],
            expected_kind,
            expected_ref,
        )
        return updated is not None

    # ── Adoption requests ─────────────────────────────────────────────────

    async def get_adoption(self, request_id: int, for_update: bool = False) -> Optional[AdoptionRequest]:
        lock = " FOR UPDATE" if for_update else ""
        row = await self.conn.fetchrow(f"SELECT * FROM shelter.adoption_requests WHERE id = $1{lock}", request_id)
        return AdoptionRequest(**dict(row)) if row else None

    async def find_pending_adoption(
        self,
        pet_id: int,
        applicant_user_id: Optional[int] = None,
    ) -> Optional[AdoptionRequest]:
        where = _Where()
        where.add("pet_id = {}", pet_id)
        where.add("status = {}", AdoptionRequestStatus.PENDING)
        if applicant_user_id is not None:
            where.add("applicant_user_id = {}", applicant_user_id)
        row = await self.conn.fetchrow(
            f"SELECT * FROM shelter.adoption_requests {where.sql()} LIMIT 1",
            *where.params,
        )
        return AdoptionRequest(**dict(row)) if row else None

    async def insert_adoption(self, application: AdoptionApplication, applicant_user_id: int) -> AdoptionRequest:
        fields = application.model_dump()
        fields["applicant_user_id"] = applicant_user_id
        columns = ", ".join(fields)
        placeholders = ", ".join(f"${i + 1}" for i in range(len(fields)))
        try:
            row = await self.conn.fetchrow(
                f"INSERT INTO shelter.adoption_requests ({columns}) VALUES ({placeholders}) RETURNING *",
                *fields.values(),
            )
        except asyncpg.UniqueViolationError as e:
            if e.constraint_name != PENDING_ADOPTION_INDEX:
                raise
            logger.warning("Pending adoption request index rejected insert", pet_id=application.pet_id)
            raise ConflictingUpdate(
                application.pet_id, "Another adoption request for this pet is already pending"
            ) from e
        return AdoptionRequest(**dict(row))

    async def update_adoption(self, request_id: int, fields: Dict[str, Any]) -> AdoptionRequest:
        check_fields(fields, ADOPTION_DECISION_FIELDS, "adoption request")
        assignments, values = _set_clause(fields, start=2)
        # Read before writing; a failed statement aborts the transaction
        pet_id = await self.conn.fetchval("SELECT pet_id FROM shelter.adoption_requests WHERE id = $1", request_id)
        try:
            row = await self.conn.fetchrow(
                f"UPDATE shelter.adoption_requests SET {assignments} WHERE id = $1 RETURNING *",
                request_id,
                *values,
            )
        except asyncpg.UniqueViolationError as e:
            if e.constraint_name != PENDING_ADOPTION_INDEX:
                raise
            raise ConflictingUpdate(pet_id, "Another adoption request for this pet is already pending") from e
        return AdoptionRequest(**dict(row))

    async def delete_adoption(self, request_id: int) -> bool:
        result = await self.conn.execute("DELETE FROM shelter.adoption_requests WHERE id = $1", request_id)
        return result.endswith(" 1")

    async def list_adoptions(self, scope: AdoptionScope, page: PageRequest) -> Page[AdoptionRequest]:
        where = _Where()
        if scope.status is not None:
            where.add("a.status = {}", scope.status)
        if scope.applicant_user_id is not None:
            where.add("a.applicant_user_id = {}", scope.applicant_user_id)
        if scope.pet_owner_id is not None:
            where.add("p.uploaded_by = {}", scope.pet_owner_id)

        source = "FROM shelter.adoption_requests a JOIN shelter.pets p ON p.id = a.pet_id"
        return await self._page(
            f"SELECT a.* {source}",
            f"SELECT COUNT(*) {source}",
            where,
            "a.created_at DESC, a.id DESC",
            page,
            lambda r: AdoptionRequest(**dict(r)),
        )

    async def count_adoptions(self) -> StatusCounts:
        return await self._count_by_status("adoption_requests", [s.value for s in AdoptionRequestStatus])

    # ── Donation offers ───────────────────────────────────────────────────

    async def get_donation(self, offer_id: int, for_update: bool = False) -> Optional[DonationOffer]:
        lock = " FOR UPDATE" if for_update else ""
        row = await self.conn.fetchrow(f"SELECT * FROM shelter.donation_offers WHERE id = $1{lock}", offer_id)
        return DonationOffer(**dict(row)) if row else None

    async def insert_donation(
        self,
        pet_id: int,
        shelter_id: int,
        donor_user_id: int,
        donor: DonorDetails,
    ) -> DonationOffer:
        fields = donor.model_dump()
        fields.update(pet_id=pet_id, shelter_id=shelter_id, donor_user_id=donor_user_id)
        columns = ", ".join(fields)
        placeholders = ", ".join(f"${i + 1}" for i in range(len(fields)))
        row = await self.conn.fetchrow(
            f"INSERT INTO shelter.donation_offers ({columns}) VALUES ({placeholders}) RETURNING *",
            *fields.values(),
        )
        return DonationOffer(**dict(row))

    async def update_donation(self, offer_id: int, fields: Dict[str, Any]) -> DonationOffer:
        check_fields(fields, DONATION_DECISION_FIELDS, "donation offer")
        assignments, values = _set_clause(fields, start=2)
        row = await self.conn.fetchrow(
            f"UPDATE shelter.donation_offers SET {assignments} WHERE id = $1 RETURNING *",
            offer_id,
            *values,
        )
        return DonationOffer(**dict(row))

    async def delete_donation(self, offer_id: int) -> bool:
        result = await self.conn.execute("DELETE FROM shelter.donation_offers WHERE id = $1", offer_id)
        return result.endswith(" 1")

    async def list_donations(self, scope: DonationScope, page: PageRequest) -> Page[DonationOffer]:
        where = _Where()
        if scope.status is not None:
            where.add("status = {}", scope.status)
        if scope.shelter_id is not None:
            where.add("shelter_id = {}", scope.shelter_id)
        if scope.donor_user_id is not None:
            where.add("donor_user_id = {}", scope.donor_user_id)

        return await self._page(
            "SELECT * FROM shelter.donation_offers",
            "SELECT COUNT(*) FROM shelter.donation_offers",
            where,
            "created_at DESC, id DESC",
            page,
            lambda r: DonationOffer(**dict(r)),
        )

    async def count_donations(self) -> StatusCounts:
        return await self._count_by_status("donation_offers", [s.value for s in DonationStatus])


class PostgresLifecycleStore(LifecycleStore):
    """Lifecycle store backed by the shelter PostgreSQL database."""

    def __init__(self, db_pool: DomainDBPool):
        self.db_pool = db_pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreSession]:
        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                yield PostgresStoreSession(conn)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[StoreSession]:
        async with self.db_pool.acquire() as conn:
            yield PostgresStoreSession(conn)

    async def initialize(self) -> None:
        await self.db_pool.initialize()

    async def close(self) -> None:
        await self.db_pool.close()

    async def health_check(self) -> bool:
        return await self.db_pool.health_check()
