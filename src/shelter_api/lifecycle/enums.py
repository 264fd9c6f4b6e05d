"""
Lifecycle Enums

All enum types used throughout the pet lifecycle system.
Values must match exactly with database constraints in schema.sql.
"""

from enum import Enum

# ════════════════════════════════════════════════════════════════════════════
# Identity Enums
# ════════════════════════════════════════════════════════════════════════════


class Role(str, Enum):
    """Account role resolved for every caller."""

    USER = "user"  # Adopter or donor
    SHELTER = "shelter"  # Lister and donation recipient
    ADMIN = "admin"  # Arbiter


# ════════════════════════════════════════════════════════════════════════════
# Pet Enums
# ════════════════════════════════════════════════════════════════════════════


class PetStatus(str, Enum):
    """Pet availability as shown to adopters."""

    AVAILABLE = "available"
    PENDING = "pending"  # Adoption-pending or intake-pending, see ClaimKind
    ADOPTED = "adopted"


class ClaimKind(str, Enum):
    """Kind of in-flight record holding a pet's availability."""

    ADOPTION = "adoption"  # Held by an AdoptionRequest
    DONATION = "donation"  # Held by a DonationOffer awaiting intake


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class PetSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    NEEDS_CARE = "needs_care"
    RECOVERING = "recovering"


class EnergyLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ════════════════════════════════════════════════════════════════════════════
# Workflow Record Enums
# ════════════════════════════════════════════════════════════════════════════


class AdoptionRequestStatus(str, Enum):
    """Adoption request status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class DonationStatus(str, Enum):
    """Donation offer status."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


# ════════════════════════════════════════════════════════════════════════════
# Authorization Enums
# ════════════════════════════════════════════════════════════════════════════


class Action(str, Enum):
    """Every operation the authorization policy can be asked about."""

    PET_CREATE = "pet:create"
    PET_UPDATE = "pet:update"
    PET_DELETE = "pet:delete"
    PET_VIEW_HIDDEN = "pet:view_hidden"
    PET_LIST_OWNED = "pet:list_owned"
    PET_STATS = "pet:stats"

    ADOPTION_SUBMIT = "adoption:submit"
    ADOPTION_READ = "adoption:read"
    ADOPTION_LIST = "adoption:list"
    ADOPTION_DECIDE = "adoption:decide"
    ADOPTION_WITHDRAW = "adoption:withdraw"
    ADOPTION_DELETE = "adoption:delete"
    ADOPTION_STATS = "adoption:stats"

    DONATION_CREATE = "donation:create"
    DONATION_READ = "donation:read"
    DONATION_LIST = "donation:list"
    DONATION_DECIDE = "donation:decide"
    DONATION_DELETE = "donation:delete"
    DONATION_STATS = "donation:stats"


class DenyReason(str, Enum):
    """Why the policy refused an action."""

    UNAUTHENTICATED = "unauthenticated"
    INSUFFICIENT_ROLE = "insufficient_role"
    NOT_OWNER = "not_owner"
