"""Settings for the shelter API."""

from typing import Literal
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict

from shelter_api.lifecycle.images import MIB
from shelter_api.lifecycle.images import ImageLimits


class Settings(BaseSettings):
    """
    Settings for the shelter API.

    [pydantic.BaseSettings](https://docs.pydantic.dev/latest/concepts/pydantic_settings/) reads
    configuration from:
    1. Environment variables (production)
    2. .env file (local development)

    Environment variable names are treated case-insensitively, but the canonical
    names used in this project are lowercase (jwt_secret, storage_backend, ...).
    """

    # Authentication
    jwt_secret: str
    """Secret used to sign and verify access tokens (required)."""

    jwt_algorithm: str = "HS256"
    """JWT signing algorithm."""

    jwt_expiration_hours: int = 168
    """Lifetime of issued access tokens."""

    # Storage
    storage_backend: Literal["memory", "postgres"] = "memory"
    """Lifecycle store backend. 'memory' keeps everything in process and is lost on restart."""

    domain_db_connection_string: Optional[str] = None
    """PostgreSQL connection string, required when storage_backend is 'postgres'."""

    domain_db_min_pool_size: int = 2
    """Minimum pooled database connections."""

    domain_db_max_pool_size: int = 10
    """Maximum pooled database connections."""

    # Inline images
    donation_image_max_bytes: int = 1 * MIB
    """Per-file ceiling for donation photos; larger files are dropped."""

    donation_image_max_files: int = 3
    """Maximum donation photos kept per offer."""

    donation_image_max_encoded_length: int = int(1.5 * MIB)
    """Ceiling on a donation photo's encoded data URL length."""

    listing_image_max_bytes: int = 5 * MIB
    """Per-file ceiling for direct listing photos."""

    listing_image_max_files: int = 5
    """Maximum photos kept per direct listing."""

    # Logging
    log_level: str = "INFO"
    """Minimum level for the stdout log sink."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",  # Load from .env file if it exists (local development)
        env_file_encoding="utf-8",
        extra="ignore",
        validate_default=True,
    )

    @model_validator(mode="after")
    def check_postgres_connection(self):
        """The postgres backend cannot start without a connection string."""
        if self.storage_backend == "postgres" and not self.domain_db_connection_string:
            raise ValueError("domain_db_connection_string is required when storage_backend is 'postgres'")
        return self

    @property
    def donation_image_limits(self) -> ImageLimits:
        return ImageLimits(
            max_file_bytes=self.donation_image_max_bytes,
            max_files=self.donation_image_max_files,
            max_encoded_length=self.donation_image_max_encoded_length,
        )

    @property
    def listing_image_limits(self) -> ImageLimits:
        return ImageLimits(max_file_bytes=self.listing_image_max_bytes, max_files=self.listing_image_max_files)
