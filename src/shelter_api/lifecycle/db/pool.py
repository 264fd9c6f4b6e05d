"""
Shelter Database Connection Pool

Manages the asyncpg connection pool for the shelter database and runs
migrations on initialization.

Schema Evolution:
-----------------
When adding/removing/renaming tables in schema.sql:
1. Update schema.sql with the new DDL
2. Update DomainDBPool.EXPECTED_TABLES with the new table names
3. For column changes on existing deployments, add a step to
   migrations._run_incremental_migrations_impl
"""

from typing import Optional

import asyncpg
from loguru import logger

from shelter_api.lifecycle.db.migrations import SCHEMA_NAME
from shelter_api.lifecycle.db.migrations import run_incremental_migrations
from shelter_api.lifecycle.db.migrations import run_migrations
from shelter_api.lifecycle.db.migrations import verify_schema


class DomainDBPool:
    """Shelter database connection pool manager."""

    # Update this set when schema.sql adds, removes or renames tables
    EXPECTED_TABLES = {
        "accounts",
        "pets",
        "adoption_requests",
        "donation_offers",
    }

    def __init__(self, connection_string: str, min_size: int = 2, max_size: int = 10):
        """
        Initialize domain DB pool.

        Args:
            connection_string: PostgreSQL connection string
            min_size: Minimum pooled connections
            max_size: Maximum pooled connections
        """
        self.connection_string = connection_string
        self.min_size = min_size
        self.max_size = max_size
        self.pool: Optional[asyncpg.Pool] = None
        self._pool_initialized = False

    async def initialize(self) -> None:
        """Create the pool, validate it, and bring the schema up to date."""
        if self._pool_initialized and self.pool is not None:
            logger.debug("Domain DB pool already initialized")
            return

        try:
            logger.info("Initializing shelter database pool")

            self.pool = await asyncpg.create_pool(
                self.connection_string,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=60,
                timeout=15,
                max_cached_statement_lifetime=0,  # DDL runs on the same connections
            )

            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                if result != 1:
                    raise RuntimeError("Pool validation query failed")

            logger.info("Domain DB pool validated")

            await self._run_migrations()

            self._pool_initialized = True
            logger.success("Shelter database initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize domain DB pool: {e}")
            if self.pool:
                await self.pool.close()
                self.pool = None
            raise

    async def _run_migrations(self) -> None:
        """Run schema.sql when tables are missing, otherwise incremental migrations only."""
        report = await verify_schema(self.pool, self.EXPECTED_TABLES)
        existing_tables = set(report["tables"])

        if report["all_present"]:
            extra_tables = existing_tables - self.EXPECTED_TABLES
            if extra_tables:
                logger.warning(
                    "Shelter schema contains unexpected tables",
                    extra_tables=sorted(extra_tables),
                )
            logger.info(
                f"Shelter schema and all {len(self.EXPECTED_TABLES)} expected tables exist - "
                "running incremental migrations only"
            )
            await run_incremental_migrations(self.pool)
            return

        if report["schema_exists"] and existing_tables & self.EXPECTED_TABLES:
            # Partial schema: schema.sql is idempotent, so re-applying fills the gaps
            logger.warning("Shelter schema is incomplete", missing_tables=report["missing_tables"])
        else:
            logger.info(f"{SCHEMA_NAME} schema not found - running migrations")

        await run_migrations(self.pool)

        report = await verify_schema(self.pool, self.EXPECTED_TABLES)
        if not report["all_present"]:
            logger.error("Migration incomplete", missing_tables=report["missing_tables"])
            raise RuntimeError(f"Migration incomplete: missing tables {report['missing_tables']}")

        logger.success(f"All {len(self.EXPECTED_TABLES)} shelter tables verified successfully")

    async def close(self) -> None:
        """Close the connection pool gracefully."""
        if self.pool:
            logger.info("Closing shelter database pool")
            await self.pool.close()
            self.pool = None
            self._pool_initialized = False
            logger.info("Domain DB pool closed")

    def acquire(self):
        """
        Acquire a database connection from the pool.

        Usage:
            async with pool.acquire() as conn:
                row = await conn.fetchrow("SELECT * FROM shelter.pets WHERE id = $1", pet_id)
        """
        if not self.pool:
            raise RuntimeError("Domain DB pool not initialized - call initialize() first")
        return self.pool.acquire()

    async def health_check(self) -> bool:
        """
        Check if database connection is healthy.

        Returns:
            True if connection is healthy, False otherwise
        """
        try:
            if not self.pool:
                return False

            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                return result == 1
        except Exception as e:
            logger.error(f"Domain DB health check failed: {e}")
            return False
