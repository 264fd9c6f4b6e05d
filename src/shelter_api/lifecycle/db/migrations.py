"""Database migrations for the shelter schema.

All DDL lives in schema.sql. Incremental changes for databases created by an
earlier schema.sql are applied separately so they can run on every startup.
"""

from pathlib import Path

import asyncpg
from loguru import logger

SCHEMA_NAME = "shelter"
SCHEMA_PATH = Path(__file__).parent / "schema.sql"


async def run_migrations(pool: asyncpg.Pool) -> None:
    """Create the shelter schema and all tables.

    Every statement in schema.sql is idempotent, so this is safe to run more
    than once.

    Parameters
    ----------
    pool : asyncpg.Pool
        Database connection pool

    Raises
    ------
    FileNotFoundError
        If schema.sql is missing from the installed package
    """
    if not SCHEMA_PATH.exists():
        raise FileNotFoundError(f"Schema file not found: {SCHEMA_PATH}")

    schema_sql = SCHEMA_PATH.read_text(encoding="utf-8")
    logger.info("Loaded schema", path=str(SCHEMA_PATH))

    async with pool.acquire() as conn:
        try:
            await conn.execute(schema_sql)
            logger.success("Shelter database migrations completed")
        except Exception as e:
            logger.error(f"Migration failed: {e}")
            raise

        await _run_incremental_migrations_impl(conn)


async def run_incremental_migrations(pool: asyncpg.Pool) -> None:
    """Run only incremental migrations. Safe to call on every startup."""
    async with pool.acquire() as conn:
        await _run_incremental_migrations_impl(conn)


async def _run_incremental_migrations_impl(conn: asyncpg.Connection) -> None:
    # donor_user_id was added after the first release; backfill is not possible
    try:
        await conn.execute(
            f"""
            ALTER TABLE {SCHEMA_NAME}.donation_offers
            ADD COLUMN IF NOT EXISTS donor_user_id BIGINT REFERENCES {SCHEMA_NAME}.accounts (id)
            """
        )
        logger.debug("Ensured donor_user_id on donation_offers")
    except Exception as col_err:
        logger.warning(f"Column donor_user_id on donation_offers (may already exist): {col_err}")

    # The pending-request index must exist before any adoption write
    await conn.execute(
        f"""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_adoption_requests_pending_pet
        ON {SCHEMA_NAME}.adoption_requests (pet_id) WHERE status = 'pending'
        """
    )


async def verify_schema(pool: asyncpg.Pool, expected_tables: set) -> dict:
    """Report which expected tables exist.

    Returns
    -------
    dict
        {"schema_exists": bool, "tables": list, "missing_tables": list, "all_present": bool}
    """
    async with pool.acquire() as conn:
        schema_exists = await conn.fetchval(
            "SELECT EXISTS (SELECT 1 FROM information_schema.schemata WHERE schema_name = $1)",
            SCHEMA_NAME,
        )
        if not schema_exists:
            return {
                "schema_exists": False,
                "tables": [],
                "missing_tables": sorted(expected_tables),
                "all_present": False,
            }

        rows = await conn.fetch(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = $1
            ORDER BY table_name
            """,
            SCHEMA_NAME,
        )
        tables = [row["table_name"] for row in rows]
        missing = sorted(expected_tables - set(tables))
        return {
            "schema_exists": True,
            "tables": tables,
            "missing_tables": missing,
            "all_present": not missing,
        }
