from textwrap import dedent

import pydantic
from fastapi import FastAPI
from fastapi.routing import APIRoute
from loguru import logger

from shelter_api.auth.identity import IdentityResolver
from shelter_api.errors import handle_broad_exceptions
from shelter_api.errors import handle_lifecycle_errors
from shelter_api.errors import handle_pydantic_validation_errors
from shelter_api.lifecycle.adoption import AdoptionWorkflow
from shelter_api.lifecycle.db.store import LifecycleStore
from shelter_api.lifecycle.donation import DonationWorkflow
from shelter_api.lifecycle.exceptions import LifecycleError
from shelter_api.lifecycle.registry import PetRegistry
from shelter_api.monitoring.logger import configure_logger
from shelter_api.monitoring.request_context import RequestContextMiddleware
from shelter_api.routes.routes_adoptions import ROUTER_ADOPTIONS
from shelter_api.routes.routes_donations import ROUTER_DONATIONS
from shelter_api.routes.routes_health import ROUTER_HEALTH
from shelter_api.routes.routes_pets import ROUTER_PETS
from shelter_api.settings import Settings


def build_store(settings: Settings) -> LifecycleStore:
    """Pick the lifecycle store backend named by ``settings.storage_backend``."""
    if settings.storage_backend == "postgres":
        from shelter_api.lifecycle.db.pool import DomainDBPool
        from shelter_api.lifecycle.db.store_postgres import PostgresLifecycleStore

        pool = DomainDBPool(
            settings.domain_db_connection_string,
            min_size=settings.domain_db_min_pool_size,
            max_size=settings.domain_db_max_pool_size,
        )
        return PostgresLifecycleStore(pool)

    from shelter_api.lifecycle.db.store_memory import MemoryLifecycleStore

    return MemoryLifecycleStore()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a FastAPI application.

    Configuration is loaded directly from environment variables via pydantic-settings.
    Local development can use a .env file next to app.py.
    """
    settings = settings or Settings()

    configure_logger(log_level=settings.log_level)

    logger.info(
        "Configuration loaded successfully",
        storage_backend=settings.storage_backend,
        domain_db_set=bool(settings.domain_db_connection_string),
        jwt_algorithm=settings.jwt_algorithm,
        log_level=settings.log_level,
    )

    app = FastAPI(
        title="Shelter Marketplace API",
        version="v1",
        description=dedent(
            """
        Pet adoption and donation marketplace.

        | Role | Can |
        | --- | --- |
        | user | browse pets, apply to adopt, offer a pet for donation |
        | shelter | list pets, decide adoption requests and donation offers addressed to it |
        | admin | everything, plus statistics and hard deletes |
        """
        ),
        generate_unique_id_function=custom_generate_unique_id,
        swagger_ui_parameters={
            "defaultModelsExpandDepth": -1,  # Hide schemas section
            "defaultModelExpandDepth": 1,
        },
    )
    app.state.settings = settings

    store = build_store(settings)
    registry = PetRegistry(store, listing_limits=settings.listing_image_limits)
    app.state.store = store
    app.state.registry = registry
    app.state.adoption_workflow = AdoptionWorkflow(store, registry)
    app.state.donation_workflow = DonationWorkflow(store, registry, image_limits=settings.donation_image_limits)
    app.state.identity_resolver = IdentityResolver(
        store,
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expiration_hours=settings.jwt_expiration_hours,
    )
    logger.info("Lifecycle services initialized", store=type(store).__name__)

    @app.on_event("startup")
    async def startup_store():
        """Open the store (and run migrations for postgres)."""
        await app.state.store.initialize()
        logger.success("Lifecycle store initialized", storage_backend=settings.storage_backend)

    @app.on_event("shutdown")
    async def shutdown_store():
        """Release store connections."""
        await app.state.store.close()
        logger.info("Lifecycle store closed")

    # Add request context middleware for tracking who/where requests come from
    app.add_middleware(RequestContextMiddleware)
    app.include_router(ROUTER_HEALTH, prefix="/api")
    app.include_router(ROUTER_PETS, prefix="/api")
    app.include_router(ROUTER_ADOPTIONS, prefix="/api")
    app.include_router(ROUTER_DONATIONS, prefix="/api")

    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=LifecycleError,
        handler=handle_lifecycle_errors,
    )

    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    if route.tags:
        return f"{route.tags[0]}-{route.name}"
    return route.name


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
