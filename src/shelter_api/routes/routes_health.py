"""Health check endpoints for monitoring application status."""

from datetime import datetime
from datetime import timezone

from fastapi import APIRouter
from fastapi import Request
from fastapi import status
from fastapi.responses import JSONResponse
from loguru import logger

ROUTER_HEALTH = APIRouter(tags=["Health"])

SERVICE_NAME = "Shelter Marketplace API"
SERVICE_VERSION = "v1"


@ROUTER_HEALTH.get(
    "/health",
    summary="Health check endpoint",
    description="Basic health check that returns application status and metadata",
    responses={
        status.HTTP_200_OK: {
            "description": "Application is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "timestamp": "2026-01-05T12:00:00.000000Z",
                        "service": SERVICE_NAME,
                        "version": SERVICE_VERSION,
                        "storage_backend": "postgres",
                    }
                }
            },
        }
    },
)
async def health_check(request: Request):
    """
    Basic health check endpoint.

    Lightweight; does not touch the store.
    """
    settings = request.app.state.settings

    response_data = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "storage_backend": settings.storage_backend,
    }

    logger.debug("Health check requested", status="healthy")

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=response_data,
    )


@ROUTER_HEALTH.get(
    "/health/live",
    summary="Liveness probe",
    description="Returns 200 while the process is serving requests",
)
async def liveness():
    return JSONResponse(status_code=status.HTTP_200_OK, content={"status": "alive"})


@ROUTER_HEALTH.get(
    "/health/ready",
    summary="Readiness probe",
    description="Returns 200 when the lifecycle store answers, 503 otherwise",
    responses={
        status.HTTP_503_SERVICE_UNAVAILABLE: {
            "description": "Store is unreachable",
            "content": {"application/json": {"example": {"status": "not_ready", "store": "unavailable"}}},
        }
    },
)
async def readiness(request: Request):
    """Check the lifecycle store before accepting traffic."""
    store_ok = await request.app.state.store.health_check()
    if not store_ok:
        logger.warning("Readiness check failed", store="unavailable", http_status=503)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "store": "unavailable"},
        )

    return JSONResponse(status_code=status.HTTP_200_OK, content={"status": "ready", "store": "ok"})
