"""Request context middleware for logging."""
import time
import uuid
from contextvars import ContextVar
from typing import Any
from typing import Callable

from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from shelter_api.monitoring.logger import log_request_info

# Context variables to store request-specific data
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
client_ip_ctx: ContextVar[str] = ContextVar("client_ip", default="")
user_identity_ctx: ContextVar[str] = ContextVar("user_identity", default="")
request_path_ctx: ContextVar[str] = ContextVar("request_path", default="")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to capture request context and log one line per request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Any:
        """
        Capture request context and add to logging.

        Captures:
        - Request ID (from X-Request-ID or generated), echoed back on the response
        - Client IP (first X-Forwarded-For hop or direct peer)
        - User identity (resolved actor once authentication has run)
        - Request path and method

        Bodies are not logged: donation uploads carry image payloads.
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_ctx.set(request_id)

        client_ip = self._get_client_ip(request)
        client_ip_ctx.set(client_ip)

        user_identity = "bearer" if request.headers.get("Authorization", "").startswith("Bearer ") else "anonymous"
        user_identity_ctx.set(user_identity)

        request_path = f"{request.method} {request.url.path}"
        request_path_ctx.set(request_path)

        with logger.contextualize(
            request_id=request_id,
            client_ip=client_ip,
            request_path=request_path,
        ):
            log_request_info(request)
            start_time = time.time()
            response = await call_next(request)
            duration_ms = (time.time() - start_time) * 1000

            # Set by dependencies.get_current_actor when the route authenticated the caller
            actor = getattr(request.state, "actor", None)

            logger.info(
                f"{request.method} {request.url.path} - {response.status_code}",
                event_type="http_request",
                http_method=request.method,
                url_path=str(request.url.path),
                url_query=str(request.query_params) if request.query_params else None,
                user_identity=f"{actor.role.value}:{actor.id}" if actor else user_identity,
                status_code=response.status_code,
                response_time_ms=round(duration_ms, 2),
            )

            response.headers["X-Request-ID"] = request_id
            return response

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # X-Forwarded-For can contain multiple IPs, take the first one
            return forwarded_for.split(",")[0].strip()

        if request.client:
            return request.client.host

        return "unknown"


def get_request_context() -> dict:
    """
    Get current request context for logging.

    Returns:
        Dictionary with request context variables
    """
    return {
        "request_id": request_id_ctx.get(),
        "client_ip": client_ip_ctx.get(),
        "user_identity": user_identity_ctx.get(),
        "request_path": request_path_ctx.get(),
    }
