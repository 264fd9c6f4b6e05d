"""Error handling for the FastAPI application and lifecycle exceptions."""

import pydantic
from fastapi import Request
from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger

from shelter_api.lifecycle.exceptions import Forbidden
from shelter_api.lifecycle.exceptions import LifecycleError
from shelter_api.lifecycle.exceptions import Unauthenticated
from shelter_api.monitoring.logger import log_response_info

__all__ = [
    "handle_broad_exceptions",
    "handle_lifecycle_errors",
    "handle_pydantic_validation_errors",
]


# fastapi docs on middlewares: https://fastapi.tiangolo.com/tutorial/middleware/
async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that goes unhandled by a more specific exception handler."""
    try:
        return await call_next(request)
    except Exception as err:  # pylint: disable=broad-except
        error_response = {"detail": "Internal server error", "error_type": type(err).__name__}

        logger.error(
            f"Unhandled exception: {type(err).__name__}: {str(err)}",
            http_status=500,
            status_code=500,
            http_method=request.method,
            url_path=str(request.url.path),
            error_type=type(err).__name__,
            error_message=str(err),
            response_body=error_response,
            exc_info=True,
        )

        response = JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response,
        )
        log_response_info(response)
        return response


# fastapi docs on error handlers: https://fastapi.tiangolo.com/tutorial/handling-errors/
async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    """Handle Pydantic validation errors raised while building models inside a route."""
    errors = exc.errors()
    error_response = {
        "detail": [
            {
                "loc": list(error["loc"]),
                "msg": error["msg"],
                "input": error["input"],
            }
            for error in errors
        ]
    }

    logger.warning(
        f"Validation error: {len(errors)} validation errors",
        http_status=422,
        status_code=422,
        http_method=request.method,
        url_path=str(request.url.path),
        error_type="ValidationError",
        validation_errors=errors,
        response_body=error_response,
    )

    response = JSONResponse(
        status_code=422,
        content=jsonable_encoder(error_response),
    )
    log_response_info(response)

    return response


async def handle_lifecycle_errors(request: Request, exc: LifecycleError) -> JSONResponse:
    """
    Convert lifecycle exceptions into typed JSON responses.

    Maps each exception family to its HTTP status:
    - NotFound -> 404
    - InvalidState -> 409
    - ConflictingUpdate -> 409 (retryable)
    - Forbidden -> 403
    - Unauthenticated -> 401
    - ValidationFailed -> 400

    Parameters
    ----------
    request : Request
        FastAPI request object
    exc : LifecycleError
        Exception raised by a workflow, the registry or the identity resolver

    Returns
    -------
    JSONResponse
        Body of the form {"detail", "error_type", "retryable"}
    """
    error_response = {
        "detail": exc.message,
        "error_type": exc.error_type,
        "retryable": exc.retryable,
    }
    if isinstance(exc, Forbidden):
        error_response["reason"] = exc.reason.value

    # Business-rule rejections are expected traffic, not server faults
    log = logger.info if exc.http_status < 500 else logger.error
    log(
        f"Lifecycle error: {exc.error_type}: {exc.message}",
        http_status=exc.http_status,
        status_code=exc.http_status,
        http_method=request.method,
        url_path=str(request.url.path),
        error_type=exc.error_type,
        retryable=exc.retryable,
    )

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    response = JSONResponse(
        status_code=exc.http_status,
        content=error_response,
        headers=headers,
    )
    log_response_info(response)
    return response
