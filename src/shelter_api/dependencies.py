"""FastAPI dependencies for accessing app state and the calling actor."""

from typing import List
from typing import Optional

from fastapi import Depends
from fastapi import Request
from fastapi import UploadFile
from fastapi.security import HTTPAuthorizationCredentials
from fastapi.security import HTTPBearer
from loguru import logger

from shelter_api.auth.identity import IdentityResolver
from shelter_api.lifecycle.adoption import AdoptionWorkflow
from shelter_api.lifecycle.db.store import LifecycleStore
from shelter_api.lifecycle.donation import DonationWorkflow
from shelter_api.lifecycle.exceptions import Unauthenticated
from shelter_api.lifecycle.images import UploadedImage
from shelter_api.lifecycle.models import Actor
from shelter_api.lifecycle.registry import PetRegistry
from shelter_api.monitoring.request_context import user_identity_ctx
from shelter_api.schemas.schemas import MultipartPayload
from shelter_api.settings import Settings

BEARER_SCHEME = HTTPBearer(auto_error=False, description="Access token issued for a shelter marketplace account")


def get_settings(request: Request) -> Settings:
    """
    Get application settings from request state.

    Parameters
    ----------
    request : Request
        FastAPI request object

    Returns
    -------
    Settings
        Application settings instance
    """
    return request.app.state.settings


def get_store(request: Request) -> LifecycleStore:
    return request.app.state.store


def get_registry(request: Request) -> PetRegistry:
    return request.app.state.registry


def get_adoption_workflow(request: Request) -> AdoptionWorkflow:
    return request.app.state.adoption_workflow


def get_donation_workflow(request: Request) -> DonationWorkflow:
    return request.app.state.donation_workflow


def get_identity_resolver(request: Request) -> IdentityResolver:
    return request.app.state.identity_resolver


async def _resolve(request: Request, resolver: IdentityResolver, token: str) -> Actor:
    actor = await resolver.resolve(token)
    # Read back by RequestContextMiddleware for the access log line
    request.state.actor = actor
    user_identity_ctx.set(f"{actor.role.value}:{actor.id}")
    return actor


async def get_current_actor(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(BEARER_SCHEME),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> Actor:
    """
    Resolve the bearer token into an Actor.

    Raises
    ------
    Unauthenticated
        No bearer token, or the token does not resolve to an active account
    """
    if credentials is None:
        raise Unauthenticated("Access token required")
    return await _resolve(request, resolver, credentials.credentials)


async def get_optional_actor(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(BEARER_SCHEME),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> Optional[Actor]:
    """Like get_current_actor, but anonymous (or badly authenticated) callers get None."""
    if credentials is None:
        return None
    try:
        return await _resolve(request, resolver, credentials.credentials)
    except Unauthenticated as e:
        logger.debug("Ignoring unusable token on public route", reason=e.message)
        return None


async def get_multipart_payload(request: Request) -> MultipartPayload:
    """
    Split a multipart form into text fields and uploaded images.

    Empty text fields are dropped so optional model fields fall back to their defaults.
    """
    form = await request.form()
    fields = {}
    uploads: List[UploadedImage] = []
    for key, value in form.multi_items():
        if isinstance(value, str):
            if value.strip():
                fields[key] = value
            continue
        upload: UploadFile = value
        uploads.append(
            UploadedImage(
                filename=upload.filename or "",
                content_type=upload.content_type or "application/octet-stream",
                data=await upload.read(),
            )
        )
    return MultipartPayload(fields=fields, uploads=uploads)
