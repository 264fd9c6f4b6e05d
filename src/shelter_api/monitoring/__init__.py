"""Monitoring package for logging and request context."""

from shelter_api.monitoring.request_context import RequestContextMiddleware
from shelter_api.monitoring.request_context import get_request_context

__all__ = [
    "RequestContextMiddleware",
    "get_request_context",
]
