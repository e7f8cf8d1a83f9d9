"""Async HTTP client with per-endpoint circuit breakers."""

from .client import ProtectedClient, endpoint_key
from .errors import ClientError, NotFoundError, ServerError, error_for_response

__all__ = [
    "ClientError",
    "NotFoundError",
    "ProtectedClient",
    "ServerError",
    "endpoint_key",
    "error_for_response",
]
