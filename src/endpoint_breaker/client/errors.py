"""HTTP status errors raised by ``ProtectedClient``.

Only ``ServerError`` counts against an endpoint's circuit breaker. Other
error statuses mean the endpoint answered; they are raised after the
breaker recorded a success.
"""

from __future__ import annotations

import httpx


class ClientError(Exception):
    """An error status returned by a protected endpoint.

    Attributes:
        status_code: Response status.
        message: Detail taken from the response body.
        endpoint: Registry key of the endpoint that answered, if known.
    """

    trips_breaker = False

    def __init__(self, status_code: int, message: str, endpoint: str | None = None) -> None:
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        source = f" from {endpoint}" if endpoint else ""
        super().__init__(f"HTTP {status_code}{source}: {message}")


class NotFoundError(ClientError):
    """The endpoint answered 404."""

    def __init__(self, message: str = "Not found", endpoint: str | None = None) -> None:
        super().__init__(404, message, endpoint)


class ServerError(ClientError):
    """The endpoint answered with a 5xx status and is treated as failing."""

    trips_breaker = True

    def __init__(
        self, status_code: int = 500, message: str = "Server error", endpoint: str | None = None
    ) -> None:
        super().__init__(status_code, message, endpoint)


def error_for_response(response: httpx.Response, endpoint: str | None = None) -> ClientError:
    """Build the error matching an error response's status."""
    detail = _response_detail(response)
    if response.status_code >= 500:
        return ServerError(response.status_code, detail, endpoint)
    if response.status_code == 404:
        return NotFoundError(detail, endpoint)
    return ClientError(response.status_code, detail, endpoint)


def _response_detail(response: httpx.Response) -> str:
    """Prefer a JSON ``detail`` field, falling back to the raw body."""
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return response.text
