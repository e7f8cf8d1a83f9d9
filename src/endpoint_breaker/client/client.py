"""Async HTTP client that routes every request through a circuit breaker.

Requests are grouped by endpoint (scheme, host and port). Each endpoint
gets its own breaker from a ``CircuitBreakerRegistry``, so an outage of
one host never blocks calls to another.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx

from ..circuit_breaker import CircuitBreaker, CircuitBreakerRegistry, get_registry
from .errors import error_for_response


def endpoint_key(url: httpx.URL) -> str:
    """Return the registry key for a request URL, e.g. ``https://api.example.com``."""
    key = f"{url.scheme}://{url.host}"
    if url.port is not None:
        key += f":{url.port}"
    return key


class ProtectedClient:
    """Async HTTP client with a circuit breaker per endpoint.

    Transport errors and 5xx responses count as failures. 4xx responses
    are raised as ``ClientError`` after the breaker has recorded a success,
    since they say nothing about the endpoint's health.

    Usage::

        async with ProtectedClient("https://api.example.com") as client:
            response = await client.get("/quotes")

    Args:
        base_url: Base URL for relative request paths.
        registry: Source of breakers. Defaults to the process-wide registry.
        breaker_factory: Builds the breaker for a new endpoint key. Defaults
            to the registry's settings-based breaker.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        registry: CircuitBreakerRegistry | None = None,
        breaker_factory: Callable[[str], CircuitBreaker[Any]] | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._registry = registry if registry is not None else get_registry()
        self._breaker_factory = breaker_factory
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> ProtectedClient:
        """Enter the async context manager.

        Returns:
            The client instance.
        """
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Exit the async context manager, closing the underlying HTTP client."""
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def breaker_for(self, key: str) -> CircuitBreaker[Any]:
        """Get or create the breaker guarding an endpoint key."""
        if self._breaker_factory is None:
            return self._registry.get_or_create(key)
        factory = self._breaker_factory
        return self._registry.get_or_create(key, lambda: factory(key))

    async def request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send a request through the endpoint's circuit breaker.

        Args:
            method: HTTP method (GET, POST, etc.).
            url: Absolute URL or path relative to ``base_url``.
            **kwargs: Extra keyword arguments forwarded to
                ``httpx.AsyncClient.build_request``.

        Returns:
            The ``httpx.Response``, or the breaker's fallback value when the
            call was rejected or failed and a fallback is configured.

        Raises:
            CircuitOpenError: If the endpoint's circuit is open.
            ServerError: If the server responds with a 5xx status code.
            NotFoundError: If the server responds with 404.
            ClientError: For any other 4xx status code.
            httpx.TransportError: If the request could not be sent.
        """
        request = self._client.build_request(method, url, **kwargs)
        key = endpoint_key(request.url)
        breaker = self.breaker_for(key)

        async def send() -> httpx.Response:
            response = await self._client.send(request)
            if response.status_code >= 400:
                error = error_for_response(response, key)
                if error.trips_breaker:
                    raise error
            return response

        result = await breaker.execute_async(send)
        if isinstance(result, httpx.Response) and result.status_code >= 400:
            raise error_for_response(result, key)
        return result

    async def get(self, url: str, **kwargs: Any) -> Any:
        """Send a GET request through the endpoint's circuit breaker."""
        return await self.request("GET", url, **kwargs)
