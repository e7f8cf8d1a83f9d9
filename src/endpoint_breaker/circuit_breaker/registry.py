"""Circuit breaker registry for managing per-endpoint breaker instances.

Each protected endpoint is identified by a string key. The registry
creates the breaker for a key on first use and hands the same instance
to every later caller for the lifetime of the registry.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, TypeVar

from ..breaker_settings import BreakerSettings
from ..circuit_breaker_config import CircuitState
from .breaker import CircuitBreaker
from .listeners import CircuitListener

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitBreakerRegistry:
    """Central registry of circuit breakers keyed by endpoint.

    Usage:
        registry = CircuitBreakerRegistry()

        breaker = registry.get_or_create(
            "API-A",
            lambda: CircuitBreaker.builder().failure_threshold(3).build(),
        )
        result = breaker.execute(call_api_a)

    Lookups of existing keys take no lock. Creating a missing key takes a
    lock private to that key, so factories for different keys never wait
    on each other and a key's factory runs once even when many threads
    race on first access.

    Attributes:
        settings: Configs used when ``get_or_create`` is called without a
            factory.
    """

    def __init__(
        self,
        settings: BreakerSettings | None = None,
        listeners: tuple[CircuitListener, ...] = (),
    ) -> None:
        """Initialize the registry.

        Args:
            settings: Default and per-key configs for factory-less creation.
            listeners: Listeners attached to breakers the registry builds
                itself from ``settings``.
        """
        self._settings = settings or BreakerSettings()
        self._listeners = listeners

        self._breakers: dict[str, CircuitBreaker[Any]] = {}
        self._creation_locks: dict[str, threading.Lock] = {}
        # Guards _creation_locks only; never held while a factory runs
        self._guard = threading.Lock()

    @property
    def settings(self) -> BreakerSettings:
        return self._settings

    def get_or_create(
        self,
        key: str,
        factory: Callable[[], CircuitBreaker[T]] | None = None,
    ) -> CircuitBreaker[T]:
        """Get the breaker for ``key``, creating it on first use.

        Args:
            key: Identifier of the protected endpoint.
            factory: Builds a fully configured breaker. Not called if the
                key already has one. Defaults to a breaker named ``key``
                built from the registry settings.

        Returns:
            The one breaker shared by all callers using ``key``.

        Raises:
            TypeError: If the factory returns something other than a
                CircuitBreaker. Nothing is stored.
            Exception: Whatever the factory raises. Nothing is stored.
        """
        existing = self._breakers.get(key)
        if existing is not None:
            return existing

        with self._guard:
            lock = self._creation_locks.setdefault(key, threading.Lock())

        with lock:
            existing = self._breakers.get(key)
            if existing is not None:
                return existing

            breaker = factory() if factory is not None else self._build_default(key)
            if not isinstance(breaker, CircuitBreaker):
                msg = (
                    f"Factory for {key!r} must return a CircuitBreaker, "
                    f"got {type(breaker).__name__}"
                )
                raise TypeError(msg)

            winner = self._breakers.setdefault(key, breaker)

        with self._guard:
            if self._creation_locks.get(key) is lock:
                del self._creation_locks[key]

        if winner is breaker:
            logger.debug("Created circuit breaker: %s", key)
        return winner

    def get(self, key: str) -> CircuitBreaker[Any] | None:
        """Return the breaker for ``key`` without creating one."""
        return self._breakers.get(key)

    def keys(self) -> list[str]:
        return list(self._breakers)

    def __contains__(self, key: object) -> bool:
        return key in self._breakers

    def __len__(self) -> int:
        return len(self._breakers)

    def get_all_open_circuits(self) -> list[CircuitBreaker[Any]]:
        """Get all circuits currently in OPEN or HALF_OPEN state.

        Useful for monitoring and health checks.
        """
        return [
            breaker
            for breaker in list(self._breakers.values())
            if breaker.state in (CircuitState.OPEN, CircuitState.HALF_OPEN)
        ]

    def get_circuit_stats(self) -> dict[str, Any]:
        """Get statistics about registered circuits.

        Returns:
            Dictionary with the breaker count, the number not CLOSED, and a
            snapshot per key.
        """
        breakers = dict(self._breakers)
        snapshots = {key: breaker.snapshot() for key, breaker in breakers.items()}
        return {
            "circuits_registered": len(snapshots),
            "circuits_open": sum(
                1 for snap in snapshots.values() if snap["state"] != CircuitState.CLOSED.value
            ),
            "circuits": snapshots,
        }

    def reset_all(self) -> int:
        """Reset every circuit that is not CLOSED.

        Administrative function for recovery from widespread issues.

        Returns:
            Number of circuits reset.
        """
        reset_count = 0
        for breaker in list(self._breakers.values()):
            if breaker.state != CircuitState.CLOSED:
                breaker.reset()
                reset_count += 1

        logger.info("Reset %d circuits via registry.reset_all()", reset_count)
        return reset_count

    def _build_default(self, key: str) -> CircuitBreaker[Any]:
        return CircuitBreaker(key, self._settings.config_for(key), listeners=self._listeners)


# Process-wide registry shared by callers that do not manage their own
_registry_instance: CircuitBreakerRegistry | None = None
_registry_guard = threading.Lock()


def get_registry() -> CircuitBreakerRegistry:
    """Get the process-wide registry, creating it on first use."""
    global _registry_instance
    with _registry_guard:
        if _registry_instance is None:
            _registry_instance = CircuitBreakerRegistry()
        return _registry_instance


def configure_registry(settings: BreakerSettings) -> CircuitBreakerRegistry:
    """Create the process-wide registry with custom settings.

    Raises:
        RuntimeError: If the registry already exists.
    """
    global _registry_instance
    with _registry_guard:
        if _registry_instance is not None:
            msg = "Cannot configure registry after it is initialized. Call reset_registry() first."
            raise RuntimeError(msg)
        _registry_instance = CircuitBreakerRegistry(settings)
        logger.info("Registry configured with %d breaker configs", len(settings.breakers))
        return _registry_instance


def reset_registry() -> None:
    """Drop the process-wide registry.

    Useful for testing to ensure a fresh registry.
    """
    global _registry_instance
    with _registry_guard:
        _registry_instance = None
