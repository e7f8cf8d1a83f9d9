"""Fluent construction of circuit breakers.

Usage:
    breaker = (
        CircuitBreaker.builder()
        .failure_threshold(3)
        .recovery_timeout(timedelta(seconds=5))
        .fallback(lambda exc: "Fallback-A")
        .build()
    )
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import timedelta
from typing import Generic, TypeVar

from ..circuit_breaker_config import DEFAULT_CONFIG, CircuitBreakerConfig
from .breaker import CircuitBreaker
from .listeners import CircuitListener
from .strategy import FailureDetectionStrategy

T = TypeVar("T")


class CircuitBreakerBuilder(Generic[T]):
    """Collects options and builds a ``CircuitBreaker``.

    Values are validated by ``build()``, which raises ``ValueError`` for an
    invalid threshold or timeout.
    """

    def __init__(self) -> None:
        self._name = "circuit"
        self._failure_threshold: int = DEFAULT_CONFIG.failure_threshold
        self._recovery_timeout_seconds: float = DEFAULT_CONFIG.recovery_timeout_seconds
        self._strategy: (
            FailureDetectionStrategy | Callable[[int, BaseException | None], bool] | None
        ) = None
        self._fallback: Callable[[Exception], T] | None = None
        self._listeners: list[CircuitListener] = []
        self._clock: Callable[[], float] = time.monotonic

    def name(self, name: str) -> CircuitBreakerBuilder[T]:
        self._name = name
        return self

    def config(self, config: CircuitBreakerConfig) -> CircuitBreakerBuilder[T]:
        """Seed threshold and timeout from an existing config."""
        self._failure_threshold = config.failure_threshold
        self._recovery_timeout_seconds = config.recovery_timeout_seconds
        return self

    def failure_threshold(self, threshold: int) -> CircuitBreakerBuilder[T]:
        """Set the number of consecutive failures that trips the default strategy."""
        self._failure_threshold = threshold
        return self

    def recovery_timeout(self, timeout: float | timedelta) -> CircuitBreakerBuilder[T]:
        """Set how long an open circuit waits before admitting a trial call."""
        if isinstance(timeout, timedelta):
            self._recovery_timeout_seconds = timeout.total_seconds()
        else:
            self._recovery_timeout_seconds = timeout
        return self

    def failure_detection_strategy(
        self,
        strategy: FailureDetectionStrategy | Callable[[int, BaseException | None], bool],
    ) -> CircuitBreakerBuilder[T]:
        """Replace the default threshold strategy."""
        self._strategy = strategy
        return self

    def fallback(self, fallback: Callable[[Exception], T]) -> CircuitBreakerBuilder[T]:
        """Set the function used instead of raising when a call is rejected or fails."""
        self._fallback = fallback
        return self

    def listener(self, listener: CircuitListener) -> CircuitBreakerBuilder[T]:
        self._listeners.append(listener)
        return self

    def clock(self, clock: Callable[[], float]) -> CircuitBreakerBuilder[T]:
        self._clock = clock
        return self

    def build(self) -> CircuitBreaker[T]:
        """Build the circuit breaker.

        The default strategy uses the threshold configured at build time.
        """
        config = CircuitBreakerConfig(
            failure_threshold=self._failure_threshold,
            recovery_timeout_seconds=self._recovery_timeout_seconds,
        )
        return CircuitBreaker(
            self._name,
            config,
            failure_strategy=self._strategy,
            fallback=self._fallback,
            listeners=self._listeners,
            clock=self._clock,
        )
