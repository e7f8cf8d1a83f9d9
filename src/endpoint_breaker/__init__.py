"""Endpoint Breaker.

Per-endpoint circuit breakers: a thread-safe state machine that
short-circuits calls to a failing downstream operation, a pluggable trip
policy, and a registry handing out one breaker per endpoint key.
"""

from __future__ import annotations

from .breaker_settings import BreakerSettings, load_breaker_settings, parse_breaker_settings
from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerBuilder,
    CircuitBreakerError,
    CircuitBreakerRegistry,
    CircuitEvent,
    CircuitListener,
    CircuitOpenError,
    FailureDetectionStrategy,
    LoggingCircuitListener,
    ThresholdFailureStrategy,
    configure_registry,
    get_registry,
    reset_registry,
    threshold_strategy,
)
from .circuit_breaker_config import DEFAULT_CONFIG, CircuitBreakerConfig, CircuitState

__all__ = [
    # Breakers
    "CircuitBreaker",
    "CircuitBreakerBuilder",
    "CircuitState",
    # Configuration
    "CircuitBreakerConfig",
    "DEFAULT_CONFIG",
    "BreakerSettings",
    "load_breaker_settings",
    "parse_breaker_settings",
    # Strategies
    "FailureDetectionStrategy",
    "ThresholdFailureStrategy",
    "threshold_strategy",
    # Registry
    "CircuitBreakerRegistry",
    "get_registry",
    "configure_registry",
    "reset_registry",
    # Events
    "CircuitEvent",
    "CircuitListener",
    "LoggingCircuitListener",
    # Errors
    "CircuitBreakerError",
    "CircuitOpenError",
]
