"""Circuit breaker implementation for protected endpoints.

Implements the circuit breaker pattern per endpoint key to stop callers
from repeatedly invoking a failing downstream operation.

The circuit breaker has three states:
- CLOSED: Normal operation, failures are counted
- OPEN: Circuit tripped, requests immediately fail or fall back
- HALF_OPEN: Testing recovery, a single trial request allowed
"""

from .breaker import CircuitBreaker
from .builder import CircuitBreakerBuilder
from .exceptions import CircuitBreakerError, CircuitOpenError
from .listeners import CircuitEvent, CircuitListener, LoggingCircuitListener
from .registry import (
    CircuitBreakerRegistry,
    configure_registry,
    get_registry,
    reset_registry,
)
from .strategy import (
    FailureDetectionStrategy,
    ThresholdFailureStrategy,
    as_strategy,
    threshold_strategy,
)

__all__ = [
    "CircuitBreakerError",
    "CircuitOpenError",
    "CircuitBreaker",
    "CircuitBreakerBuilder",
    "CircuitBreakerRegistry",
    "CircuitEvent",
    "CircuitListener",
    "LoggingCircuitListener",
    "FailureDetectionStrategy",
    "ThresholdFailureStrategy",
    "as_strategy",
    "threshold_strategy",
    "configure_registry",
    "get_registry",
    "reset_registry",
]
