"""Circuit breaker configuration for endpoint breakers.

This module defines the state enum and the immutable configuration
dataclass shared by every breaker. Thresholds are validated on
construction so a misconfigured breaker can never be built.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum
from typing import Any


class CircuitState(Enum):
    """Possible states for a circuit breaker."""

    CLOSED = "closed"  # Normal operation - requests allowed
    OPEN = "open"  # Circuit tripped - requests blocked
    HALF_OPEN = "half_open"  # Testing recovery - one trial request


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for a single circuit breaker.

    Attributes:
        failure_threshold: Consecutive failures before the default
            strategy opens the circuit.
        recovery_timeout_seconds: Time an open circuit waits after the last
            failure before admitting a trial call.
    """

    failure_threshold: int = 3
    recovery_timeout_seconds: float = 5.0

    def __post_init__(self) -> None:
        _validate_config(self)

    @property
    def recovery_timeout(self) -> timedelta:
        """Return the recovery timeout as a timedelta."""
        return timedelta(seconds=self.recovery_timeout_seconds)

    def with_overrides(self, **changes: Any) -> CircuitBreakerConfig:
        """Return a validated copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Return a plain dict suitable for JSON output."""
        return {
            "failure_threshold": self.failure_threshold,
            "recovery_timeout_seconds": self.recovery_timeout_seconds,
        }


def _validate_config(config: CircuitBreakerConfig) -> None:
    """Validate field types and ranges.

    Raises:
        ValueError: On a non-positive threshold or a negative or non-finite
            timeout.
    """
    threshold = config.failure_threshold
    if isinstance(threshold, bool) or not isinstance(threshold, int):
        msg = f"failure_threshold must be an integer, got {threshold!r}"
        raise ValueError(msg)
    if threshold < 1:
        msg = f"failure_threshold must be >= 1, got {threshold}"
        raise ValueError(msg)

    timeout = config.recovery_timeout_seconds
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
        msg = f"recovery_timeout_seconds must be a number, got {timeout!r}"
        raise ValueError(msg)
    if not math.isfinite(timeout):
        msg = f"recovery_timeout_seconds must be finite, got {timeout}"
        raise ValueError(msg)
    if timeout < 0:
        msg = f"recovery_timeout_seconds must be >= 0, got {timeout}"
        raise ValueError(msg)


# Default configuration instance for convenience
DEFAULT_CONFIG = CircuitBreakerConfig()
