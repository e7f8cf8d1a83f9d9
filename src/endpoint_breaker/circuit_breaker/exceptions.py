"""Errors raised by circuit breakers.

Operation and fallback errors pass through a breaker unchanged; the types
here only describe the breaker's own decisions.
"""

from __future__ import annotations


class CircuitBreakerError(Exception):
    """Root of the errors a breaker raises on its own behalf."""


class CircuitOpenError(CircuitBreakerError):
    """A call was rejected without running the protected operation.

    Attributes:
        identifier: Name of the rejecting breaker.
        time_until_retry: Seconds until the breaker admits a recovery
            trial. Zero while a trial is already running.
        trial_in_flight: True when the rejection came from a HALF_OPEN
            breaker whose single trial call has not finished yet.
    """

    def __init__(
        self,
        identifier: str,
        time_until_retry: float,
        *,
        trial_in_flight: bool = False,
    ) -> None:
        self.identifier = identifier
        self.time_until_retry = time_until_retry
        self.trial_in_flight = trial_in_flight
        if trial_in_flight:
            reason = "recovery trial in progress"
        else:
            reason = f"next trial in {time_until_retry:.1f}s"
        super().__init__(f"Circuit {identifier} rejected call: {reason}")
