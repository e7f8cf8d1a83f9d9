"""Circuit event listeners.

Breakers do not log. Each committed state transition is published as a
``CircuitEvent`` to the listeners a breaker was built with, after the
breaker's lock has been released. ``LoggingCircuitListener`` turns those
events into log records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ..circuit_breaker_config import CircuitState

logger = logging.getLogger(__name__)

THRESHOLD_REACHED = "threshold_reached"
RECOVERY_STARTED = "recovery_started"
RECOVERY_SUCCEEDED = "recovery_succeeded"
RECOVERY_FAILED = "recovery_failed"
TRIAL_ABANDONED = "trial_abandoned"
MANUAL_RESET = "manual_reset"


@dataclass(frozen=True)
class CircuitEvent:
    """A state transition of one breaker.

    Attributes:
        identifier: Name of the breaker that changed state.
        event_type: One of the module-level event type constants.
        from_state: State before the transition.
        to_state: State after the transition.
        failure_count: Consecutive failure count after the transition.
        error: Error that caused the transition, if any.
    """

    identifier: str
    event_type: str
    from_state: CircuitState
    to_state: CircuitState
    failure_count: int
    error: BaseException | None = None


@runtime_checkable
class CircuitListener(Protocol):
    """Receives circuit events."""

    def on_event(self, event: CircuitEvent) -> None: ...


class LoggingCircuitListener:
    """Log circuit events through the standard logging module.

    Args:
        log: Logger to write to. Defaults to this module's logger.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._logger = log or logger

    def on_event(self, event: CircuitEvent) -> None:
        if event.event_type == THRESHOLD_REACHED:
            self._logger.warning(
                "Circuit %s OPENED: %s (failures=%d)",
                event.identifier,
                _describe(event.error),
                event.failure_count,
            )
        elif event.event_type == RECOVERY_FAILED:
            self._logger.warning(
                "Circuit %s recovery test failed, reopening: %s",
                event.identifier,
                _describe(event.error),
            )
        elif event.event_type == RECOVERY_STARTED:
            self._logger.info("Circuit %s entering HALF_OPEN for recovery test", event.identifier)
        elif event.event_type == RECOVERY_SUCCEEDED:
            self._logger.info("Circuit %s CLOSED after successful recovery", event.identifier)
        elif event.event_type == TRIAL_ABANDONED:
            self._logger.warning(
                "Circuit %s recovery test interrupted, back to OPEN", event.identifier
            )
        elif event.event_type == MANUAL_RESET:
            self._logger.info(
                "Circuit %s manually reset to CLOSED (was %s)",
                event.identifier,
                event.from_state.value,
            )
        else:
            self._logger.debug(
                "Circuit %s %s: %s -> %s",
                event.identifier,
                event.event_type,
                event.from_state.value,
                event.to_state.value,
            )


def _describe(error: BaseException | None) -> str:
    if error is None:
        return "unknown error"
    return f"{type(error).__name__}: {error}"
