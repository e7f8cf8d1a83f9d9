"""Failure detection strategies.

A strategy decides, from the breaker's consecutive failure count and the
most recent error, whether the circuit should trip. Strategies hold no
counters of their own; the breaker owns all mutable state.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class FailureDetectionStrategy(Protocol):
    """Decides whether a breaker should open after a failure."""

    def should_trip(self, failure_count: int, last_error: BaseException | None) -> bool:
        """Return True if the circuit should open.

        Args:
            failure_count: Consecutive failures recorded by the breaker,
                including the one just observed.
            last_error: The error from the latest failure, or None when
                unknown.
        """
        ...


@dataclass(frozen=True)
class ThresholdFailureStrategy:
    """Trips once the consecutive failure count reaches a fixed threshold.

    The error value is ignored.
    """

    threshold: int

    def __post_init__(self) -> None:
        if isinstance(self.threshold, bool) or not isinstance(self.threshold, int):
            msg = f"threshold must be an integer, got {self.threshold!r}"
            raise ValueError(msg)
        if self.threshold < 1:
            msg = f"threshold must be >= 1, got {self.threshold}"
            raise ValueError(msg)

    def should_trip(self, failure_count: int, last_error: BaseException | None = None) -> bool:
        return failure_count >= self.threshold


@dataclass(frozen=True)
class _CallableStrategy:
    """Adapts a plain ``(count, error) -> bool`` function."""

    func: Callable[[int, BaseException | None], bool]

    def should_trip(self, failure_count: int, last_error: BaseException | None) -> bool:
        return bool(self.func(failure_count, last_error))


def threshold_strategy(threshold: int) -> ThresholdFailureStrategy:
    """Create the default threshold-based strategy."""
    return ThresholdFailureStrategy(threshold)


def as_strategy(
    strategy: FailureDetectionStrategy | Callable[[int, BaseException | None], bool],
) -> FailureDetectionStrategy:
    """Normalize a strategy object or decision function.

    Raises:
        TypeError: If ``strategy`` is neither a strategy nor callable.
    """
    if isinstance(strategy, FailureDetectionStrategy):
        return strategy
    if callable(strategy):
        return _CallableStrategy(strategy)
    msg = f"Expected a FailureDetectionStrategy or callable, got {type(strategy).__name__}"
    raise TypeError(msg)
