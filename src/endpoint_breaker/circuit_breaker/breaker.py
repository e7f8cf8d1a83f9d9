"""Circuit breaker state machine.

Wraps calls to a protected operation and short-circuits them once the
failure strategy decides the endpoint is unhealthy. After the recovery
timeout the next caller is let through as a single trial; its outcome
closes or reopens the circuit.

All reads and writes of ``state``, ``failure_count`` and
``last_failure_time`` happen under one per-breaker ``threading.Lock``.
The lock is never held while the operation, the fallback or a listener
runs, so the same breaker can be shared by threads and by coroutines.
"""

from __future__ import annotations

import functools
import inspect
import threading
import time
from collections.abc import Awaitable, Callable, Iterable
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Generic, ParamSpec, TypeVar

from ..circuit_breaker_config import DEFAULT_CONFIG, CircuitBreakerConfig, CircuitState
from .exceptions import CircuitOpenError
from .listeners import (
    MANUAL_RESET,
    RECOVERY_FAILED,
    RECOVERY_STARTED,
    RECOVERY_SUCCEEDED,
    THRESHOLD_REACHED,
    TRIAL_ABANDONED,
    CircuitEvent,
    CircuitListener,
)
from .strategy import FailureDetectionStrategy, as_strategy, threshold_strategy

if TYPE_CHECKING:
    from .builder import CircuitBreakerBuilder

P = ParamSpec("P")
T = TypeVar("T")
R = TypeVar("R")

Fallback = Callable[[Exception], Any]


class _Ticket:
    """Admission handed to one call; identifies the recovery trial."""

    __slots__ = ()


class CircuitBreaker(Generic[T]):
    """Circuit breaker protecting calls to one logical endpoint.

    Usage:
        breaker = CircuitBreaker("API-A", CircuitBreakerConfig(failure_threshold=3),
                                 fallback=lambda exc: "cached")
        result = breaker.execute(lambda: client.fetch())

    Failure handling:
        - Operation errors (``Exception`` subclasses) are counted, then
          re-raised unchanged unless a fallback is configured.
        - Calls rejected while the circuit is open raise ``CircuitOpenError``
          unless a fallback is configured.
        - A fallback receives the causing error and its result (or its own
          exception) becomes the outcome of the call.
        - Listener errors propagate once the transition is committed. A
          failing listener never keeps the fallback from running, and a
          listener failing on trial admission returns the circuit to OPEN.

    Attributes:
        name: Identifier used in errors and events.
        state: Current circuit state.
        failure_count: Consecutive failures since the last reset.
    """

    def __init__(
        self,
        name: str = "circuit",
        config: CircuitBreakerConfig | None = None,
        *,
        failure_strategy: (
            FailureDetectionStrategy | Callable[[int, BaseException | None], bool] | None
        ) = None,
        fallback: Callable[[Exception], T] | None = None,
        listeners: Iterable[CircuitListener] = (),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the circuit breaker.

        Args:
            name: Identifier for this circuit.
            config: Threshold and timeout settings. Uses DEFAULT_CONFIG if None.
            failure_strategy: Trip policy. Defaults to a threshold strategy
                using ``config.failure_threshold``.
            fallback: Called with the causing error instead of raising.
            listeners: Receivers of state transition events.
            clock: Monotonic time source in seconds.
        """
        if fallback is not None and not callable(fallback):
            msg = f"fallback must be callable, got {type(fallback).__name__}"
            raise TypeError(msg)

        self._name = name
        self._config = config or DEFAULT_CONFIG
        if failure_strategy is None:
            self._strategy: FailureDetectionStrategy = threshold_strategy(
                self._config.failure_threshold
            )
        else:
            self._strategy = as_strategy(failure_strategy)
        self._fallback = fallback
        self._listeners: tuple[CircuitListener, ...] = tuple(listeners)
        self._clock = clock
        self._recovery_timeout = float(self._config.recovery_timeout_seconds)

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        # Never failed: an untripped breaker must not look recently failed
        self._last_failure_time = float("-inf")
        self._trial: _Ticket | None = None

        self._total_successes = 0
        self._total_failures = 0
        self._total_rejections = 0

        self._lock = threading.Lock()

    @classmethod
    def builder(cls) -> CircuitBreakerBuilder[Any]:
        """Return a fluent builder for a new circuit breaker."""
        from .builder import CircuitBreakerBuilder

        return CircuitBreakerBuilder()

    @property
    def name(self) -> str:
        """Return the circuit identifier."""
        return self._name

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    @property
    def state(self) -> CircuitState:
        """Return the current circuit state."""
        return self._state

    @property
    def failure_count(self) -> int:
        """Return the current consecutive failure count."""
        return self._failure_count

    @property
    def failure_threshold(self) -> int:
        return self._config.failure_threshold

    @property
    def recovery_timeout(self) -> timedelta:
        return self._config.recovery_timeout

    @property
    def failure_strategy(self) -> FailureDetectionStrategy:
        return self._strategy

    @property
    def last_failure_time(self) -> float:
        """Clock reading of the most recent failure (``-inf`` if none)."""
        return self._last_failure_time

    @property
    def has_fallback(self) -> bool:
        return self._fallback is not None

    @property
    def is_open(self) -> bool:
        """Check if circuit is currently open (blocking requests)."""
        return self._state == CircuitState.OPEN

    @property
    def is_closed(self) -> bool:
        """Check if circuit is currently closed (normal operation)."""
        return self._state == CircuitState.CLOSED

    @property
    def is_half_open(self) -> bool:
        """Check if a recovery trial is in flight."""
        return self._state == CircuitState.HALF_OPEN

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self, operation: Callable[[], T]) -> T:
        """Run a zero-argument operation under circuit breaker protection.

        Args:
            operation: The protected call.

        Returns:
            The operation's result, or the fallback's result when the call
            was rejected or failed.

        Raises:
            CircuitOpenError: If the circuit is open and no fallback is set.
            Exception: The operation's own error if no fallback is set, or
                the fallback's error if the fallback fails.
        """
        ticket, rejection = self._admit()
        if rejection is not None:
            if self._fallback is None:
                raise rejection
            return self._fallback(rejection)

        try:
            result = operation()
        except Exception as exc:
            events = self._record_failure(ticket, exc)
            if self._fallback is None:
                self._publish(events)
                raise
            try:
                return self._fallback(exc)
            finally:
                self._publish(events)
        except BaseException:
            self._on_abandoned(ticket)
            raise

        self._on_success(ticket)
        return result

    async def execute_async(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Await a zero-argument coroutine function under protection.

        Same contract as ``execute``. A fallback may return a plain value or
        an awaitable; awaitables are awaited. Cancellation of a recovery
        trial returns the circuit to OPEN without counting a failure.
        """
        ticket, rejection = self._admit()
        if rejection is not None:
            if self._fallback is None:
                raise rejection
            return await _resolve(self._fallback(rejection))

        try:
            result = await operation()
        except Exception as exc:
            events = self._record_failure(ticket, exc)
            if self._fallback is None:
                self._publish(events)
                raise
            try:
                return await _resolve(self._fallback(exc))
            finally:
                self._publish(events)
        except BaseException:
            self._on_abandoned(ticket)
            raise

        self._on_success(ticket)
        return result

    def call(self, func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
        """Execute ``func(*args, **kwargs)`` under protection."""
        return self.execute(functools.partial(func, *args, **kwargs))

    def decorate(self, operation: Callable[[], T]) -> Callable[[], T]:
        """Return a zero-argument callable that runs ``operation`` via ``execute``."""

        def decorated() -> T:
            return self.execute(operation)

        return decorated

    def protected(self, func: Callable[P, R]) -> Callable[P, R]:
        """Decorator protecting a function with this circuit breaker.

        Coroutine functions are routed through ``execute_async``.

        Example:
            @breaker.protected
            def fetch_quote(symbol: str) -> Quote:
                return api.quote(symbol)
        """
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
                return await self.execute_async(functools.partial(func, *args, **kwargs))

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
            return self.execute(functools.partial(func, *args, **kwargs))

        return wrapper

    def __call__(self, func: Callable[P, R]) -> Callable[P, R]:
        """Use the breaker instance directly as a decorator."""
        return self.protected(func)

    # ------------------------------------------------------------------
    # Administration and inspection
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Manually reset the circuit to closed state.

        This is typically used for administrative intervention. A trial in
        flight at the time of the reset no longer decides the state.
        """
        events: list[CircuitEvent] = []
        with self._lock:
            self._trial = None
            self._failure_count = 0
            if self._state != CircuitState.CLOSED:
                events.append(self._transition(CircuitState.CLOSED, MANUAL_RESET))
        self._publish(events)

    def time_until_retry(self) -> float:
        """Get seconds until an open circuit admits a trial call."""
        with self._lock:
            if self._state != CircuitState.OPEN:
                return 0.0
            return max(0.0, self._remaining_open_time())

    def snapshot(self) -> dict[str, Any]:
        """Return a point-in-time view of state and counters."""
        with self._lock:
            remaining = (
                max(0.0, self._remaining_open_time())
                if self._state == CircuitState.OPEN
                else 0.0
            )
            return {
                "name": self._name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "failure_threshold": self._config.failure_threshold,
                "recovery_timeout_seconds": self._recovery_timeout,
                "time_until_retry": remaining,
                "total_successes": self._total_successes,
                "total_failures": self._total_failures,
                "total_rejections": self._total_rejections,
            }

    def __repr__(self) -> str:
        return (
            f"CircuitBreaker(name={self._name!r}, state={self._state.value}, "
            f"failures={self._failure_count}/{self._config.failure_threshold})"
        )

    # ------------------------------------------------------------------
    # State transitions (lock held)
    # ------------------------------------------------------------------

    def _admit(self) -> tuple[_Ticket, CircuitOpenError | None]:
        """Decide whether a call may run, promoting OPEN to HALF_OPEN when due."""
        ticket = _Ticket()
        events: list[CircuitEvent] = []
        rejection: CircuitOpenError | None = None

        with self._lock:
            if self._state == CircuitState.OPEN:
                remaining = self._remaining_open_time()
                if remaining > 0:
                    self._total_rejections += 1
                    rejection = CircuitOpenError(self._name, remaining)
                else:
                    self._trial = ticket
                    events.append(self._transition(CircuitState.HALF_OPEN, RECOVERY_STARTED))
            elif self._state == CircuitState.HALF_OPEN:
                # Trial in flight: everyone else still sees an open circuit
                self._total_rejections += 1
                rejection = CircuitOpenError(self._name, 0.0, trial_in_flight=True)

        try:
            self._publish(events)
        except BaseException:
            # The trial never ran; free the slot for the next caller
            with self._lock:
                if self._trial is ticket:
                    self._trial = None
                    self._state = CircuitState.OPEN
            raise
        return ticket, rejection

    def _on_success(self, ticket: _Ticket) -> None:
        events: list[CircuitEvent] = []
        with self._lock:
            self._total_successes += 1
            if ticket is self._trial:
                self._trial = None
                self._failure_count = 0
                events.append(self._transition(CircuitState.CLOSED, RECOVERY_SUCCEEDED))
            elif self._state == CircuitState.CLOSED:
                self._failure_count = 0
        self._publish(events)

    def _record_failure(self, ticket: _Ticket, error: Exception) -> list[CircuitEvent]:
        """Count a failure and return the resulting events for the caller to publish."""
        events: list[CircuitEvent] = []
        with self._lock:
            self._total_failures += 1
            self._failure_count += 1
            self._last_failure_time = self._clock()

            if ticket is self._trial:
                # A failed trial always reopens, whatever the strategy says
                self._trial = None
                events.append(self._transition(CircuitState.OPEN, RECOVERY_FAILED, error))
            elif self._state == CircuitState.CLOSED and self._strategy.should_trip(
                self._failure_count, error
            ):
                events.append(self._transition(CircuitState.OPEN, THRESHOLD_REACHED, error))
        return events

    def _on_abandoned(self, ticket: _Ticket) -> None:
        events: list[CircuitEvent] = []
        with self._lock:
            if ticket is self._trial:
                self._trial = None
                events.append(self._transition(CircuitState.OPEN, TRIAL_ABANDONED))
        self._publish(events)

    def _remaining_open_time(self) -> float:
        elapsed = self._clock() - self._last_failure_time
        return self._recovery_timeout - elapsed

    def _transition(
        self,
        to_state: CircuitState,
        event_type: str,
        error: BaseException | None = None,
    ) -> CircuitEvent:
        from_state = self._state
        self._state = to_state
        return CircuitEvent(
            identifier=self._name,
            event_type=event_type,
            from_state=from_state,
            to_state=to_state,
            failure_count=self._failure_count,
            error=error,
        )

    def _publish(self, events: list[CircuitEvent]) -> None:
        for event in events:
            for listener in self._listeners:
                listener.on_event(event)


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value
