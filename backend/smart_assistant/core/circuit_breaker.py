"""
Circuit breaker for external dependencies (LLM providers, search index).

- Opens when the error rate over the window reaches the threshold
  (after a minimum number of calls)
- Stays open for open_duration_seconds, rejecting calls immediately
- Half-open admits a limited number of trial calls; enough successes close
  the circuit, any failure reopens it
- A cancelled call is recorded as a failure
"""
import asyncio
import time
from collections import deque
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple

from smart_assistant.core.logging import get_logger
from smart_assistant.core.metrics import update_circuit_breaker_state

logger = get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenError(Exception):
    """Raised when the circuit is open and the call was not attempted."""
    pass


class CircuitBreaker:
    """
    Async circuit breaker guarding one upstream.

    State transitions happen lazily on access, so no background task is needed.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: float = 0.5,
        time_window_seconds: int = 60,
        open_duration_seconds: int = 30,
        min_requests_for_threshold: int = 5,
        half_open_max_trials: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.time_window_seconds = time_window_seconds
        self.open_duration_seconds = open_duration_seconds
        self.min_requests_for_threshold = min_requests_for_threshold
        self.half_open_max_trials = half_open_max_trials
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._history: Deque[Tuple[float, bool]] = deque()
        self._opened_at: Optional[float] = None
        self._half_open_in_flight = 0
        self._half_open_successes = 0

    @property
    def state(self) -> CircuitState:
        self._update_state()
        return self._state

    def _transition(self, new_state: CircuitState, **log_fields: Any) -> None:
        self._state = new_state
        update_circuit_breaker_state(self.name, new_state.value)
        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(f"circuit_breaker_{new_state.value}", circuit_breaker=self.name, **log_fields)

    def _update_state(self) -> None:
        now = self._clock()
        cutoff = now - self.time_window_seconds
        while self._history and self._history[0][0] < cutoff:
            self._history.popleft()

        if self._state == CircuitState.OPEN:
            if self._opened_at is not None and now - self._opened_at >= self.open_duration_seconds:
                self._half_open_in_flight = 0
                self._half_open_successes = 0
                self._transition(CircuitState.HALF_OPEN)
        elif self._state == CircuitState.CLOSED:
            total = len(self._history)
            if total >= self.min_requests_for_threshold:
                failures = sum(1 for _, ok in self._history if not ok)
                error_rate = failures / total
                if error_rate >= self.failure_threshold:
                    self._opened_at = now
                    self._transition(
                        CircuitState.OPEN,
                        error_rate=error_rate,
                        failures=failures,
                        total=total,
                    )

    def _record_result(self, success: bool) -> None:
        now = self._clock()
        if self._state == CircuitState.HALF_OPEN:
            self._half_open_in_flight = max(0, self._half_open_in_flight - 1)
            if not success:
                self._opened_at = now
                self._transition(CircuitState.OPEN, reason="half_open_trial_failed")
                return
            self._half_open_successes += 1
            if self._half_open_successes >= self.half_open_max_trials:
                self._history.clear()
                self._opened_at = None
                self._transition(CircuitState.CLOSED, successes=self._half_open_successes)
            return
        self._history.append((now, success))

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Await func(*args, **kwargs) under circuit protection.

        Raises:
            CircuitBreakerOpenError: circuit open, or half-open with all trial slots taken
        """
        state = self.state
        if state == CircuitState.OPEN:
            raise CircuitBreakerOpenError(f"Circuit breaker {self.name} is OPEN")
        if state == CircuitState.HALF_OPEN:
            if self._half_open_in_flight >= self.half_open_max_trials:
                raise CircuitBreakerOpenError(f"Circuit breaker {self.name} is HALF_OPEN")
            self._half_open_in_flight += 1

        # A cancelled call is a failure; its half-open trial slot is released.
        try:
            result = await func(*args, **kwargs)
        except (Exception, asyncio.CancelledError):
            self._record_result(False)
            raise
        self._record_result(True)
        return result

    def get_metrics(self) -> dict:
        self._update_state()
        failures = sum(1 for _, ok in self._history if not ok)
        total = len(self._history)
        return {
            "name": self.name,
            "state": self._state.value,
            "recent_requests": total,
            "recent_failures": failures,
            "error_rate": failures / total if total else 0.0,
            "opened_at": self._opened_at,
        }
