"""
Circuit breaker for the search backend.

Opens after `failure_threshold` transport failures within `window_seconds`,
refuses calls for `cooldown_seconds`, then lets exactly one probe through
(HALF_OPEN). A successful probe closes the circuit; a failed one reopens it.
"""
import time
from collections import deque
from collections.abc import Callable
from enum import Enum

from nextrial.core.errors import CircuitOpenError
from nextrial.core.logger import logger


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Failing, reject requests
    HALF_OPEN = "HALF_OPEN"  # One probe allowed


class CircuitBreaker:
    def __init__(
        self,
        failure_threshold: int = 3,
        window_seconds: float = 30.0,
        cooldown_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            failure_threshold: Failures within the window that open the circuit
            window_seconds: Sliding window the failures must fall into
            cooldown_seconds: Time the circuit stays open before a probe
            clock: Monotonic time source, injectable for tests
        """
        self.failure_threshold = failure_threshold
        self.window_seconds = window_seconds
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._failures: deque[float] = deque()
        self._opened_at: float | None = None
        self._probe_in_flight = False
        self._state = CircuitState.CLOSED

    @property
    def state(self) -> CircuitState:
        """Current state, without claiming a probe."""
        if self._state == CircuitState.OPEN and self.retry_after() <= 0:
            return CircuitState.HALF_OPEN
        return self._state

    def retry_after(self) -> float:
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return 0.0
        return max(0.0, self._opened_at + self.cooldown_seconds - self._clock())

    def before_call(self) -> None:
        """
        Admit or refuse a call.

        Raises:
            CircuitOpenError: While cooling down, or while a probe is outstanding
        """
        if self._state == CircuitState.OPEN:
            remaining = self.retry_after()
            if remaining > 0:
                raise CircuitOpenError(remaining)
            logger.circuit_state(CircuitState.HALF_OPEN.value, len(self._failures))
            self._state = CircuitState.HALF_OPEN
            self._probe_in_flight = False
        if self._state == CircuitState.HALF_OPEN:
            if self._probe_in_flight:
                raise CircuitOpenError(0.0)
            self._probe_in_flight = True

    def record_success(self) -> None:
        if self._state != CircuitState.CLOSED:
            logger.circuit_state(CircuitState.CLOSED.value, 0)
        self._state = CircuitState.CLOSED
        self._failures.clear()
        self._opened_at = None
        self._probe_in_flight = False

    def record_failure(self) -> None:
        now = self._clock()
        if self._state == CircuitState.HALF_OPEN:
            self._failures.append(now)
            self._open(now)
            return
        self._failures.append(now)
        while self._failures and now - self._failures[0] > self.window_seconds:
            self._failures.popleft()
        if len(self._failures) >= self.failure_threshold:
            self._open(now)

    def release_probe(self) -> None:
        """End a probe that neither proved nor disproved backend health."""
        self._probe_in_flight = False

    def _open(self, now: float) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = now
        self._probe_in_flight = False
        logger.circuit_state(
            CircuitState.OPEN.value, len(self._failures), self.cooldown_seconds
        )

    def reset(self) -> None:
        """Manually reset circuit breaker to CLOSED state."""
        logger.info("Circuit breaker manually reset to CLOSED")
        self.record_success()

    def get_state(self) -> dict:
        return {
            "state": self.state.value,
            "failure_count": len(self._failures),
            "failure_threshold": self.failure_threshold,
            "window_seconds": self.window_seconds,
            "cooldown_seconds": self.cooldown_seconds,
            "retry_after": round(self.retry_after(), 3),
        }
