"""
CircuitBreaker - Stops calling an upstream whose error rate is too high.

States:
- CLOSED: Normal operation, calls pass through and are counted
- OPEN: Upstream is failing, calls are rejected immediately
- HALF_OPEN: Sleep window elapsed, one probe call is let through

Transitions:
- CLOSED → OPEN: At least volume_threshold calls in the rolling window and
  an error rate of error_threshold percent or more
- OPEN → HALF_OPEN: After sleep_window expires
- HALF_OPEN → CLOSED: Probe succeeded
- HALF_OPEN → OPEN: Probe failed
"""

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from forecaster.services.errors import CircuitOpenError

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Blocking requests
    HALF_OPEN = "HALF_OPEN"  # Testing recovery


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    volume_threshold: int = 5  # Calls in window before the rate is evaluated
    error_threshold: float = 50.0  # Error percentage that trips the circuit
    time_window: float = 60.0  # Rolling window, seconds
    sleep_window: float = 30.0  # Seconds open before a probe is allowed
    exceptions: tuple[type[BaseException], ...] = field(
        default_factory=lambda: (Exception,)
    )  # Errors counted as failures


class CircuitBreaker:
    """
    Circuit breaker for a single upstream.

    Usage:
        cb = CircuitBreaker("weather_api")
        data = await cb.run(lambda: fetch_json(url))

    run() raises CircuitOpenError without calling the operation while the
    circuit is open. Errors from the operation are recorded and re-raised
    unchanged. Bookkeeping never awaits, so coroutines sharing a breaker see
    consistent counters.
    """

    def __init__(
        self,
        service_id: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.service_id = service_id
        self.config = config or CircuitBreakerConfig()
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._calls: deque[tuple[float, bool]] = deque()  # (timestamp, failed)
        self._opened_at: float | None = None
        self._half_open_requests = 0

    @property
    def state(self) -> CircuitState:
        """Get current state, checking for automatic transitions."""
        if self._state == CircuitState.OPEN:
            if (
                self._opened_at is not None
                and self._clock() >= self._opened_at + self.config.sleep_window
            ):
                self._state = CircuitState.HALF_OPEN
                self._half_open_requests = 0
                logger.info(
                    f"Circuit breaker '{self.service_id}' transitioned to HALF_OPEN"
                )
        return self._state

    def is_open(self) -> bool:
        """True when a call made now would be rejected."""
        return not self.can_request()

    def can_request(self) -> bool:
        """Check if a request is allowed."""
        current_state = self.state

        if current_state == CircuitState.CLOSED:
            return True

        if current_state == CircuitState.HALF_OPEN:
            return self._half_open_requests < 1

        return False

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Invoke operation under circuit protection."""
        if not self.can_request():
            raise CircuitOpenError(self.service_id, self.get_time_until_reset() or 0)

        if self._state == CircuitState.HALF_OPEN:
            self._half_open_requests += 1

        try:
            result = await operation()
        except self.config.exceptions:
            self.record_failure()
            raise
        except BaseException:
            # Uncounted error: free the probe slot so a later call can probe
            if self._state == CircuitState.HALF_OPEN:
                self._half_open_requests = 0
            raise

        self.record_success()
        return result

    def record_success(self) -> None:
        """Record a successful request."""
        if self._state == CircuitState.HALF_OPEN:
            self._close()
            return
        self._record(failed=False)

    def record_failure(self) -> None:
        """Record a failed request."""
        if self._state == CircuitState.HALF_OPEN:
            # Any failure in half-open reopens the circuit
            self._open()
            return

        self._record(failed=True)
        if self._state == CircuitState.CLOSED and self._should_trip():
            self._open()

    def _record(self, failed: bool) -> None:
        now = self._clock()
        self._calls.append((now, failed))
        self._prune(now)

    def _prune(self, now: float) -> None:
        cutoff = now - self.config.time_window
        while self._calls and self._calls[0][0] <= cutoff:
            self._calls.popleft()

    def _should_trip(self) -> bool:
        total = len(self._calls)
        if total < self.config.volume_threshold:
            return False
        return self._failures() * 100 / total >= self.config.error_threshold

    def _failures(self) -> int:
        return sum(1 for _, failed in self._calls if failed)

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._half_open_requests = 0
        logger.warning(
            f"Circuit breaker '{self.service_id}' OPENED "
            f"({self._failures()}/{len(self._calls)} calls failed in window)"
        )

    def _close(self) -> None:
        self._clear()
        logger.info(f"Circuit breaker '{self.service_id}' CLOSED (recovered)")

    def reset(self) -> None:
        """Force CLOSED and forget the window."""
        self._clear()
        logger.info(f"Circuit breaker '{self.service_id}' manually reset")

    def _clear(self) -> None:
        self._state = CircuitState.CLOSED
        self._calls.clear()
        self._opened_at = None
        self._half_open_requests = 0

    def get_time_until_reset(self) -> float | None:
        """Get seconds until circuit transitions to half-open."""
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return None

        remaining = self._opened_at + self.config.sleep_window - self._clock()
        return max(0.0, remaining)

    def get_status(self) -> dict[str, Any]:
        """Get current status as dictionary."""
        self._prune(self._clock())
        return {
            "service_id": self.service_id,
            "state": self.state.value,
            "calls_in_window": len(self._calls),
            "failures_in_window": self._failures(),
            "time_until_reset": self.get_time_until_reset(),
        }


class CircuitBreakerRegistry:
    """
    Registry holding one circuit breaker per upstream.

    Usage:
        registry = CircuitBreakerRegistry()
        cb = registry.get("geocoding_api")
    """

    def __init__(
        self,
        default_config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._breakers: dict[str, CircuitBreaker] = {}
        self._default_config = default_config or CircuitBreakerConfig()
        self._clock = clock

    def get(
        self,
        service_id: str,
        config: CircuitBreakerConfig | None = None,
    ) -> CircuitBreaker:
        """Get or create a circuit breaker for a service."""
        if service_id not in self._breakers:
            self._breakers[service_id] = CircuitBreaker(
                service_id,
                config or self._default_config,
                clock=self._clock,
            )
        return self._breakers[service_id]

    def get_all_status(self) -> dict[str, dict[str, Any]]:
        """Get status of all circuit breakers."""
        return {
            service_id: cb.get_status() for service_id, cb in self._breakers.items()
        }

    def reset_all(self) -> None:
        """Reset all circuit breakers."""
        for cb in self._breakers.values():
            cb.reset()
        logger.info(f"Reset {len(self._breakers)} circuit breakers")

    def get_open_circuits(self) -> list[str]:
        """Get list of services with open circuits."""
        return [
            service_id
            for service_id, cb in self._breakers.items()
            if cb.state == CircuitState.OPEN
        ]
