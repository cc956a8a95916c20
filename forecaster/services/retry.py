"""
RetryPolicy - Bounded exponential backoff for transient upstream failures.

Interval before retry n (n = number of failed attempts so far):

    min(base_interval * multiplier ** (n - 1), max_interval)

Only exceptions listed in retry_on are retried; anything else propagates on
the first attempt. When tries run out the last error is re-raised, so a
surrounding circuit breaker records one failure per call, not per attempt.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from forecaster.services.errors import (
    ConnectionFailedError,
    RequestTimeoutError,
    UpstreamServerError,
)

T = TypeVar("T")

# Timeouts, refused/reset connections, DNS failures and upstream 5xx
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    RequestTimeoutError,
    ConnectionFailedError,
    UpstreamServerError,
    httpx.TimeoutException,
    httpx.NetworkError,
)

# (exception, attempt, elapsed_seconds, next_interval)
RetryObserver = Callable[[BaseException, int, float, float], None]


@dataclass
class RetryPolicy:
    """Retry configuration plus the executor that applies it."""

    max_tries: int = 3
    base_interval: float = 0.5
    max_interval: float = 2.0
    multiplier: float = 2.0
    retry_on: tuple[type[BaseException], ...] = TRANSIENT_ERRORS
    on_retry: RetryObserver | None = None
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    def interval_for(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-based)."""
        return min(
            self.base_interval * self.multiplier ** (attempt - 1),
            self.max_interval,
        )

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Await operation, retrying transient failures."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_tries),
            wait=wait_exponential(
                multiplier=self.base_interval,
                exp_base=self.multiplier,
                min=0,
                max=self.max_interval,
            ),
            retry=retry_if_exception_type(self.retry_on),
            before_sleep=self._notify,
            sleep=self.sleep,
            reraise=True,
        )
        return await retrying(operation)

    def _notify(self, retry_state: RetryCallState) -> None:
        if self.on_retry is None or retry_state.outcome is None:
            return
        exc = retry_state.outcome.exception()
        next_interval = (
            retry_state.next_action.sleep if retry_state.next_action else 0.0
        )
        self.on_retry(
            exc,
            retry_state.attempt_number,
            retry_state.seconds_since_start or 0.0,
            next_interval,
        )


def log_retry(service_label: str, max_tries: int) -> RetryObserver:
    """Build an observer that logs each retry as a warning."""

    def _observer(
        exc: BaseException, attempt: int, elapsed: float, next_interval: float
    ) -> None:
        logger.warning(
            f"{service_label} retry {attempt}/{max_tries} after {elapsed:.2f}s "
            f"due to {type(exc).__name__}: {exc}. Next retry in {next_interval}s"
        )

    return _observer
