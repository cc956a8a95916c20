"""Tests for the rolling-window circuit breaker."""

import pytest

from forecaster.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from forecaster.services.errors import (
    CircuitOpenError,
    ConnectionFailedError,
    NotFoundError,
)
from tests.conftest import FakeClock


class Operation:
    """Awaitable callable that succeeds or fails and counts invocations."""

    def __init__(self, fail: bool = False, error: Exception | None = None):
        self.fail = fail
        self.error = error or ConnectionFailedError("connection refused")
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.fail:
            raise self.error
        return "ok"


async def _fail_times(breaker: CircuitBreaker, count: int) -> None:
    for _ in range(count):
        with pytest.raises(ConnectionFailedError):
            await breaker.run(Operation(fail=True))


@pytest.fixture
def breaker(clock: FakeClock) -> CircuitBreaker:
    return CircuitBreaker("weather_api", CircuitBreakerConfig(), clock=clock)


class TestClosedState:
    @pytest.mark.asyncio
    async def test_passes_result_through(self, breaker):
        assert await breaker.run(Operation()) == "ok"
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_propagates_operation_error_unchanged(self, breaker):
        error = NotFoundError("nothing here")
        with pytest.raises(NotFoundError) as exc_info:
            await breaker.run(Operation(fail=True, error=error))
        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_stays_closed_below_volume_threshold(self, breaker):
        await _fail_times(breaker, 4)
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_stays_closed_below_error_threshold(self, breaker):
        for _ in range(3):
            await breaker.run(Operation())
        await _fail_times(breaker, 2)  # 2/5 = 40%
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_failures_outside_window_are_forgotten(self, breaker, clock):
        await _fail_times(breaker, 4)
        clock.advance(61)
        await _fail_times(breaker, 1)
        assert breaker.state == CircuitState.CLOSED


class TestTripping:
    @pytest.mark.asyncio
    async def test_opens_at_half_failures_with_enough_volume(self, breaker):
        await breaker.run(Operation())
        await breaker.run(Operation())
        await _fail_times(breaker, 3)  # 3/5 = 60%
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_exactly_fifty_percent_trips(self, clock):
        breaker = CircuitBreaker(
            "geocoding_api", CircuitBreakerConfig(volume_threshold=4), clock=clock
        )
        await breaker.run(Operation())
        await breaker.run(Operation())
        await _fail_times(breaker, 2)
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_open_circuit_rejects_without_calling(self, breaker):
        await _fail_times(breaker, 5)
        op = Operation()

        with pytest.raises(CircuitOpenError) as exc_info:
            await breaker.run(op)

        assert op.calls == 0
        assert exc_info.value.service_id == "weather_api"
        assert exc_info.value.reset_after_seconds == pytest.approx(30)
        assert breaker.is_open()


class TestRecovery:
    @pytest.mark.asyncio
    async def test_half_open_after_sleep_window(self, breaker, clock):
        await _fail_times(breaker, 5)
        clock.advance(29)
        assert breaker.state == CircuitState.OPEN
        clock.advance(1)
        assert breaker.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_successful_probe_closes(self, breaker, clock):
        await _fail_times(breaker, 5)
        clock.advance(30)

        assert await breaker.run(Operation()) == "ok"
        assert breaker.state == CircuitState.CLOSED
        # Window was cleared, a single failure must not re-trip
        await _fail_times(breaker, 1)
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_failed_probe_reopens(self, breaker, clock):
        await _fail_times(breaker, 5)
        clock.advance(30)

        await _fail_times(breaker, 1)

        assert breaker.state == CircuitState.OPEN
        assert breaker.get_time_until_reset() == pytest.approx(30)

    @pytest.mark.asyncio
    async def test_only_one_probe_in_flight(self, breaker, clock):
        await _fail_times(breaker, 5)
        clock.advance(30)
        second = Operation()

        async def probe() -> str:
            # A second caller arrives while the probe is outstanding
            with pytest.raises(CircuitOpenError):
                await breaker.run(second)
            return "probe"

        assert await breaker.run(probe) == "probe"
        assert second.calls == 0
        assert breaker.state == CircuitState.CLOSED


class TestCountedExceptions:
    @pytest.mark.asyncio
    async def test_uncounted_errors_do_not_trip(self, clock):
        breaker = CircuitBreaker(
            "geocoding_api",
            CircuitBreakerConfig(exceptions=(ConnectionFailedError,)),
            clock=clock,
        )
        for _ in range(6):
            with pytest.raises(NotFoundError):
                await breaker.run(Operation(fail=True, error=NotFoundError("none")))
        assert breaker.state == CircuitState.CLOSED


class TestRegistry:
    @pytest.mark.asyncio
    async def test_breakers_are_independent(self, clock):
        registry = CircuitBreakerRegistry(clock=clock)
        weather = registry.get("weather_api")
        await _fail_times(weather, 5)

        assert registry.get("weather_api") is weather
        assert registry.get("geocoding_api").state == CircuitState.CLOSED
        assert registry.get_open_circuits() == ["weather_api"]

    @pytest.mark.asyncio
    async def test_reset_all_closes_everything(self, clock):
        registry = CircuitBreakerRegistry(clock=clock)
        await _fail_times(registry.get("timezone_api"), 5)

        registry.reset_all()

        assert registry.get_open_circuits() == []
        status = registry.get_all_status()["timezone_api"]
        assert status["state"] == "CLOSED"
        assert status["calls_in_window"] == 0
