"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta
from typing import Any, Callable

import httpx
import pytest

from forecaster.services.cache import CacheManager
from forecaster.services.circuit_breaker import (
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
)
from forecaster.services.client import WEATHER_CACHE_PREFIX, ServiceClient
from forecaster.settings import Settings

Handler = Callable[[httpx.Request], httpx.Response]


class FakeClock:
    """Monotonic seconds that only move when a test says so."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWallClock:
    """datetime.now replacement for cache ageing."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 6, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class RecordingSleep:
    """Async sleep that returns immediately and records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class Upstream:
    """Routes requests by path to queued responses and counts calls."""

    def __init__(self):
        self.calls: list[httpx.Request] = []
        self._routes: dict[str, list[Any]] = {}

    def on(self, path_prefix: str, *outcomes: Any) -> None:
        """Queue outcomes (Response, exception, or dict/list body) for a path.

        The last outcome repeats once the queue is drained.
        """
        self._routes[path_prefix] = list(outcomes)

    def calls_to(self, path_prefix: str) -> int:
        return sum(1 for r in self.calls if r.url.path.startswith(path_prefix))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        for prefix, outcomes in self._routes.items():
            if request.url.path.startswith(prefix):
                outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
                if isinstance(outcome, Exception):
                    raise outcome
                if isinstance(outcome, httpx.Response):
                    return outcome
                return httpx.Response(200, json=outcome)
        return httpx.Response(404, json={"error": "no route"})


@pytest.fixture
def settings() -> Settings:
    return Settings(
        geocoding_base_url="https://geo.test",
        weather_base_url="https://weather.test",
        timezone_base_url="https://ip.test",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wall_clock() -> FakeWallClock:
    return FakeWallClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def service_client(settings, upstream, clock, wall_clock, sleep) -> ServiceClient:
    return ServiceClient(
        settings=settings,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(upstream)),
        weather_cache=CacheManager(
            prefix=WEATHER_CACHE_PREFIX,
            default_ttl=timedelta(minutes=30),
            now=wall_clock,
        ),
        circuit_breakers=CircuitBreakerRegistry(CircuitBreakerConfig(), clock=clock),
        sleep=sleep,
    )


def timeout_error(url: str = "https://upstream.test/") -> httpx.ConnectTimeout:
    return httpx.ConnectTimeout("timed out", request=httpx.Request("GET", url))


def connect_error(url: str = "https://upstream.test/") -> httpx.ConnectError:
    return httpx.ConnectError("connection refused", request=httpx.Request("GET", url))


# Sample payloads


@pytest.fixture
def ny_geocode_payload() -> list[dict[str, Any]]:
    return [
        {
            "lat": "40.7128",
            "lon": "-74.0060",
            "display_name": "New York, NY 10001, USA",
            "address": {"postcode": "10001", "city": "New York"},
        }
    ]


@pytest.fixture
def open_meteo_payload() -> dict[str, Any]:
    return {
        "current": {
            "temperature_2m": 72.5,
            "relative_humidity_2m": 65,
            "apparent_temperature": 70.2,
            "weather_code": 0,
            "wind_speed_10m": 8.54,
        },
        "daily": {
            "time": [
                "2026-06-01",
                "2026-06-02",
                "2026-06-03",
                "2026-06-04",
                "2026-06-05",
                "2026-06-06",
                "2026-06-07",
            ],
            "weather_code": [0, 2, 61, 3, 95, 71, 45],
            "temperature_2m_max": [75.2, 77.0, 68.4, 70.1, 80.5, 40.2, 65.0],
            "temperature_2m_min": [55.4, 58.1, 50.0, 52.3, 60.0, 30.9, 49.5],
            "precipitation_sum": [0.0, 0.0, 0.3, 0.0, 1.2, 0.5, 0.0],
            "precipitation_probability_max": [0, 10, 80, 5, 90, 60, 0],
        },
    }
