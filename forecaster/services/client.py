"""
ServiceClient - Shared async HTTP client with resilience patterns.

Owns the process-wide state every upstream client needs:
- one httpx.AsyncClient with connect/read timeouts
- CircuitBreakerRegistry with an independent breaker per upstream
- CacheManager for weather snapshots

Construct one instance at process start and inject it into the clients.
"""

import asyncio
from datetime import timedelta
from typing import Any, Awaitable, Callable

import httpx
from loguru import logger

from forecaster.services.cache import CacheManager
from forecaster.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
)
from forecaster.services.errors import (
    ConnectionFailedError,
    FetchFailedError,
    InvalidRequestError,
    InvalidResponseError,
    RequestTimeoutError,
    UpstreamServerError,
)
from forecaster.services.retry import RetryPolicy, log_retry
from forecaster.settings import Settings, global_settings

WEATHER_CACHE_PREFIX = "weather_forecast_"


class ServiceClient:
    """
    HTTP client combining circuit breaker and retry for every upstream call.

    Usage:
        async with ServiceClient() as client:
            data = await client.request_json(
                service_id="weather_api",
                url="https://api.open-meteo.com/v1/forecast",
                params={"latitude": 40.7, "longitude": -74.0},
                retry_policy=client.retry_policy("Weather API", max_tries=3, max_interval=2),
            )
    """

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        weather_cache: CacheManager | None = None,
        circuit_breakers: CircuitBreakerRegistry | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings or global_settings
        self._sleep = sleep

        self.weather_cache = weather_cache or CacheManager(
            prefix=WEATHER_CACHE_PREFIX,
            max_size=self.settings.weather_cache_max_size,
            default_ttl=timedelta(minutes=self.settings.weather_cache_expiration_minutes),
            max_stale=timedelta(hours=self.settings.weather_cache_max_stale_hours),
            debug=self.settings.cache_debug,
        )
        self.circuit_breakers = circuit_breakers or CircuitBreakerRegistry(
            CircuitBreakerConfig(
                volume_threshold=self.settings.circuit_volume_threshold,
                error_threshold=self.settings.circuit_error_threshold,
                time_window=self.settings.circuit_time_window,
                sleep_window=self.settings.circuit_sleep_window,
            )
        )

        # HTTP client (lazy initialization unless injected)
        self._http_client = http_client

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    self.settings.read_timeout,
                    connect=self.settings.connect_timeout,
                ),
                headers={"User-Agent": self.settings.user_agent},
                follow_redirects=True,
            )
        return self._http_client

    def circuit_breaker(self, service_id: str) -> CircuitBreaker:
        """Breaker for one upstream, shared by every caller."""
        return self.circuit_breakers.get(service_id)

    def retry_policy(
        self, label: str, max_tries: int, max_interval: float
    ) -> RetryPolicy:
        """Retry policy with the shared base interval and multiplier."""
        return RetryPolicy(
            max_tries=max_tries,
            base_interval=self.settings.retry_base_interval,
            max_interval=max_interval,
            multiplier=self.settings.retry_multiplier,
            on_retry=log_retry(label, max_tries),
            sleep=self._sleep,
        )

    async def request_json(
        self,
        service_id: str,
        url: str,
        params: dict[str, Any] | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> Any:
        """
        GET a JSON document through the service's breaker and retry policy.

        Args:
            service_id: Identifier for the upstream (selects the breaker)
            url: Full URL to request
            params: Query parameters
            retry_policy: Retry configuration (single attempt if omitted)

        Returns:
            Decoded JSON payload

        Raises:
            CircuitOpenError: If circuit breaker is open
            RequestTimeoutError: If every attempt timed out
            ServiceError: For other service errors
        """
        policy = retry_policy or RetryPolicy(max_tries=1, sleep=self._sleep)

        async def attempt() -> Any:
            return await self._execute_request(url, params, service_id)

        return await self.circuit_breaker(service_id).run(
            lambda: policy.execute(attempt)
        )

    async def _execute_request(
        self,
        url: str,
        params: dict[str, Any] | None,
        service_id: str,
    ) -> Any:
        """Execute the actual HTTP request and classify the outcome."""
        client = self._get_http_client()

        try:
            response = await client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(service_id, self.settings.read_timeout) from e
        except httpx.RequestError as e:
            raise ConnectionFailedError(
                f"{type(e).__name__}: {e}", service_id=service_id
            ) from e

        status = response.status_code
        if status >= 500:
            logger.error(f"{service_id} server error (HTTP {status})")
            raise UpstreamServerError(service_id, status)
        if status >= 400:
            logger.error(f"{service_id} client error (HTTP {status})")
            raise InvalidRequestError(service_id, status)
        if not response.is_success:
            logger.error(f"{service_id} unexpected status (HTTP {status})")
            raise FetchFailedError(
                f"Unexpected HTTP {status} from '{service_id}'", service_id=service_id
            )

        try:
            return response.json()
        except ValueError as e:
            raise InvalidResponseError(
                f"Service '{service_id}' returned a non-JSON body", service_id=service_id
            ) from e

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("ServiceClient closed")

    async def __aenter__(self) -> "ServiceClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def get_health_status(self) -> dict[str, Any]:
        """Get health status of breakers and the weather cache."""
        return {
            "weather_cache": self.weather_cache.get_stats().to_dict(),
            "circuit_breakers": self.circuit_breakers.get_all_status(),
            "open_circuits": self.circuit_breakers.get_open_circuits(),
        }
