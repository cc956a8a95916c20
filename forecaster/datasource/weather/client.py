"""
Open-Meteo weather data source.

API Documentation: https://open-meteo.com/en/docs
Free, no API key required.

fetch() order:
1. Fresh cache entry for the postal code → returned, upstream skipped
2. Circuit open → stale cache entry or SERVICE_UNAVAILABLE
3. Upstream call through breaker and retry
4. Any failure from step 3 onward → stale cache entry or the error
5. Success → snapshot cached, entries past retention pruned, snapshot returned
"""

from datetime import datetime
from typing import Any

from loguru import logger

from forecaster.datasource.base import BaseDataSource
from forecaster.datasource.weather.builder import (
    build_detailed_forecast,
    build_extended_forecast,
)
from forecaster.datasource.weather.codes import description_for
from forecaster.formatter import NOT_AVAILABLE, round_degrees, round_half_up
from forecaster.models import Coordinates, WeatherSnapshot
from forecaster.services.client import ServiceClient
from forecaster.services.errors import (
    CircuitOpenError,
    FetchFailedError,
    InvalidResponseError,
    ServiceError,
)
from forecaster.services.result import ServiceResult
from forecaster.services.retry import RetryPolicy

TEMPERATURE_UNIT = "F"
WIND_SPEED_PRECISION = 1

API_QUERY_PARAMS = {
    "current": "temperature_2m,relative_humidity_2m,apparent_temperature,weather_code,wind_speed_10m",
    "daily": "weather_code,temperature_2m_max,temperature_2m_min,precipitation_sum,precipitation_probability_max",
    "temperature_unit": "fahrenheit",
    "wind_speed_unit": "mph",
    "precipitation_unit": "inch",
    "timezone": "auto",
    "forecast_days": 7,
}


def query_params_for(coordinates: Coordinates) -> dict[str, Any]:
    return {
        **API_QUERY_PARAMS,
        "latitude": coordinates.latitude,
        "longitude": coordinates.longitude,
    }


class WeatherClient(BaseDataSource):
    """
    Current conditions and 7-day forecast for one location.

    Coordinates are validated on construction, so an out-of-range location
    raises InvalidCoordinatesError before any network traffic. Snapshots are
    cached by postal code: nearby coordinates with the same postal code
    share an entry.
    """

    SERVICE_ID = "weather_api"
    LABEL = "Weather API"

    def __init__(
        self,
        latitude: Any,
        longitude: Any,
        postal_code: str,
        client: ServiceClient,
    ):
        super().__init__(client)
        self.coordinates = Coordinates.parse(latitude, longitude)
        self.postal_code = postal_code
        self.cache = client.weather_cache

    @property
    def cache_key(self) -> str:
        return self.cache.key(self.postal_code)

    def retry_policy(self) -> RetryPolicy:
        settings = self.client.settings
        return self.client.retry_policy(
            self.LABEL,
            max_tries=settings.weather_max_tries,
            max_interval=settings.weather_max_interval,
        )

    async def fetch(self) -> ServiceResult[WeatherSnapshot]:
        cached = await self._read_cache(allow_stale=False)
        if cached is not None:
            return ServiceResult.success(cached)

        if self.circuit_open():
            logger.warning(
                "Weather API circuit breaker is OPEN, using cached data or returning error"
            )
            return await self._stale_or_failure(
                CircuitOpenError(
                    self.SERVICE_ID, self.circuit_breaker.get_time_until_reset() or 0
                )
            )

        try:
            payload = await self.request_json(
                f"{self.client.settings.weather_base_url}/v1/forecast",
                params=query_params_for(self.coordinates),
            )
            snapshot = self._parse_forecast(payload)
        except ServiceError as e:
            logger.error(f"Weather API request failed for {self.postal_code}: {e}")
            return await self._stale_or_failure(e)
        except Exception as e:
            logger.exception(f"Weather service unexpected error: {e}")
            return await self._stale_or_failure(
                FetchFailedError(
                    "Unexpected weather service error", service_id=self.SERVICE_ID
                )
            )

        await self.cache.set(self.cache_key, snapshot)
        await self.cache.cleanup_expired()
        return ServiceResult.success(snapshot)

    async def _read_cache(self, allow_stale: bool) -> WeatherSnapshot | None:
        if allow_stale:
            result = await self.cache.get_allow_stale(self.cache_key)
        else:
            result = await self.cache.get(self.cache_key)

        if result is None:
            return None

        return result.data.model_copy(
            update={
                "served_from_cache": True,
                "is_stale": result.is_stale,
                "captured_at": result.cached_at,
            }
        )

    async def _stale_or_failure(
        self, error: ServiceError
    ) -> ServiceResult[WeatherSnapshot]:
        stale = await self._read_cache(allow_stale=True)
        if stale is not None:
            logger.warning(
                f"Serving cached weather for {self.postal_code} "
                f"(stale={stale.is_stale}) after: {error}"
            )
            return ServiceResult.success(stale)
        return ServiceResult.failure(error)

    def _parse_forecast(self, payload: Any) -> WeatherSnapshot:
        if not (
            isinstance(payload, dict)
            and isinstance(payload.get("current"), dict)
            and payload["current"]
            and isinstance(payload.get("daily"), dict)
            and payload["daily"]
        ):
            raise InvalidResponseError(
                "Weather response is missing current or daily data",
                service_id=self.SERVICE_ID,
            )

        try:
            return self._build_snapshot(payload["current"], payload["daily"])
        except (TypeError, ValueError, ArithmeticError) as e:
            raise InvalidResponseError(
                f"Unable to process weather data: {e}", service_id=self.SERVICE_ID
            ) from e

    def _build_snapshot(
        self, current: dict[str, Any], daily: dict[str, Any]
    ) -> WeatherSnapshot:
        conditions = description_for(current.get("weather_code"))
        temperature = _or_not_available(round_degrees(current.get("temperature_2m")))
        high = _or_not_available(round_degrees(_first(daily.get("temperature_2m_max"))))
        low = _or_not_available(round_degrees(_first(daily.get("temperature_2m_min"))))
        humidity = current.get("relative_humidity_2m")
        wind_speed = current.get("wind_speed_10m")
        if wind_speed is not None:
            wind_speed = round_half_up(wind_speed, WIND_SPEED_PRECISION)

        return WeatherSnapshot(
            current_temperature=temperature,
            temperature_unit=TEMPERATURE_UNIT,
            high_temperature=high,
            low_temperature=low,
            current_conditions=conditions,
            detailed_forecast=build_detailed_forecast(
                conditions, high, low, humidity, wind_speed
            ),
            extended_forecast=build_extended_forecast(daily),
            feels_like=round_degrees(current.get("apparent_temperature")),
            humidity=humidity,
            wind_speed=wind_speed,
            captured_at=datetime.now(),
            served_from_cache=False,
        )


def _first(values: Any) -> Any:
    if isinstance(values, list) and values:
        return values[0]
    return None


def _or_not_available(value: int | None) -> int | str:
    return NOT_AVAILABLE if value is None else value
