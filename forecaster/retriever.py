"""
ForecastRetriever - Geocoding then weather, merged into one Forecast.

The single boundary that guarantees callers only ever see a ServiceResult:
client failures pass through with their kind intact, anything unexpected
becomes RETRIEVAL_FAILED.
"""

from typing import Callable

from loguru import logger

from forecaster.datasource.geocoding import GeocodingClient
from forecaster.datasource.weather import WeatherClient
from forecaster.models import Forecast
from forecaster.services.client import ServiceClient
from forecaster.services.errors import (
    InvalidCoordinatesError,
    InvalidInputError,
    RetrievalFailedError,
)
from forecaster.services.result import ServiceResult

WeatherClientFactory = Callable[[float, float, str, ServiceClient], WeatherClient]


class ForecastRetriever:
    """
    Usage:
        async with ServiceClient() as client:
            result = await ForecastRetriever(client).retrieve("New York, NY")
            if result.ok:
                print(result.data.current_temp_display)
            else:
                print(result.message)
    """

    def __init__(
        self,
        client: ServiceClient,
        geocoder: GeocodingClient | None = None,
        weather_client_factory: WeatherClientFactory = WeatherClient,
    ):
        self.client = client
        self.geocoder = geocoder or GeocodingClient(client)
        self._weather_client_factory = weather_client_factory

    async def retrieve(self, address: str | None) -> ServiceResult[Forecast]:
        if address is None or not address.strip():
            return ServiceResult.failure(InvalidInputError("Address is required"))

        try:
            geocoded = await self.geocoder.resolve(address)
            if not geocoded.ok:
                return ServiceResult.failure(geocoded.error)
            location = geocoded.unwrap()

            try:
                weather_client = self._weather_client_factory(
                    location.latitude,
                    location.longitude,
                    location.postal_code,
                    self.client,
                )
            except InvalidCoordinatesError as e:
                logger.error(f"Geocoder returned unusable coordinates: {e}")
                return ServiceResult.failure(e)

            weather = await weather_client.fetch()
            if not weather.ok:
                return ServiceResult.failure(weather.error)

            return ServiceResult.success(
                Forecast.from_results(location, weather.unwrap())
            )
        except Exception as e:
            logger.exception(f"Forecast retrieval failed: {e}")
            return ServiceResult.failure(
                RetrievalFailedError("Forecast retrieval failed")
            )
