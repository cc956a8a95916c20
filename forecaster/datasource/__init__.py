from forecaster.datasource.geocoding import GeocodingClient
from forecaster.datasource.timezone import TimezoneResolver
from forecaster.datasource.weather import WeatherClient

__all__ = ["GeocodingClient", "TimezoneResolver", "WeatherClient"]
