from forecaster.datasource.weather.client import WeatherClient
from forecaster.datasource.weather.codes import UNKNOWN_CONDITIONS, description_for

__all__ = ["WeatherClient", "UNKNOWN_CONDITIONS", "description_for"]
