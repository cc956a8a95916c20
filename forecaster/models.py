"""
Forecast data models.

All models are frozen: each is built once by the call that produces it.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from forecaster.formatter import NOT_AVAILABLE, format_city, format_temperature
from forecaster.services.errors import InvalidCoordinatesError

UNKNOWN_POSTAL_CODE = "unknown"
DEFAULT_TIMEZONE = "UTC"
DEFAULT_TEMPERATURE_UNIT = "F"
CACHE_STATUS_FRESH = "Fresh Data"
CACHE_TIME_FORMAT = "%I:%M %p on %B %d, %Y"

# Whole degrees, or the "N/A" sentinel when the upstream omitted the value
Temperature = int | str


def _validate_coordinate(value: Any, low: float, high: float, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidCoordinatesError(
            f"Invalid {name}: {value}. Must be a valid number"
        ) from None

    if not low <= number <= high:
        raise InvalidCoordinatesError(
            f"Invalid {name}: {value}. Must be between {low:g} and {high:g}"
        )
    return number


class Coordinates(BaseModel):
    """A validated latitude/longitude pair."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    @classmethod
    def parse(cls, latitude: Any, longitude: Any) -> "Coordinates":
        """Validate raw values, raising InvalidCoordinatesError."""
        return cls(
            latitude=_validate_coordinate(latitude, -90, 90, "latitude"),
            longitude=_validate_coordinate(longitude, -180, 180, "longitude"),
        )


class GeocodeResult(BaseModel):
    """First geocoding match for an address."""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    postal_code: str = UNKNOWN_POSTAL_CODE
    formatted_address: str | None = None


class TimezoneResult(BaseModel):
    """Display timezone guessed from the requester's IP."""

    model_config = ConfigDict(frozen=True)

    timezone: str = DEFAULT_TIMEZONE
    city: str | None = None
    state: str | None = None
    country: str | None = None
    country_code: str | None = None

    @property
    def display_city(self) -> str | None:
        return format_city(self.city, self.state, self.country, self.country_code)


class DailyEntry(BaseModel):
    """One day of the extended forecast."""

    model_config = ConfigDict(frozen=True)

    day_label: str
    date_label: str
    high: int | None = None
    low: int | None = None
    unit: str = DEFAULT_TEMPERATURE_UNIT
    short_forecast: str
    detailed_forecast: str
    precipitation_probability: int | float | None = None


class WeatherSnapshot(BaseModel):
    """Current conditions plus the extended forecast for one location."""

    model_config = ConfigDict(frozen=True)

    current_temperature: Temperature = NOT_AVAILABLE
    temperature_unit: str = DEFAULT_TEMPERATURE_UNIT
    high_temperature: Temperature = NOT_AVAILABLE
    low_temperature: Temperature = NOT_AVAILABLE
    current_conditions: str
    detailed_forecast: str
    extended_forecast: tuple[DailyEntry, ...] = ()
    feels_like: int | None = None
    humidity: int | float | None = None
    wind_speed: float | None = None
    captured_at: datetime
    served_from_cache: bool = False
    is_stale: bool = False


class Forecast(BaseModel):
    """Geocoding and weather results merged for display."""

    model_config = ConfigDict(frozen=True)

    # From geocoding
    latitude: float
    longitude: float
    postal_code: str = UNKNOWN_POSTAL_CODE
    formatted_address: str | None = None

    # From weather
    current_temperature: Temperature = NOT_AVAILABLE
    temperature_unit: str = DEFAULT_TEMPERATURE_UNIT
    high_temperature: Temperature = NOT_AVAILABLE
    low_temperature: Temperature = NOT_AVAILABLE
    current_conditions: str
    detailed_forecast: str
    extended_forecast: tuple[DailyEntry, ...] = ()
    feels_like: int | None = None
    humidity: int | float | None = None
    wind_speed: float | None = None
    captured_at: datetime
    served_from_cache: bool = False
    is_stale: bool = False

    @classmethod
    def from_results(
        cls, geocode: GeocodeResult, weather: WeatherSnapshot
    ) -> "Forecast":
        """Merge both results, keeping only fields a Forecast declares."""
        merged = {**weather.model_dump(), **geocode.model_dump()}
        merged["extended_forecast"] = weather.extended_forecast
        return cls(**{k: v for k, v in merged.items() if k in cls.model_fields})

    @property
    def current_temp_display(self) -> str:
        return format_temperature(self.current_temperature, self.temperature_unit)

    @property
    def high_temp_display(self) -> str:
        return format_temperature(self.high_temperature, self.temperature_unit)

    @property
    def low_temp_display(self) -> str:
        return format_temperature(self.low_temperature, self.temperature_unit)

    @property
    def formatted_cache_time(self) -> str:
        return self.captured_at.strftime(CACHE_TIME_FORMAT)

    @property
    def cache_status(self) -> str:
        if not self.served_from_cache:
            return CACHE_STATUS_FRESH
        status = f"Cached (Retrieved at {self.formatted_cache_time})"
        return f"{status}, may be out of date" if self.is_stale else status
