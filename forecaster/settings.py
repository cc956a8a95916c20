import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Upstream endpoints
    geocoding_base_url: str = Field(
        default="https://nominatim.openstreetmap.org", alias="GEOCODING_BASE_URL"
    )
    weather_base_url: str = Field(
        default="https://api.open-meteo.com", alias="WEATHER_BASE_URL"
    )
    timezone_base_url: str = Field(
        default="https://ipapi.co", alias="TIMEZONE_BASE_URL"
    )
    user_agent: str = Field(
        default="forecaster/0.1 (+https://example.com/forecaster)", alias="USER_AGENT"
    )

    # HTTP timeouts, seconds
    connect_timeout: float = Field(default=2.0, alias="HTTP_CONNECT_TIMEOUT")
    read_timeout: float = Field(default=5.0, alias="HTTP_READ_TIMEOUT")

    # Weather cache
    weather_cache_expiration_minutes: int = Field(
        default=30, alias="WEATHER_CACHE_EXPIRATION"
    )
    weather_cache_max_size: int = Field(default=500, alias="WEATHER_CACHE_MAX_SIZE")
    weather_cache_max_stale_hours: int = Field(
        default=24, alias="WEATHER_CACHE_MAX_STALE_HOURS"
    )
    cache_debug: bool = Field(default=False, alias="CACHE_DEBUG")

    # Circuit breakers (shared defaults for all upstreams)
    circuit_volume_threshold: int = Field(default=5, alias="CIRCUIT_VOLUME_THRESHOLD")
    circuit_error_threshold: float = Field(
        default=50.0, alias="CIRCUIT_ERROR_THRESHOLD"
    )
    circuit_time_window: float = Field(default=60.0, alias="CIRCUIT_TIME_WINDOW")
    circuit_sleep_window: float = Field(default=30.0, alias="CIRCUIT_SLEEP_WINDOW")

    # Retry tuning
    geocoding_max_tries: int = Field(default=3, alias="GEOCODING_MAX_TRIES")
    geocoding_max_interval: float = Field(default=2.0, alias="GEOCODING_MAX_INTERVAL")
    timezone_max_tries: int = Field(default=2, alias="TIMEZONE_MAX_TRIES")
    timezone_max_interval: float = Field(default=1.0, alias="TIMEZONE_MAX_INTERVAL")
    weather_max_tries: int = Field(default=3, alias="WEATHER_MAX_TRIES")
    weather_max_interval: float = Field(default=2.0, alias="WEATHER_MAX_INTERVAL")
    retry_base_interval: float = Field(default=0.5, alias="RETRY_BASE_INTERVAL")
    retry_multiplier: float = Field(default=2.0, alias="RETRY_MULTIPLIER")


global_settings = Settings.model_validate(dict(os.environ))
