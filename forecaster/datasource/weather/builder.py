"""
Forecast text and extended-forecast construction from Open-Meteo payloads.
"""

from datetime import date
from typing import Any, Optional, Sequence

from loguru import logger

from forecaster.datasource.weather.codes import UNKNOWN_CONDITIONS, description_for
from forecaster.formatter import DEGREE, NOT_AVAILABLE, round_degrees
from forecaster.models import DEFAULT_TEMPERATURE_UNIT, DailyEntry

TODAY_LABEL = "Today"
DATE_FORMAT = "%B %d"
DAY_FORMAT = "%A"


def build_detailed_forecast(
    conditions: str,
    high,
    low,
    humidity=None,
    wind_speed=None,
    unit: str = DEFAULT_TEMPERATURE_UNIT,
) -> str:
    """e.g. 'Clear sky. High of 75°F and low of 55°F. Humidity: 65%. Wind speed: 8.5 mph.'"""
    parts = [conditions]
    if high != NOT_AVAILABLE and low != NOT_AVAILABLE:
        parts.append(f"High of {high}{DEGREE}{unit} and low of {low}{DEGREE}{unit}")
    if humidity is not None:
        parts.append(f"Humidity: {humidity}%")
    if wind_speed is not None:
        parts.append(f"Wind speed: {wind_speed} mph")
    return _join(parts)


def build_daily_forecast(
    conditions: Optional[str],
    high: Optional[int],
    low: Optional[int],
    precipitation_probability=None,
    unit: str = DEFAULT_TEMPERATURE_UNIT,
) -> str:
    """e.g. 'Slight rain. High: 62°F, Low: 48°F. Precipitation: 40%.'"""
    parts = [conditions or UNKNOWN_CONDITIONS]
    if high is not None and low is not None:
        parts.append(f"High: {high}{DEGREE}{unit}, Low: {low}{DEGREE}{unit}")
    if precipitation_probability is not None and precipitation_probability > 0:
        parts.append(f"Precipitation: {precipitation_probability}%")
    return _join(parts)


def build_extended_forecast(daily: Optional[dict[str, Any]]) -> tuple[DailyEntry, ...]:
    """
    One DailyEntry per date in the daily series, in series order.

    Dates that do not parse are logged and skipped, so the result can be
    shorter than the series.
    """
    if not daily or not daily.get("time"):
        return ()

    entries = []
    for index, raw_date in enumerate(daily["time"]):
        entry = _build_daily_entry(daily, index, raw_date)
        if entry is not None:
            entries.append(entry)
    return tuple(entries)


def _build_daily_entry(
    daily: dict[str, Any], index: int, raw_date: Any
) -> Optional[DailyEntry]:
    day = _parse_date(raw_date)
    if day is None:
        return None

    high = round_degrees(_at(daily.get("temperature_2m_max"), index))
    low = round_degrees(_at(daily.get("temperature_2m_min"), index))
    conditions = description_for(_at(daily.get("weather_code"), index))
    precipitation = _at(daily.get("precipitation_probability_max"), index)

    return DailyEntry(
        day_label=TODAY_LABEL if index == 0 else day.strftime(DAY_FORMAT),
        date_label=day.strftime(DATE_FORMAT),
        high=high,
        low=low,
        short_forecast=conditions,
        detailed_forecast=build_daily_forecast(conditions, high, low, precipitation),
        precipitation_probability=precipitation,
    )


def _parse_date(raw_date: Any) -> Optional[date]:
    try:
        return date.fromisoformat(str(raw_date))
    except ValueError as e:
        logger.error(f"Failed to parse date '{raw_date}': {e}")
        return None


def _at(values: Optional[Sequence[Any]], index: int) -> Any:
    if not values or index >= len(values):
        return None
    return values[index]


def _join(parts: list[str]) -> str:
    return f"{'. '.join(parts)}."
