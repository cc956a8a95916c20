"""Display formatters and user-facing messages."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from forecaster.services.errors import ErrorKind

NOT_AVAILABLE = "N/A"
DEGREE = "°"

USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.INVALID_INPUT: "Please enter an address to search for.",
    ErrorKind.INVALID_COORDINATES: "The location returned invalid coordinates.",
    ErrorKind.NOT_FOUND: "We couldn't find that address. Please try another search.",
    ErrorKind.SERVICE_UNAVAILABLE: (
        "The service is temporarily unavailable. Please try again in a few minutes."
    ),
    ErrorKind.TIMEOUT: "The request took too long. Please try again.",
    ErrorKind.INVALID_RESPONSE: "We received invalid weather data. Please try again later.",
    ErrorKind.INVALID_REQUEST: "The weather service could not process this location.",
    ErrorKind.FETCH_FAILED: "We're having trouble getting weather data right now.",
    ErrorKind.RETRIEVAL_FAILED: "Unable to retrieve the forecast. Please try again later.",
}


def user_message(kind: ErrorKind) -> str:
    """Short, stable message for an error kind."""
    return USER_MESSAGES.get(kind, USER_MESSAGES[ErrorKind.RETRIEVAL_FAILED])


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a person would: 72.5 -> 73, not banker's rounding."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_degrees(value: Optional[float]) -> Optional[int]:
    """Whole-degree value, or None if missing."""
    if value is None:
        return None
    return int(round_half_up(value))


def format_temperature(value, unit: str = "F") -> str:
    """Format a temperature for display, e.g. 73°F."""
    if value is None or value == NOT_AVAILABLE:
        return NOT_AVAILABLE
    return f"{value}{DEGREE}{unit}"


def format_city(
    city: Optional[str],
    state: Optional[str] = None,
    country: Optional[str] = None,
    country_code: Optional[str] = None,
) -> Optional[str]:
    """Format a city label from an IP lookup.

    Examples:
        Seattle, WA
        Paris, France
        Springfield
    """
    if not city:
        return None

    if country_code == "US" and state:
        return f"{city}, {state}"
    elif country:
        return f"{city}, {country}"
    return city
