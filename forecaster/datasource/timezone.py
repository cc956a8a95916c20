"""
Timezone data source: requester IP to a display timezone.

Best effort. resolve() never raises and never returns a failure; every
problem degrades to a UTC result.

Longitude fallback bands only cover the continental US:

    lon > -75   America/New_York
    lon > -90   America/Chicago
    lon > -115  America/Denver
    lon > -130  America/Los_Angeles
    otherwise   UTC
"""

import ipaddress
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger

from forecaster.datasource.base import BaseDataSource
from forecaster.models import DEFAULT_TIMEZONE, TimezoneResult
from forecaster.services.retry import RetryPolicy

TIMEZONE_EASTERN = "America/New_York"
TIMEZONE_CENTRAL = "America/Chicago"
TIMEZONE_MOUNTAIN = "America/Denver"
TIMEZONE_PACIFIC = "America/Los_Angeles"

LONGITUDE_BANDS = [
    (-75, TIMEZONE_EASTERN),
    (-90, TIMEZONE_CENTRAL),
    (-115, TIMEZONE_MOUNTAIN),
    (-130, TIMEZONE_PACIFIC),
]

LOCAL_NETWORKS = [
    ipaddress.ip_network("127.0.0.1/32"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("192.168.0.0/16"),
]


def is_local_or_private(ip_address: str) -> bool:
    """Loopback or one of the private ranges we never send upstream."""
    address = ipaddress.ip_address(ip_address.strip())
    return any(address in network for network in LOCAL_NETWORKS)


def timezone_from_longitude(longitude: float | None) -> str:
    if longitude is None:
        return DEFAULT_TIMEZONE
    for boundary, timezone in LONGITUDE_BANDS:
        if longitude > boundary:
            return timezone
    return DEFAULT_TIMEZONE


def is_valid_timezone(name: Any) -> bool:
    if not isinstance(name, str) or not name:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        # Directory names such as "America" raise IsADirectoryError
        return False
    return True


class TimezoneResolver(BaseDataSource):
    """IP geolocation lookup used only to pick a display timezone."""

    SERVICE_ID = "timezone_api"
    LABEL = "Timezone API"

    def retry_policy(self) -> RetryPolicy:
        # Not worth long retries: the answer is advisory
        settings = self.client.settings
        return self.client.retry_policy(
            self.LABEL,
            max_tries=settings.timezone_max_tries,
            max_interval=settings.timezone_max_interval,
        )

    async def resolve(self, ip_address: str | None) -> TimezoneResult:
        try:
            if not ip_address or is_local_or_private(ip_address):
                return TimezoneResult()
        except ValueError:
            logger.warning(f"Not an IP address: '{ip_address}', using default timezone")
            return TimezoneResult()

        if self.circuit_open():
            logger.warning("Timezone API circuit breaker is OPEN, using default timezone")
            return TimezoneResult()

        try:
            payload = await self.request_json(
                f"{self.client.settings.timezone_base_url}/{ip_address.strip()}/json/"
            )
            return self._build_result(payload)
        except Exception as e:
            logger.warning(f"Timezone lookup failed for {ip_address}: {e}")
            return TimezoneResult()

    def _build_result(self, payload: Any) -> TimezoneResult:
        if not isinstance(payload, dict) or not payload or payload.get("error"):
            return TimezoneResult()

        return TimezoneResult(
            timezone=self._extract_timezone(payload),
            city=payload.get("city") or None,
            state=payload.get("region") or payload.get("regionName") or None,
            country=payload.get("country_name") or payload.get("country") or None,
            country_code=payload.get("country_code")
            or payload.get("countryCode")
            or None,
        )

    def _extract_timezone(self, payload: dict[str, Any]) -> str:
        # Providers disagree on where the zone name lives
        location = payload.get("location")
        nested = None
        if isinstance(location, dict) and isinstance(location.get("time_zone"), dict):
            nested = location["time_zone"].get("name")

        timezone = payload.get("timezone") or nested or payload.get("time_zone")
        if is_valid_timezone(timezone):
            return timezone

        return timezone_from_longitude(_longitude(payload))


def _longitude(payload: dict[str, Any]) -> float | None:
    for key in ("longitude", "lon"):
        if payload.get(key) is not None:
            return float(payload[key])

    loc = payload.get("loc")
    if isinstance(loc, str) and "," in loc:
        return float(loc.split(",", 1)[1])

    return None
