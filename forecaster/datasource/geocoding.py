"""
Geocoding data source: free-text address to coordinates and postal code.

Speaks the Nominatim search API (no API key required). Any service that
returns a JSON list of candidates with lat/lon, an optional postal code and
an optional nested address block works.
"""

from typing import Any

from loguru import logger

from forecaster.datasource.base import BaseDataSource
from forecaster.models import UNKNOWN_POSTAL_CODE, GeocodeResult
from forecaster.services.errors import (
    CircuitOpenError,
    InvalidInputError,
    InvalidResponseError,
    NotFoundError,
    ServiceError,
)
from forecaster.services.result import ServiceResult
from forecaster.services.retry import RetryPolicy


class GeocodingClient(BaseDataSource):
    """Resolves an address to its first (most relevant) upstream match."""

    SERVICE_ID = "geocoding_api"
    LABEL = "Geocoding API"

    def retry_policy(self) -> RetryPolicy:
        settings = self.client.settings
        return self.client.retry_policy(
            self.LABEL,
            max_tries=settings.geocoding_max_tries,
            max_interval=settings.geocoding_max_interval,
        )

    async def resolve(self, address: str | None) -> ServiceResult[GeocodeResult]:
        # Blank before breaker
        if address is None or not address.strip():
            return ServiceResult.failure(
                InvalidInputError("Address is blank", service_id=self.SERVICE_ID)
            )

        if self.circuit_open():
            logger.warning("Geocoding API circuit breaker is OPEN")
            return ServiceResult.failure(
                CircuitOpenError(
                    self.SERVICE_ID, self.circuit_breaker.get_time_until_reset() or 0
                )
            )

        try:
            candidates = await self.request_json(
                f"{self.client.settings.geocoding_base_url}/search",
                params={
                    "q": address.strip(),
                    "format": "jsonv2",
                    "addressdetails": 1,
                    "limit": 1,
                },
            )
            return ServiceResult.success(self._first_match(candidates))
        except ServiceError as e:
            logger.error(f"Geocoding failed for '{address}': {e}")
            return ServiceResult.failure(e)

    def _first_match(self, candidates: Any) -> GeocodeResult:
        if not isinstance(candidates, list):
            raise InvalidResponseError(
                "Geocoding response is not a list", service_id=self.SERVICE_ID
            )
        if not candidates:
            raise NotFoundError("No geocoding match", service_id=self.SERVICE_ID)

        first = candidates[0]
        try:
            return GeocodeResult(
                latitude=float(first["lat"]),
                longitude=float(first["lon"]),
                postal_code=extract_postal_code(first),
                formatted_address=first.get("display_name"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError(
                f"Malformed geocoding candidate: {e}", service_id=self.SERVICE_ID
            ) from e


def extract_postal_code(candidate: dict[str, Any]) -> str:
    """Dedicated field, then nested address block, then the sentinel."""
    for key in ("postal_code", "postcode"):
        if candidate.get(key):
            return str(candidate[key])

    address = candidate.get("address")
    if isinstance(address, dict) and address.get("postcode"):
        return str(address["postcode"])

    return UNKNOWN_POSTAL_CODE
