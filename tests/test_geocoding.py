"""Tests for the geocoding client."""

import httpx
import pytest

from forecaster.datasource.geocoding import GeocodingClient, extract_postal_code
from forecaster.services.circuit_breaker import CircuitState
from forecaster.services.errors import ErrorKind
from tests.conftest import connect_error, timeout_error


@pytest.fixture
def geocoder(service_client) -> GeocodingClient:
    return GeocodingClient(service_client)


def _trip(geocoder: GeocodingClient) -> None:
    for _ in range(5):
        geocoder.circuit_breaker.record_failure()
    assert geocoder.circuit_breaker.state == CircuitState.OPEN


class TestInputValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("address", ["", "   ", None])
    async def test_blank_address_makes_no_call(self, geocoder, upstream, address):
        result = await geocoder.resolve(address)

        assert not result.ok
        assert result.kind == ErrorKind.INVALID_INPUT
        assert upstream.calls == []

    @pytest.mark.asyncio
    async def test_blank_check_precedes_open_circuit(self, geocoder, upstream):
        _trip(geocoder)

        result = await geocoder.resolve("  ")

        assert result.kind == ErrorKind.INVALID_INPUT


class TestLookup:
    @pytest.mark.asyncio
    async def test_resolves_first_match(self, geocoder, upstream, ny_geocode_payload):
        upstream.on("/search", ny_geocode_payload)

        result = await geocoder.resolve("New York, NY")

        assert result.ok
        location = result.data
        assert location.latitude == 40.7128
        assert location.longitude == -74.0060
        assert location.postal_code == "10001"
        assert location.formatted_address == "New York, NY 10001, USA"

        request = upstream.calls[0]
        assert request.url.host == "geo.test"
        assert request.url.params["q"] == "New York, NY"
        assert request.url.params["format"] == "jsonv2"

    @pytest.mark.asyncio
    async def test_uses_upstream_order_without_reranking(self, geocoder, upstream):
        upstream.on(
            "/search",
            [
                {"lat": "47.6062", "lon": "-122.3321", "display_name": "Seattle, WA"},
                {"lat": "40.7128", "lon": "-74.0060", "display_name": "New York, NY"},
            ],
        )

        result = await geocoder.resolve("Seattle")

        assert result.data.formatted_address == "Seattle, WA"
        assert result.data.postal_code == "unknown"

    @pytest.mark.asyncio
    async def test_no_match_is_not_found(self, geocoder, upstream):
        upstream.on("/search", [])

        result = await geocoder.resolve("Nowhere at all")

        assert result.kind == ErrorKind.NOT_FOUND
        assert upstream.calls_to("/search") == 1
        assert geocoder.circuit_breaker.get_status()["failures_in_window"] == 0

    @pytest.mark.asyncio
    async def test_malformed_candidate_is_invalid_response(self, geocoder, upstream):
        upstream.on("/search", [{"display_name": "no coordinates"}])

        result = await geocoder.resolve("Somewhere")

        assert result.kind == ErrorKind.INVALID_RESPONSE


class TestPostalCode:
    def test_dedicated_field_wins(self):
        candidate = {"postcode": "20500", "address": {"postcode": "99999"}}
        assert extract_postal_code(candidate) == "20500"

    def test_falls_back_to_nested_address(self):
        assert extract_postal_code({"address": {"postcode": "98101"}}) == "98101"

    def test_missing_everywhere_is_unknown(self):
        assert extract_postal_code({"address": {"city": "Paris"}}) == "unknown"
        assert extract_postal_code({}) == "unknown"


class TestResilience:
    @pytest.mark.asyncio
    async def test_timeouts_are_retried_then_reported(self, geocoder, upstream, sleep):
        upstream.on("/search", timeout_error())

        result = await geocoder.resolve("New York, NY")

        assert result.kind == ErrorKind.TIMEOUT
        assert upstream.calls_to("/search") == 3
        assert sleep.delays == [0.5, 1.0]
        # Three attempts count as a single breaker failure
        assert geocoder.circuit_breaker.get_status()["failures_in_window"] == 1

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(
        self, geocoder, upstream, ny_geocode_payload
    ):
        upstream.on("/search", connect_error(), ny_geocode_payload)

        result = await geocoder.resolve("New York, NY")

        assert result.ok
        assert upstream.calls_to("/search") == 2

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_to_fetch_failed(self, geocoder, upstream):
        upstream.on("/search", httpx.Response(502))

        result = await geocoder.resolve("New York, NY")

        assert result.kind == ErrorKind.FETCH_FAILED
        assert upstream.calls_to("/search") == 3

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, geocoder, upstream):
        upstream.on("/search", httpx.Response(403))

        result = await geocoder.resolve("New York, NY")

        assert result.kind == ErrorKind.INVALID_REQUEST
        assert upstream.calls_to("/search") == 1

    @pytest.mark.asyncio
    async def test_open_circuit_skips_upstream(self, geocoder, upstream):
        _trip(geocoder)

        result = await geocoder.resolve("New York, NY")

        assert result.kind == ErrorKind.SERVICE_UNAVAILABLE
        assert upstream.calls == []

    @pytest.mark.asyncio
    async def test_repeated_outage_trips_breaker(self, geocoder, upstream):
        upstream.on("/search", connect_error())

        for _ in range(5):
            await geocoder.resolve("New York, NY")
        calls_before = len(upstream.calls)

        result = await geocoder.resolve("New York, NY")

        assert result.kind == ErrorKind.SERVICE_UNAVAILABLE
        assert len(upstream.calls) == calls_before

    @pytest.mark.asyncio
    async def test_weather_outage_leaves_geocoding_closed(
        self, geocoder, service_client, upstream, ny_geocode_payload
    ):
        weather = service_client.circuit_breaker("weather_api")
        for _ in range(5):
            weather.record_failure()
        upstream.on("/search", ny_geocode_payload)

        result = await geocoder.resolve("New York, NY")

        assert result.ok
