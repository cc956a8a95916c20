"""Tests for the shared HTTP client."""

import pytest

from forecaster.services.client import ServiceClient


@pytest.mark.asyncio
async def test_default_http_client_timeouts(settings):
    client = ServiceClient(settings=settings)
    try:
        http = client._get_http_client()

        assert http.timeout.connect == 2
        assert http.timeout.read == 5
        assert http.headers["User-Agent"] == settings.user_agent
        assert client._get_http_client() is http
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_close_is_idempotent(settings):
    client = ServiceClient(settings=settings)
    client._get_http_client()

    await client.close()
    await client.close()
