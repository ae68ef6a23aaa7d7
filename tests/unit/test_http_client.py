"""Unit tests for providers/http.py."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from config.settings import ProviderConfig
from core.exceptions import (
    ProviderAuthError,
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from core.telemetry import get_cache_stats, init_cache_stats
from providers.http import USER_AGENT, ProviderHttpClient


def make_response(status_code=200, payload=None, headers=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.headers = headers or {}
    resp.json = MagicMock(return_value=payload if payload is not None else {})
    return resp


@pytest.fixture
def client():
    config = ProviderConfig(name="discogs", enabled=True, api_key="test-token", max_retries=2)
    return ProviderHttpClient(config, "https://api.example.test", headers={"X-Test": "1"})


def attach(client, *responses, side_effect=None):
    mock_client = AsyncMock()
    mock_client.request = AsyncMock(side_effect=side_effect or list(responses))
    client._client = mock_client
    return mock_client


# ---------------------------------------------------------------------------
# Client lifecycle
# ---------------------------------------------------------------------------


class TestClientLifecycle:
    @pytest.mark.asyncio
    async def test_get_client_creates_once(self, client):
        http_client = await client._get_client()
        assert http_client is await client._get_client()
        assert http_client.headers["User-Agent"] == USER_AGENT
        assert http_client.headers["X-Test"] == "1"
        await client.close()

    @pytest.mark.asyncio
    async def test_close(self, client):
        await client._get_client()
        await client.close()
        assert client._client is None

    @pytest.mark.asyncio
    async def test_close_without_client(self, client):
        await client.close()  # Should not raise


# ---------------------------------------------------------------------------
# request
# ---------------------------------------------------------------------------


class TestRequest:
    @pytest.mark.asyncio
    async def test_success(self, client):
        resp = make_response()
        mock_client = attach(client, resp)

        assert await client.request("GET", "/search", params={"q": "x"}) is resp
        mock_client.request.assert_awaited_once_with(
            "GET", "/search", params={"q": "x"}, data=None, headers=None, auth=None
        )

    @pytest.mark.asyncio
    async def test_429_retry(self, client):
        attach(client, make_response(429), make_response(200))

        with patch("providers.http.asyncio.sleep", new_callable=AsyncMock) as sleep:
            resp = await client.request("GET", "/search")
        assert resp.status_code == 200
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_retry_after_header_respected(self, client):
        attach(client, make_response(429, headers={"Retry-After": "3"}), make_response(200))

        with patch("providers.http.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await client.request("GET", "/search")
        sleep.assert_awaited_once_with(3.0)

    @pytest.mark.asyncio
    async def test_max_retries_exhausted(self, client):
        mock_client = AsyncMock()
        mock_client.request = AsyncMock(return_value=make_response(429))
        client._client = mock_client

        with patch("providers.http.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(ProviderResponseError, match="max retries"):
                await client.request("GET", "/search", max_retries=1)
        assert mock_client.request.await_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_errors(self, client, status):
        attach(client, make_response(status))
        with pytest.raises(ProviderAuthError):
            await client.request("GET", "/search")

    @pytest.mark.asyncio
    async def test_server_error(self, client):
        attach(client, make_response(503))
        with pytest.raises(ProviderResponseError) as exc_info:
            await client.request("GET", "/search")
        assert exc_info.value.details["status"] == 503

    @pytest.mark.asyncio
    async def test_404_returned(self, client):
        attach(client, make_response(404))
        resp = await client.request("GET", "/artists/1")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_timeout(self, client):
        attach(client, side_effect=httpx.ReadTimeout("slow"))
        with pytest.raises(ProviderTimeoutError):
            await client.request("GET", "/search")

    @pytest.mark.asyncio
    async def test_request_error(self, client):
        attach(client, side_effect=httpx.ConnectError("fail"))
        with pytest.raises(ProviderError):
            await client.request("GET", "/search")

    @pytest.mark.asyncio
    async def test_records_api_call_stats(self, client):
        init_cache_stats()
        attach(client, make_response(200))

        await client.request("GET", "/search")

        stats = get_cache_stats()
        assert stats["api_calls"] == 1
        assert stats["api_time_ms"] >= 0


# ---------------------------------------------------------------------------
# get_json
# ---------------------------------------------------------------------------


class TestGetJson:
    @pytest.mark.asyncio
    async def test_returns_payload(self, client):
        attach(client, make_response(payload={"results": []}))
        assert await client.get_json("/search") == {"results": []}

    @pytest.mark.asyncio
    async def test_404_returns_none(self, client):
        attach(client, make_response(404))
        assert await client.get_json("/artists/1") is None

    @pytest.mark.asyncio
    async def test_malformed_json(self, client):
        resp = make_response()
        resp.json = MagicMock(side_effect=ValueError("Expecting value"))
        attach(client, resp)

        with pytest.raises(ProviderResponseError, match="malformed JSON"):
            await client.get_json("/search")

    @pytest.mark.asyncio
    async def test_non_object_payload(self, client):
        attach(client, make_response(payload=["not", "an", "object"]))
        with pytest.raises(ProviderResponseError, match="unexpected payload"):
            await client.get_json("/search")
