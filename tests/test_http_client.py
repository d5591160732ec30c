"""Tests for HTTP client retry logic and the fetch capability."""

import asyncio

import httpx
import pytest

from playercipher.core.errors import TransportFailure
from playercipher.core.http_client import (
    _MAX_BACKOFF,
    _NETWORK_ERRORS,
    _RETRYABLE_STATUS_CODES,
    HTTPClient,
)


def _client(handler, max_retries=0) -> HTTPClient:
    return HTTPClient(max_retries=max_retries, transport=httpx.MockTransport(handler))


async def _fetch(client: HTTPClient, url: str) -> bytes:
    async with client:
        return await client.fetch(url)


class TestRetryConfig:
    def test_retryable_status_codes(self):
        assert {429, 500, 502, 503, 504} <= _RETRYABLE_STATUS_CODES
        # Client errors (except 429) are NOT retried
        assert 403 not in _RETRYABLE_STATUS_CODES
        assert 404 not in _RETRYABLE_STATUS_CODES

    def test_max_backoff_is_capped(self):
        assert _MAX_BACKOFF == 30.0

    def test_network_error_types(self):
        error_names = {cls.__name__ for cls in _NETWORK_ERRORS}
        assert "TimeoutException" in error_names
        assert "ConnectError" in error_names
        assert "ReadError" in error_names


class TestBackoff:
    def test_attempt_0(self):
        wait = HTTPClient._backoff(0)
        assert 1.0 <= wait <= 2.0

    def test_caps_at_max(self):
        assert HTTPClient._backoff(100) <= _MAX_BACKOFF

    def test_retry_after_is_floor(self):
        response = httpx.Response(429, headers={"Retry-After": "12"})
        assert HTTPClient._backoff(0, response) >= 12.0


class TestClientInit:
    def test_default_headers_set(self):
        client = HTTPClient()
        assert "User-Agent" in client._default_headers

    def test_custom_headers_override(self):
        client = HTTPClient(headers={"X-Custom": "test"})
        assert client._default_headers["X-Custom"] == "test"


class TestFetch:
    def test_returns_body(self):
        client = _client(lambda request: httpx.Response(200, content=b"var a=1;"))
        assert asyncio.run(_fetch(client, "https://www.youtube.com/s/player/x/base.js")) == b"var a=1;"

    def test_http_error_status(self):
        client = _client(lambda request: httpx.Response(404))
        with pytest.raises(TransportFailure) as exc_info:
            asyncio.run(_fetch(client, "https://www.youtube.com/missing.js"))
        assert exc_info.value.url == "https://www.youtube.com/missing.js"
        assert exc_info.value.error_code == "player.download_failed"

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        with pytest.raises(TransportFailure):
            asyncio.run(_fetch(client, "https://www.youtube.com/base.js"))

    def test_retries_server_error(self, monkeypatch):
        async def no_sleep(_):
            return None

        monkeypatch.setattr(asyncio, "sleep", no_sleep)
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503)
            return httpx.Response(200, content=b"ok")

        client = _client(handler, max_retries=2)
        assert asyncio.run(_fetch(client, "https://www.youtube.com/base.js")) == b"ok"
        assert len(calls) == 2

    def test_gives_up_after_retries(self, monkeypatch):
        async def no_sleep(_):
            return None

        monkeypatch.setattr(asyncio, "sleep", no_sleep)
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        client = _client(handler, max_retries=2)
        with pytest.raises(TransportFailure):
            asyncio.run(_fetch(client, "https://www.youtube.com/base.js"))
        assert len(calls) == 3

    def test_client_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(403)

        client = _client(handler, max_retries=3)
        with pytest.raises(TransportFailure):
            asyncio.run(_fetch(client, "https://www.youtube.com/base.js"))
        assert len(calls) == 1
