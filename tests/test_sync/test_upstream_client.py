"""Tests for the upstream provider client.

Uses httpx.MockTransport so no network calls are made, and an injected sleep
so backoff delays are recorded instead of waited.
"""
import asyncio

import httpx
import pytest

from app.services.core.upstream_client import UpstreamClient, is_retryable
from app.services.sync.errors import (
    UpstreamHttpError,
    UpstreamNotConfigured,
    UpstreamTimeout,
    UpstreamTransportError,
)


def _client(handler, timeout_seconds=0.05, max_attempts=3, **kwargs):
    delays = []

    async def sleep(seconds):
        delays.append(seconds)

    client = UpstreamClient(
        base_url="http://upstream.test",
        api_key="secret-key",
        timeout_seconds=timeout_seconds,
        max_attempts=max_attempts,
        initial_delay=2.0,
        max_delay=30.0,
        jitter=False,
        transport=httpx.MockTransport(handler),
        sleep=sleep,
        **kwargs,
    )
    return client, delays


class TestFetchMarket:
    """Test suite for successful provider calls."""

    @pytest.mark.asyncio
    async def test_returns_matches_and_total(self):
        """Should send the query and return matches with total_count."""
        seen = {}

        def handler(request):
            seen["url"] = request.url
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"matches": [{"id": "1"}], "total_count": 12})

        client, _ = _client(handler)
        data = await client.fetch_market(status="live", limit=5, mode="lite", include_v2=False)
        await client.close()

        assert data == {"matches": [{"id": "1"}], "total_count": 12}
        assert seen["url"].path == "/market"
        assert seen["url"].params["status"] == "live"
        assert seen["url"].params["include_v2"] == "false"
        assert "match_id" not in seen["url"].params
        assert seen["auth"] == "Bearer secret-key"

    @pytest.mark.asyncio
    async def test_missing_matches_list(self):
        """Should normalize a body without a matches list."""
        client, _ = _client(lambda request: httpx.Response(200, json={"matches": None}))
        data = await client.fetch_market()
        await client.close()
        assert data == {"matches": [], "total_count": 0}


class TestRetries:
    """Test suite for retry behaviour and error classification."""

    @pytest.mark.asyncio
    async def test_each_attempt_has_its_own_timeout(self):
        """Should time out the first attempt and still succeed on the second."""
        calls = []

        async def handler(request):
            calls.append(request.extensions.get("timeout"))
            if len(calls) == 1:
                await asyncio.sleep(1)
            return httpx.Response(200, json={"matches": [], "total_count": 0})

        client, delays = _client(handler)
        data = await client.fetch_market(match_id="42")
        await client.close()

        assert data["matches"] == []
        assert len(calls) == 2
        assert calls[0] is not calls[1]
        assert delays == [2.0]

    @pytest.mark.asyncio
    async def test_timeout_after_budget(self):
        """Should raise UpstreamTimeout after three timed-out attempts."""
        attempts = []

        async def handler(request):
            attempts.append(1)
            await asyncio.sleep(1)
            return httpx.Response(200, json={})

        client, delays = _client(handler)
        with pytest.raises(UpstreamTimeout) as exc_info:
            await client.fetch_market(match_id="42")
        await client.close()

        assert len(attempts) == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.error_type == "api_timeout"
        assert delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_http_error(self):
        """Should classify non-2xx responses as UpstreamHttpError."""
        client, _ = _client(lambda request: httpx.Response(503, json={"error": "down"}))
        with pytest.raises(UpstreamHttpError) as exc_info:
            await client.fetch_market()
        await client.close()
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_transport_error(self):
        """Should classify connection failures as UpstreamTransportError."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = _client(handler, max_attempts=2)
        with pytest.raises(UpstreamTransportError):
            await client.fetch_market()
        await client.close()

    @pytest.mark.asyncio
    async def test_unreadable_body(self):
        """Should treat a non-JSON body as a transport error."""
        client, _ = _client(lambda request: httpx.Response(200, text="<html>"), max_attempts=1)
        with pytest.raises(UpstreamTransportError):
            await client.fetch_market()
        await client.close()

    @pytest.mark.asyncio
    async def test_not_configured_is_not_retried(self):
        """Should fail immediately without a base URL."""
        client = UpstreamClient(base_url="")
        assert client.configured is False
        with pytest.raises(UpstreamNotConfigured):
            await client.fetch_market()
        assert is_retryable(UpstreamNotConfigured("x")) is False
        assert is_retryable(UpstreamTimeout("x")) is True


class TestPing:
    """Test suite for the health check ping."""

    @pytest.mark.asyncio
    async def test_ping_connected(self):
        """Should report a reachable provider."""
        client, _ = _client(lambda request: httpx.Response(200, json={"matches": []}))
        result = await client.ping()
        await client.close()
        assert result["status"] == "connected"

    @pytest.mark.asyncio
    async def test_ping_unreachable(self):
        """Should report the error type instead of raising."""
        client, delays = _client(lambda request: httpx.Response(500, json={}))
        result = await client.ping()
        await client.close()
        assert result["status"] == "unreachable"
        assert result["error_type"] == "api_http_error"
        assert delays == []

    @pytest.mark.asyncio
    async def test_ping_not_configured(self):
        """Should report a missing configuration."""
        assert await UpstreamClient(base_url="").ping() == {"status": "not_configured"}
