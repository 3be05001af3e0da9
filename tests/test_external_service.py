"""
Tests for the resilient external service client.
"""

import json

import httpx
import pytest

from calltrack_core.circuit_breaker import (
    BreakerRegistry,
    CircuitBreakerConfig,
    CircuitOpenError,
    CircuitState,
)
from calltrack_core.errors import RequestFailedError, flush_reports
from calltrack_core.http import ExternalServiceClient, RetryConfig, ServiceConfig

BASE_URL = "https://firestore.example.test"


class FakeSleep:
    """Records backoff delays instead of sleeping."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class Recorder:
    """Transport handler returning queued responses and recording requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        # Fresh copy so the last response can be served repeatedly
        return httpx.Response(
            response.status_code,
            headers=response.headers,
            content=response.content,
        )


def _client(handler, reporter=None, registry=None, **config):
    sleep = FakeSleep()
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
    service = ExternalServiceClient(
        ServiceConfig(name="firestore", base_url=BASE_URL, **config),
        registry=registry,
        reporter=reporter,
        client=http,
        sleep=sleep,
    )
    return service, sleep


class TestRetries:
    """Tests for retrying inside the breaker call."""

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, reporter):
        """Two failures then success: one logical success for the breaker."""
        handler = Recorder(
            httpx.Response(503),
            httpx.Response(503),
            httpx.Response(200, json={"agents": ["a1"]}),
        )
        client, sleep = _client(handler, reporter=reporter)

        result = await client.get("/agents")
        await flush_reports()

        assert result == {"agents": ["a1"]}
        assert len(handler.requests) == 3
        assert sleep.delays == [1.0, 2.0]

        stats = client.get_stats()
        assert stats.successes == 1
        assert stats.failures == 0

        retries = reporter.with_action("firestore_request_retry")
        assert [meta["attempt"] for _, meta in retries] == [1, 2]
        assert [meta["backoff"] for _, meta in retries] == [1.0, 2.0]
        assert all(meta["path"] == "/agents" for _, meta in retries)

    @pytest.mark.asyncio
    async def test_exhausted_retries_count_as_one_failure(self):
        handler = Recorder(httpx.Response(503, text="unavailable"))
        client, _ = _client(handler)

        with pytest.raises(RequestFailedError) as exc_info:
            await client.get("/agents")

        error = exc_info.value
        assert error.status_code == 503
        assert error.service_name == "firestore"
        assert error.details == "unavailable"
        assert str(error) == "[firestore] HTTP error! status: 503 (Status: 503)"
        assert len(handler.requests) == 3
        assert client.get_stats().failures == 1

    @pytest.mark.asyncio
    async def test_client_errors_are_retried_too(self):
        handler = Recorder(httpx.Response(404))
        client, _ = _client(handler)

        with pytest.raises(RequestFailedError) as exc_info:
            await client.get("/agents/missing")

        assert exc_info.value.status_code == 404
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_backoff_is_capped(self):
        handler = Recorder(httpx.Response(500))
        client, sleep = _client(
            handler,
            retry=RetryConfig(max_attempts=5, backoff=4.0, max_backoff=10.0),
        )

        with pytest.raises(RequestFailedError):
            await client.get("/agents")

        assert sleep.delays == [4.0, 8.0, 10.0, 10.0]

    @pytest.mark.asyncio
    async def test_retries_override(self):
        handler = Recorder(httpx.Response(500))
        client, sleep = _client(handler, retries=1)

        with pytest.raises(RequestFailedError):
            await client.get("/agents")

        assert len(handler.requests) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_transport_error_wrapped_and_chained(self):
        handler = Recorder(httpx.ConnectError("connection refused"))
        client, _ = _client(handler, retries=1)

        with pytest.raises(RequestFailedError) as exc_info:
            await client.get("/agents")

        assert exc_info.value.status_code is None
        assert "connection refused" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestRequests:
    """Tests for request shaping and response decoding."""

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self):
        handler = Recorder(httpx.Response(201, json={"id": "call-1"}))
        client, _ = _client(handler)

        result = await client.post("/calls", {"agent": "a1", "duration": 320})

        [request] = handler.requests
        assert result == {"id": "call-1"}
        assert request.method == "POST"
        assert request.url.path == "/calls"
        assert request.headers["content-type"] == "application/json"
        assert request.headers["accept"] == "application/json"
        assert json.loads(request.content) == {"agent": "a1", "duration": 320}

    @pytest.mark.asyncio
    async def test_put_and_delete(self):
        handler = Recorder(httpx.Response(200, json={"ok": True}))
        client, _ = _client(handler)

        await client.put("/calls/1", {"status": "closed"})
        await client.delete("/calls/1")

        assert [r.method for r in handler.requests] == ["PUT", "DELETE"]
        assert json.loads(handler.requests[0].content) == {"status": "closed"}

    @pytest.mark.asyncio
    async def test_caller_headers_override_defaults(self):
        handler = Recorder(httpx.Response(200, json={}))
        client, _ = _client(handler)

        await client.get("/agents", headers={"Accept": "text/csv", "X-Agency": "42"})

        [request] = handler.requests
        assert request.headers["accept"] == "text/csv"
        assert request.headers["x-agency"] == "42"
        assert request.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_empty_response_returns_none(self):
        handler = Recorder(httpx.Response(204))
        client, _ = _client(handler)

        assert await client.delete("/calls/1") is None


class TestBreakerIntegration:
    """Tests for the client's circuit breaker."""

    @pytest.mark.asyncio
    async def test_opens_after_logical_failures(self):
        handler = Recorder(httpx.Response(500))
        client, _ = _client(
            handler,
            retries=1,
            circuit_breaker=CircuitBreakerConfig(failure_threshold=2),
        )

        for _ in range(2):
            with pytest.raises(RequestFailedError):
                await client.get("/agents")

        with pytest.raises(CircuitOpenError):
            await client.get("/agents")

        assert client.get_stats().state is CircuitState.OPEN
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_timeout_comes_from_service_config(self):
        client, _ = _client(Recorder(httpx.Response(200)), timeout=2.5)

        assert client.circuit_breaker.config.timeout == 2.5

    @pytest.mark.asyncio
    async def test_shares_registry_breaker(self):
        registry = BreakerRegistry()
        handler = Recorder(httpx.Response(200, json={}))
        first, _ = _client(handler, registry=registry)
        second, _ = _client(handler, registry=registry)

        assert first.circuit_breaker is second.circuit_breaker
        assert registry.names() == ["firestore"]


class TestLifecycle:
    """Tests for starting and closing the client."""

    @pytest.mark.asyncio
    async def test_context_manager_monitors_and_keeps_injected_client(self):
        http = httpx.AsyncClient(
            transport=httpx.MockTransport(Recorder(httpx.Response(200, json={}))),
            base_url=BASE_URL,
        )
        config = ServiceConfig(name="firestore", base_url=BASE_URL)

        async with ExternalServiceClient(config, client=http) as client:
            assert client.circuit_breaker.is_monitoring

        assert not client.circuit_breaker.is_monitoring
        assert not http.is_closed
        await http.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_closed(self):
        client = ExternalServiceClient(ServiceConfig(name="firestore", base_url=BASE_URL))

        await client.aclose()

        assert client.client.is_closed
