"""
Tests for settings and the resilience layer composition root.
"""

import httpx
import pytest

from calltrack_core import ResilienceLayer, ResilienceSettings
from calltrack_core.cache import InMemoryStore
from calltrack_core.errors import LoggingErrorReporter


class TestResilienceSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        settings = ResilienceSettings.from_env({})

        assert settings.failure_threshold == 5
        assert settings.reset_timeout == 60.0
        assert settings.monitor_interval == 15.0
        assert settings.timeout == 5.0
        assert settings.retry_max_attempts == 3
        assert settings.api_rate_limit == 60
        assert settings.auth_rate_window_ms == 900_000

    def test_reads_environment(self):
        settings = ResilienceSettings.from_env({
            "SERVICE_NAME": "calltrack-api",
            "CB_FAILURE_THRESHOLD": "3",
            "CB_RESET_TIMEOUT": "30",
            "CB_TIMEOUT": "2.5",
            "RETRY_MAX_ATTEMPTS": "4",
            "RETRY_BACKOFF": "0.5",
            "API_RATE_LIMIT": "120",
        })

        assert settings.service_name == "calltrack-api"
        assert settings.breaker_config().failure_threshold == 3
        assert settings.breaker_config().reset_timeout == 30.0
        assert settings.breaker_config().timeout == 2.5
        assert settings.retry_config().max_attempts == 4
        assert settings.retry_config().backoff == 0.5
        assert settings.api_rate_limit == 120

    def test_invalid_number_raises(self):
        with pytest.raises(ValueError):
            ResilienceSettings.from_env({"CB_FAILURE_THRESHOLD": "many"})


def _layer(reporter=None, **settings):
    return ResilienceLayer(
        ResilienceSettings(**settings),
        store=InMemoryStore(),
        reporter=reporter,
    )


class TestResilienceLayer:
    """Tests for wiring and lifecycle."""

    def test_components_share_reporter_and_store(self, reporter):
        store = InMemoryStore()
        layer = ResilienceLayer(ResilienceSettings(), store=store, reporter=reporter)

        assert layer.store is store
        assert layer.breakers.monitor is layer.monitor
        assert layer.breakers.reporter is reporter
        assert layer.cache.store is layer.store
        assert layer.api_rate_limiter.store is layer.store
        assert layer.auth_rate_limiter.config.key_prefix == "auth:"

    @pytest.mark.asyncio
    async def test_breaker_calls_recorded_in_layer_monitor(self):
        layer = _layer()
        http = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
            base_url="https://firestore.example.test",
        )
        client = layer.service_client("firestore", "https://firestore.example.test", client=http)

        await client.get("/agents")

        assert len(layer.monitor.get_metrics(name="circuit_breaker_firestore")) == 1
        await layer.aclose()
        await http.aclose()

    def test_defaults_to_logging_reporter(self):
        assert isinstance(_layer().reporter, LoggingErrorReporter)

    @pytest.mark.asyncio
    async def test_service_clients_share_breakers(self):
        layer = _layer(failure_threshold=2, retry_max_attempts=1, timeout=1.5)

        first = layer.service_client("firestore", "https://firestore.example.test")
        second = layer.service_client("firestore", "https://firestore.example.test")

        assert first.circuit_breaker is second.circuit_breaker
        assert first.circuit_breaker.config.failure_threshold == 2
        assert first.circuit_breaker.config.timeout == 1.5
        assert first.retry_config.max_attempts == 1
        assert first.circuit_breaker.monitor is layer.monitor
        await layer.aclose()

    @pytest.mark.asyncio
    async def test_start_and_close_manage_background_tasks(self):
        layer = _layer()
        early = layer.service_client("firestore", "https://firestore.example.test")

        async with layer:
            late = layer.service_client("identity", "https://identity.example.test")
            assert early.circuit_breaker.is_monitoring
            assert late.circuit_breaker.is_monitoring
            assert layer.monitor.is_cleaning

        assert not early.circuit_breaker.is_monitoring
        assert not late.circuit_breaker.is_monitoring
        assert not layer.monitor.is_cleaning
        assert early.client.is_closed

    @pytest.mark.asyncio
    async def test_injected_http_client_left_open(self):
        layer = _layer()
        http = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
            base_url="https://firestore.example.test",
        )

        client = layer.service_client("firestore", "https://firestore.example.test", client=http)
        assert await client.get("/agents") == {}
        await layer.aclose()

        assert not http.is_closed
        await http.aclose()
