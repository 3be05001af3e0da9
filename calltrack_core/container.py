"""
Resilience Layer
================
Composition root wiring the reporter, monitor, breaker registry, shared
store and rate limiters together once per process.

Usage (FastAPI):
    layer = ResilienceLayer(ResilienceSettings.from_env())

    @asynccontextmanager
    async def lifespan(app):
        await layer.start()
        yield
        await layer.aclose()

    firestore = layer.service_client("firestore", FIRESTORE_REST_URL)
    app.add_middleware(RateLimitMiddleware, limiter=layer.api_rate_limiter)
"""

from typing import Any, List, Optional

import httpx
import structlog

from .cache.cache import Cache
from .cache.store import KeyValueStore, RedisStore
from .circuit_breaker.registry import BreakerRegistry
from .config import ResilienceSettings
from .errors.reporting import ErrorReporter, LoggingErrorReporter, flush_reports
from .http.client import ExternalServiceClient
from .http.config import ServiceConfig
from .monitoring.monitor import PerformanceMonitor
from .rate_limit.limiter import (
    RateLimiter,
    create_api_rate_limiter,
    create_auth_rate_limiter,
)

logger = structlog.get_logger(__name__)


class ResilienceLayer:
    """Owns every shared resilience component and its background tasks."""

    def __init__(
        self,
        settings: Optional[ResilienceSettings] = None,
        store: Optional[KeyValueStore] = None,
        reporter: Optional[ErrorReporter] = None,
    ):
        self.settings = settings or ResilienceSettings.from_env()
        self.reporter = reporter if reporter is not None else LoggingErrorReporter()
        self.monitor = PerformanceMonitor(reporter=self.reporter)
        self.breakers = BreakerRegistry(
            monitor=self.monitor,
            reporter=self.reporter,
            default_config=self.settings.breaker_config(),
        )
        self.store = (
            store if store is not None
            else RedisStore.from_url(self.settings.redis_url)
        )
        self.cache = Cache(self.store, reporter=self.reporter)

        self.api_rate_limiter: RateLimiter = create_api_rate_limiter(
            self.store,
            reporter=self.reporter,
            max_requests=self.settings.api_rate_limit,
            window_ms=self.settings.api_rate_window_ms,
        )
        self.auth_rate_limiter: RateLimiter = create_auth_rate_limiter(
            self.store,
            reporter=self.reporter,
            max_requests=self.settings.auth_rate_limit,
            window_ms=self.settings.auth_rate_window_ms,
        )

        self._clients: List[ExternalServiceClient] = []
        self._started = False

    def service_client(
        self,
        name: str,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        **kwargs: Any,
    ) -> ExternalServiceClient:
        """
        Create a client for a named dependency sharing this layer's breaker
        registry, monitor and reporter.
        """
        config = ServiceConfig(
            name=name,
            base_url=base_url,
            timeout=self.settings.timeout,
            retry=self.settings.retry_config(),
            circuit_breaker=self.settings.breaker_config(),
        )
        service = ExternalServiceClient(
            config,
            registry=self.breakers,
            monitor=self.monitor,
            reporter=self.reporter,
            client=client,
            **kwargs,
        )
        self._clients.append(service)
        if self._started:
            service.circuit_breaker.start_monitoring()
        return service

    async def start(self) -> None:
        """Start breaker health checks and metric eviction."""
        self.monitor.start_cleanup()
        self.breakers.start_all()
        self._started = True
        logger.info(
            "resilience_layer_started",
            service=self.settings.service_name,
            breakers=self.breakers.names(),
        )

    async def aclose(self) -> None:
        """Stop every background task and release connections."""
        for service in self._clients:
            await service.aclose()
        self._clients.clear()
        await self.breakers.stop_all()
        await self.monitor.stop_cleanup()
        await flush_reports()
        close = getattr(self.store, "aclose", None)
        if close is not None:
            await close()
        self._started = False
        logger.info("resilience_layer_stopped", service=self.settings.service_name)

    async def __aenter__(self) -> "ResilienceLayer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.aclose()
        return False
