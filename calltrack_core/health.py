"""
Health Check Router
===================
Health endpoints reporting shared store reachability and circuit states.
"""

import time
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import APIRouter, Response
from pydantic import BaseModel
import structlog

from .cache.cache import Cache
from .circuit_breaker.models import CircuitState
from .container import ResilienceLayer

logger = structlog.get_logger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
}


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    status: str
    latency_ms: Optional[float] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: HealthStatus
    service: str
    version: str
    components: Dict[str, ComponentHealth]
    timestamp: float


async def check_cache(cache: Cache) -> ComponentHealth:
    """Round-trip a value through the shared store."""
    start = time.perf_counter()
    try:
        await cache.store.set(f"{cache.prefix}health_check", '"ok"', 60)
        await cache.store.get(f"{cache.prefix}health_check")
        latency = (time.perf_counter() - start) * 1000
        return ComponentHealth(status="up", latency_ms=round(latency, 2))
    except Exception as e:
        logger.error("cache_health_check_failed", error=str(e))
        latency = (time.perf_counter() - start) * 1000
        return ComponentHealth(status="down", latency_ms=round(latency, 2), error=str(e))


def determine_overall_status(cache_up: bool, open_breakers: int) -> HealthStatus:
    if not cache_up and open_breakers:
        return HealthStatus.UNHEALTHY
    if not cache_up or open_breakers:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


def create_health_router(
    layer: ResilienceLayer,
    service_name: str,
    version: str = "1.0.0",
) -> APIRouter:
    """
    Create health routes for a service built on ``layer``.

    Returns:
        FastAPI router with /health, /health/live and /health/breakers
    """
    router = APIRouter(tags=["Health"])

    @router.get("/health", response_model=HealthResponse)
    async def health_check(response: Response) -> HealthResponse:
        """Store reachability plus one component per circuit breaker."""
        response.headers.update(NO_CACHE_HEADERS)
        components: Dict[str, ComponentHealth] = {}

        cache_health = await check_cache(layer.cache)
        components["cache"] = cache_health

        open_breakers = 0
        for name, stats in layer.breakers.all_stats().items():
            if stats.state is not CircuitState.CLOSED:
                open_breakers += 1
            components[f"breaker:{name}"] = ComponentHealth(status=stats.state.value)

        overall = determine_overall_status(cache_health.status == "up", open_breakers)
        if overall is HealthStatus.UNHEALTHY:
            response.status_code = 503

        return HealthResponse(
            status=overall,
            service=service_name,
            version=version,
            components=components,
            timestamp=time.time(),
        )

    @router.get("/health/live")
    async def liveness_probe():
        """Liveness probe - always returns 200 if the process is serving."""
        return {"status": "alive"}

    @router.get("/health/breakers")
    async def breaker_details(response: Response) -> Dict[str, Any]:
        """Breaker stats with the last minute of call statistics for each."""
        response.headers.update(NO_CACHE_HEADERS)
        return {
            breaker.name: {
                **breaker.describe(),
                "performance": layer.monitor.get_average_metrics(
                    breaker.metric_name, window=60
                ).to_dict(),
            }
            for breaker in layer.breakers
        }

    return router
