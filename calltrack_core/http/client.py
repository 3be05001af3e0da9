import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..circuit_breaker.breaker import CircuitBreaker
from ..circuit_breaker.models import CircuitStats
from ..circuit_breaker.registry import BreakerRegistry
from ..errors.reporting import ErrorReporter, report_nowait
from ..monitoring.monitor import PerformanceMonitor
from .config import ServiceConfig
from .exceptions import RequestFailedError

logger = structlog.get_logger(__name__)

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class ExternalServiceClient:
    """
    Resilient async HTTP client for one named external dependency.

    Features:
    - Bounded exponential-backoff retries (tenacity) inside the breaker call,
      so the breaker counts one outcome per logical request.
    - Per-request deadline and open-circuit rejection via ``CircuitBreaker``.
    - Connection pooling (via httpx.AsyncClient).

    Any non-2xx response is a failure and is retried; 4xx responses are not
    special-cased.
    """

    def __init__(
        self,
        config: ServiceConfig,
        registry: Optional[BreakerRegistry] = None,
        monitor: Optional[PerformanceMonitor] = None,
        reporter: Optional[ErrorReporter] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.retry_config = config.retry_config()
        self.reporter = reporter if reporter is not None else getattr(registry, "reporter", None)
        self._sleep = sleep

        if registry is not None:
            self.circuit_breaker = registry.get_or_create(config.name, config.breaker_config())
        else:
            self.circuit_breaker = CircuitBreaker(
                config.name,
                config=config.breaker_config(),
                monitor=monitor,
                reporter=self.reporter,
            )

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=config.base_url.rstrip("/"),
            timeout=config.timeout,
            headers={"User-Agent": f"CallTrack-Client/{config.name}"},
        )

    @property
    def name(self) -> str:
        return self.config.name

    async def request(self, path: str, method: str = "GET", **kwargs: Any) -> Any:
        """
        Send a request through the circuit breaker, retrying inside it.

        Args:
            path: Path relative to the service base URL
            method: HTTP method
            **kwargs: Passed to ``httpx.AsyncClient.request`` (headers, params, json...)

        Returns:
            Decoded JSON body, or None for empty responses
        """
        return await self.circuit_breaker.execute(
            lambda: self._request_with_retry(method, path, **kwargs)
        )

    async def _request_with_retry(self, method: str, path: str, **kwargs: Any) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_config.max_attempts),
            wait=wait_exponential(
                multiplier=self.retry_config.backoff,
                max=self.retry_config.max_backoff,
            ),
            retry=retry_if_exception_type(Exception),
            before_sleep=lambda state: self._report_retry(state, path),
            sleep=self._sleep,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                result = await self._send(method, path, **kwargs)
        return result

    async def _send(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = {**DEFAULT_HEADERS, **(kwargs.pop("headers", None) or {})}

        try:
            response = await self.client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise RequestFailedError(
                self.name, f"Request failed: {e}"
            ) from e

        if not response.is_success:
            raise RequestFailedError(
                self.name,
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
                details=response.text,
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _report_retry(self, retry_state: RetryCallState, path: str) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        backoff = retry_state.next_action.sleep if retry_state.next_action else 0.0
        metadata: Dict[str, Any] = {
            "action": f"{self.name}_request_retry",
            "service": self.name,
            "attempt": retry_state.attempt_number,
            "max_attempts": self.retry_config.max_attempts,
            "backoff": backoff,
            "path": path,
        }
        logger.warning("external_request_retry", **metadata, error=str(error))
        if error is not None:
            report_nowait(self.reporter, error, metadata)

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request(path, method="GET", **kwargs)

    async def post(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request(path, method="POST", json=body, **kwargs)

    async def put(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request(path, method="PUT", json=body, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request(path, method="DELETE", **kwargs)

    def get_stats(self) -> CircuitStats:
        return self.circuit_breaker.get_stats()

    async def aclose(self) -> None:
        """Stop the breaker's health check and close the HTTP client if we own it."""
        await self.circuit_breaker.stop_monitoring()
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "ExternalServiceClient":
        self.circuit_breaker.start_monitoring()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.aclose()
        return False
