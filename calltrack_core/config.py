"""
Resilience Settings
===================
Environment-driven settings for the composition root.

Components never read the environment themselves; ``ResilienceLayer``
turns these settings into plain config objects.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .circuit_breaker.models import CircuitBreakerConfig
from .http.config import RetryConfig


@dataclass(frozen=True)
class ResilienceSettings:
    """Settings for breakers, retries, rate limits and the shared store."""
    service_name: str = "calltrack"
    redis_url: str = "redis://localhost:6379/0"

    # Circuit breaker (seconds)
    failure_threshold: int = 5
    reset_timeout: float = 60.0
    monitor_interval: float = 15.0
    timeout: float = 5.0

    # Retry (seconds)
    retry_max_attempts: int = 3
    retry_backoff: float = 1.0
    retry_max_backoff: float = 10.0

    # Rate limits
    api_rate_limit: int = 60
    api_rate_window_ms: int = 60 * 1000
    auth_rate_limit: int = 5
    auth_rate_window_ms: int = 15 * 60 * 1000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ResilienceSettings":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            service_name=env.get("SERVICE_NAME", defaults.service_name),
            redis_url=env.get("REDIS_URL", defaults.redis_url),
            failure_threshold=int(env.get("CB_FAILURE_THRESHOLD", defaults.failure_threshold)),
            reset_timeout=float(env.get("CB_RESET_TIMEOUT", defaults.reset_timeout)),
            monitor_interval=float(env.get("CB_MONITOR_INTERVAL", defaults.monitor_interval)),
            timeout=float(env.get("CB_TIMEOUT", defaults.timeout)),
            retry_max_attempts=int(env.get("RETRY_MAX_ATTEMPTS", defaults.retry_max_attempts)),
            retry_backoff=float(env.get("RETRY_BACKOFF", defaults.retry_backoff)),
            retry_max_backoff=float(env.get("RETRY_MAX_BACKOFF", defaults.retry_max_backoff)),
            api_rate_limit=int(env.get("API_RATE_LIMIT", defaults.api_rate_limit)),
            api_rate_window_ms=int(env.get("API_RATE_WINDOW_MS", defaults.api_rate_window_ms)),
            auth_rate_limit=int(env.get("AUTH_RATE_LIMIT", defaults.auth_rate_limit)),
            auth_rate_window_ms=int(env.get("AUTH_RATE_WINDOW_MS", defaults.auth_rate_window_ms)),
        )

    def breaker_config(self) -> CircuitBreakerConfig:
        return CircuitBreakerConfig(
            failure_threshold=self.failure_threshold,
            reset_timeout=self.reset_timeout,
            monitor_interval=self.monitor_interval,
            timeout=self.timeout,
        )

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.retry_max_attempts,
            backoff=self.retry_backoff,
            max_backoff=self.retry_max_backoff,
        )
