"""
External Service Configuration
==============================
Per-dependency HTTP and retry settings.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..circuit_breaker.models import CircuitBreakerConfig


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy applied inside the breaker-guarded call. Durations in seconds."""
    max_attempts: int = 3
    backoff: float = 1.0        # Base delay, doubled per attempt
    max_backoff: float = 10.0   # Delay ceiling


@dataclass(frozen=True)
class ServiceConfig:
    """Configuration for one named external dependency."""
    name: str
    base_url: str
    timeout: float = 5.0                # Per logical call, retries included
    retries: Optional[int] = None       # Overrides retry.max_attempts
    retry: RetryConfig = field(default_factory=RetryConfig)
    circuit_breaker: Optional[CircuitBreakerConfig] = None

    def breaker_config(self) -> CircuitBreakerConfig:
        base = self.circuit_breaker or CircuitBreakerConfig()
        return CircuitBreakerConfig(
            failure_threshold=base.failure_threshold,
            reset_timeout=base.reset_timeout,
            monitor_interval=base.monitor_interval,
            timeout=self.timeout,
            cancel_on_timeout=base.cancel_on_timeout,
        )

    def retry_config(self) -> RetryConfig:
        if self.retries is None:
            return self.retry
        return RetryConfig(
            max_attempts=self.retries,
            backoff=self.retry.backoff,
            max_backoff=self.retry.max_backoff,
        )
