"""
CallTrack Core Library
======================
Resilience utilities shared by the Medicare call-tracking services:
circuit breakers, retrying HTTP clients, rate limiting and performance
monitoring.
"""

__version__ = "0.1.0"

# Errors
from calltrack_core.errors import (
    ResilienceError,
    CircuitOpenError,
    OperationTimeoutError,
    RequestFailedError,
    status_code_for,
    ErrorCode,
    ErrorReporter,
    LoggingErrorReporter,
    report_nowait,
    flush_reports,
)

# Performance Monitoring
from calltrack_core.monitoring import (
    PerformanceMonitor,
    PerformanceMetric,
    PerformanceThresholds,
    AggregateMetrics,
    MonitorConfig,
)

# Circuit Breaker
from calltrack_core.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    CircuitStats,
    BreakerRegistry,
    circuit_breaker,
)

# External Services
from calltrack_core.http import (
    ExternalServiceClient,
    ServiceConfig,
    RetryConfig,
)

# Cache
from calltrack_core.cache import (
    KeyValueStore,
    RedisStore,
    InMemoryStore,
    Cache,
)

# Rate Limiting
from calltrack_core.rate_limit import (
    RateLimiter,
    RateLimitConfig,
    RateLimitStatus,
    RateLimitMiddleware,
    create_api_rate_limiter,
    create_auth_rate_limiter,
)

# Composition
from calltrack_core.config import ResilienceSettings
from calltrack_core.container import ResilienceLayer
from calltrack_core.logging_config import setup_logging

__all__ = [
    # Errors
    "ResilienceError",
    "CircuitOpenError",
    "OperationTimeoutError",
    "RequestFailedError",
    "status_code_for",
    "ErrorCode",
    "ErrorReporter",
    "LoggingErrorReporter",
    "report_nowait",
    "flush_reports",
    # Performance Monitoring
    "PerformanceMonitor",
    "PerformanceMetric",
    "PerformanceThresholds",
    "AggregateMetrics",
    "MonitorConfig",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "CircuitStats",
    "BreakerRegistry",
    "circuit_breaker",
    # External Services
    "ExternalServiceClient",
    "ServiceConfig",
    "RetryConfig",
    # Cache
    "KeyValueStore",
    "RedisStore",
    "InMemoryStore",
    "Cache",
    # Rate Limiting
    "RateLimiter",
    "RateLimitConfig",
    "RateLimitStatus",
    "RateLimitMiddleware",
    "create_api_rate_limiter",
    "create_auth_rate_limiter",
    # Composition
    "ResilienceSettings",
    "ResilienceLayer",
    "setup_logging",
]
