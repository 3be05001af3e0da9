"""
CallTrack Core - Circuit Breaker
================================
Async circuit breaker hardening calls to the document store and other
HTTP dependencies.

States:

1. CLOSED: Normal operation, requests flow through
2. OPEN: Dependency is failing, requests are rejected immediately
3. HALF-OPEN: One probe call tests whether it recovered

Usage:
    from calltrack_core.circuit_breaker import BreakerRegistry, CircuitOpenError

    breakers = BreakerRegistry(monitor=monitor, reporter=reporter)
    firestore = breakers.get_or_create("firestore")

    submissions = await firestore.execute(lambda: load_submissions(agent_id))
"""

from .models import (
    CircuitState,
    CircuitBreakerConfig,
    CircuitStats,
    CircuitOpenError,
    OperationTimeoutError,
)

from .breaker import CircuitBreaker, CircuitStateTransition

from .registry import BreakerRegistry

from .decorators import circuit_breaker

__all__ = [
    # Models
    "CircuitState",
    "CircuitBreakerConfig",
    "CircuitStats",
    "CircuitOpenError",
    "OperationTimeoutError",
    # Breaker
    "CircuitBreaker",
    "CircuitStateTransition",
    # Registry
    "BreakerRegistry",
    # Decorator
    "circuit_breaker",
]
