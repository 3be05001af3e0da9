"""
Circuit Breaker Decorator
=========================
Decorator for wrapping async functions with circuit breaker protection.
"""

from functools import wraps
from typing import Awaitable, Callable, Optional, TypeVar

from .models import CircuitBreakerConfig, CircuitOpenError
from .registry import BreakerRegistry

T = TypeVar("T")


def circuit_breaker(
    registry: BreakerRegistry,
    service_name: str,
    config: Optional[CircuitBreakerConfig] = None,
    fallback: Optional[Callable[[], Awaitable[T]]] = None,
):
    """
    Decorator to guard an async function with a registry breaker.

    ``fallback`` is awaited instead of raising when the call is rejected
    because the circuit is open. Timeouts and operation errors still raise.

    Example:
        @circuit_breaker(breakers, "firestore")
        async def load_agent(agent_id: str):
            return await agents.get(agent_id)
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        breaker = registry.get_or_create(service_name, config)

        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            try:
                return await breaker.execute(lambda: func(*args, **kwargs))
            except CircuitOpenError:
                if fallback is None:
                    raise
                return await fallback()

        wrapper.breaker = breaker
        return wrapper

    return decorator
