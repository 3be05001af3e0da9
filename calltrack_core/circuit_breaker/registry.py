"""
Circuit Breaker Registry
========================
One breaker per guarded dependency name, owned by the composition root.
"""

import time
from typing import Callable, Dict, Iterator, List, Optional

import structlog

from ..errors.reporting import ErrorReporter
from ..monitoring.monitor import PerformanceMonitor
from .breaker import CircuitBreaker
from .models import CircuitBreakerConfig, CircuitStats

logger = structlog.get_logger(__name__)


class BreakerRegistry:
    """
    Registry mapping dependency names to their circuit breakers.

    Build one at startup and hand it to whatever needs a breaker, so every
    caller guarding "firestore" shares the same counters.
    """

    def __init__(
        self,
        monitor: Optional[PerformanceMonitor] = None,
        reporter: Optional[ErrorReporter] = None,
        default_config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.monitor = (
            monitor if monitor is not None
            else PerformanceMonitor(reporter=reporter, clock=clock)
        )
        self.reporter = reporter
        self.default_config = default_config or CircuitBreakerConfig()
        self._clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}

    def get_or_create(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
    ) -> CircuitBreaker:
        """
        Get the breaker for ``name``, creating it on first use.

        ``config`` is only used when the breaker does not exist yet.
        """
        breaker = self._breakers.get(name)
        if breaker is None:
            breaker = CircuitBreaker(
                name=name,
                config=config or self.default_config,
                monitor=self.monitor,
                reporter=self.reporter,
                clock=self._clock,
            )
            self._breakers[name] = breaker
            logger.debug("circuit_breaker_registered", service=name)
        return breaker

    def get(self, name: str) -> Optional[CircuitBreaker]:
        return self._breakers.get(name)

    def names(self) -> List[str]:
        return list(self._breakers)

    def all_stats(self) -> Dict[str, CircuitStats]:
        return {name: breaker.get_stats() for name, breaker in self._breakers.items()}

    def start_all(self) -> None:
        """Start every registered breaker's health check (inside a running loop)."""
        for breaker in self._breakers.values():
            breaker.start_monitoring()

    async def stop_all(self) -> None:
        for breaker in self._breakers.values():
            await breaker.stop_monitoring()

    def __contains__(self, name: object) -> bool:
        return name in self._breakers

    def __len__(self) -> int:
        return len(self._breakers)

    def __iter__(self) -> Iterator[CircuitBreaker]:
        return iter(list(self._breakers.values()))
