"""
Circuit Breaker Models
======================
Data models and enums for the circuit breaker pattern.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional

from ..errors.exceptions import CircuitOpenError, OperationTimeoutError


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"        # Normal operation
    OPEN = "open"            # Failing, reject requests
    HALF_OPEN = "half-open"  # Single probe allowed


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for a circuit breaker. Durations are in seconds."""
    failure_threshold: int = 5        # Failures before opening
    reset_timeout: float = 60.0       # Cooldown before a half-open probe
    monitor_interval: float = 15.0    # Background health check cadence
    timeout: float = 5.0              # Per-call ceiling
    cancel_on_timeout: bool = False   # Cancel the operation when its deadline passes


@dataclass(frozen=True)
class CircuitStats:
    """Point-in-time snapshot of a breaker. Timestamps are epoch seconds."""
    state: CircuitState
    failures: int
    successes: int
    last_failure: Optional[float]
    last_success: Optional[float]
    last_reset: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data


__all__ = [
    "CircuitState",
    "CircuitBreakerConfig",
    "CircuitStats",
    "CircuitOpenError",
    "OperationTimeoutError",
]
