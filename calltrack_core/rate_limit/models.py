"""
Rate Limit Models
=================
Configuration and results for fixed-window rate limiting.
"""

from dataclasses import dataclass
from enum import Enum


class RateLimitResult(str, Enum):
    """Rate limit decision result."""
    ALLOWED = "allowed"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class RateLimitConfig:
    """Fixed-window limit for one use case."""
    window_ms: int                    # Window length in milliseconds
    max_requests: int                 # Requests accepted per window
    key_prefix: str = "ratelimit:"
    status_code: int = 429            # Middleware response when limited
    message: str = "Too many requests, please try again later."
    headers: bool = True              # Emit X-RateLimit-* headers


@dataclass(frozen=True)
class RateLimitStatus:
    """Rate limit check result with quota information."""
    limited: bool
    remaining: int
    reset: int  # Window end, epoch milliseconds

    @property
    def result(self) -> RateLimitResult:
        return RateLimitResult.BLOCKED if self.limited else RateLimitResult.ALLOWED

    def retry_after(self, now_ms: int) -> int:
        """Whole seconds until the window resets."""
        return max(0, -(-(self.reset - now_ms) // 1000))
