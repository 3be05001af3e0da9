"""
CallTrack Core - Rate Limiting
==============================
Fixed-window rate limiting on a shared store, with Starlette middleware.
"""

from .models import RateLimitConfig, RateLimitStatus, RateLimitResult
from .limiter import (
    RateLimiter,
    create_api_rate_limiter,
    create_auth_rate_limiter,
    identifier_fingerprint,
)
from .middleware import RateLimitMiddleware, default_identifier

__all__ = [
    # Models
    "RateLimitConfig",
    "RateLimitStatus",
    "RateLimitResult",
    # Limiter
    "RateLimiter",
    "create_api_rate_limiter",
    "create_auth_rate_limiter",
    "identifier_fingerprint",
    # Middleware
    "RateLimitMiddleware",
    "default_identifier",
]
