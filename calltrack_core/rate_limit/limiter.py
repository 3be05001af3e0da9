"""
Fixed Window Rate Limiter
=========================
Counts requests per identifier in discrete windows on a shared store.
"""

import hashlib
import math
import time
from typing import Callable, Optional

import structlog

from ..cache.store import KeyValueStore
from ..errors.reporting import ErrorReporter, report_nowait
from .models import RateLimitConfig, RateLimitStatus

logger = structlog.get_logger(__name__)


def identifier_fingerprint(identifier: str) -> str:
    """
    Stable short hash of a caller identifier.

    Identifiers can be raw Authorization headers, so only this fingerprint
    goes into store keys, logs and error reports.
    """
    return hashlib.sha256(identifier.encode()).hexdigest()[:16]


class RateLimiter:
    """
    Fixed-window counter limiter.

    Each ``(identifier, window)`` pair gets its own counter key. The store
    increments it and sets an expiry of one window in a single atomic step,
    so stale windows always clean themselves up. The call
    that pushes the count past ``max_requests`` is itself limited.

    If the store is unreachable the limiter fails open: the request is
    allowed and the failure is logged and reported.
    """

    def __init__(
        self,
        config: RateLimitConfig,
        store: KeyValueStore,
        reporter: Optional[ErrorReporter] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.store = store
        self.reporter = reporter
        self._clock = clock
        self._expiry_seconds = max(1, math.ceil(config.window_ms / 1000))

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def get_key(self, identifier: str, window_index: int) -> str:
        return f"{self.config.key_prefix}{identifier_fingerprint(identifier)}:{window_index}"

    async def is_rate_limited(self, identifier: str) -> RateLimitStatus:
        """
        Count a request for ``identifier`` and decide whether it is limited.

        Args:
            identifier: Caller identity (user id, auth token, client address)

        Returns:
            RateLimitStatus; never raises
        """
        now_ms = self.now_ms()
        window_index = now_ms // self.config.window_ms
        key = self.get_key(identifier, window_index)
        fingerprint = identifier_fingerprint(identifier)

        try:
            count = await self.store.incr_window(key, self._expiry_seconds)
        except Exception as e:
            logger.error(
                "rate_limit_check_failed",
                identifier=fingerprint,
                prefix=self.config.key_prefix,
                error=str(e),
            )
            report_nowait(
                self.reporter,
                e,
                {
                    "code": "INTERNAL_ERROR",
                    "action": "rate_limit_check",
                    "identifier": fingerprint,
                    "service": "RateLimiter",
                },
            )
            # Fail open when the store is down
            return RateLimitStatus(
                limited=False,
                remaining=self.config.max_requests,
                reset=now_ms + self.config.window_ms,
            )

        limited = count > self.config.max_requests
        if limited:
            logger.info(
                "rate_limit_exceeded",
                identifier=fingerprint,
                prefix=self.config.key_prefix,
                count=count,
            )

        return RateLimitStatus(
            limited=limited,
            remaining=max(0, self.config.max_requests - count),
            reset=(window_index + 1) * self.config.window_ms,
        )


def create_api_rate_limiter(
    store: KeyValueStore,
    reporter: Optional[ErrorReporter] = None,
    max_requests: int = 60,
    window_ms: int = 60 * 1000,
) -> RateLimiter:
    """General API limiter: 60 requests per minute."""
    return RateLimiter(
        RateLimitConfig(
            window_ms=window_ms,
            max_requests=max_requests,
            key_prefix="api:",
        ),
        store,
        reporter=reporter,
    )


def create_auth_rate_limiter(
    store: KeyValueStore,
    reporter: Optional[ErrorReporter] = None,
    max_requests: int = 5,
    window_ms: int = 15 * 60 * 1000,
) -> RateLimiter:
    """Authentication limiter: 5 attempts per 15 minutes."""
    return RateLimiter(
        RateLimitConfig(
            window_ms=window_ms,
            max_requests=max_requests,
            key_prefix="auth:",
            message="Too many login attempts, please try again later.",
        ),
        store,
        reporter=reporter,
    )
