"""
Rate Limit Middleware
=====================
Starlette middleware enforcing a ``RateLimiter`` per caller.
"""

from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
import structlog

from ..errors.reporting import report_nowait
from .limiter import RateLimiter
from .models import RateLimitStatus

logger = structlog.get_logger(__name__)


def default_identifier(request: Request) -> str:
    """Auth token when present, otherwise the client address."""
    authorization = request.headers.get("authorization")
    if authorization:
        return authorization
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware that rejects callers over their rate limit.

    Limited callers get ``config.status_code`` with a JSON body carrying the
    message and ``retryAfter`` seconds. Failures inside the limiting step
    fail open and the request proceeds.

    Usage:
        app.add_middleware(RateLimitMiddleware, limiter=layer.api_rate_limiter)
    """

    def __init__(
        self,
        app,
        limiter: RateLimiter,
        identifier_func: Optional[Callable[[Request], str]] = None,
        excluded_paths: Optional[set] = None,
    ):
        super().__init__(app)
        self.limiter = limiter
        self.identifier_func = identifier_func or default_identifier
        self.excluded_paths = excluded_paths or set()

    def _apply_headers(self, response: Response, status: RateLimitStatus) -> None:
        if not self.limiter.config.headers:
            return
        response.headers["X-RateLimit-Limit"] = str(self.limiter.config.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(status.remaining)
        response.headers["X-RateLimit-Reset"] = str(status.reset)

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        try:
            identifier = self.identifier_func(request)
            status = await self.limiter.is_rate_limited(identifier)
        except Exception as e:
            logger.error("rate_limit_middleware_failed", path=request.url.path, error=str(e))
            report_nowait(
                self.limiter.reporter,
                e,
                {
                    "code": "INTERNAL_ERROR",
                    "action": "rate_limit_middleware",
                    "service": "RateLimiter",
                },
            )
            return await call_next(request)

        if status.limited:
            response = JSONResponse(
                status_code=self.limiter.config.status_code,
                content={
                    "error": self.limiter.config.message,
                    "retryAfter": status.retry_after(self.limiter.now_ms()),
                },
            )
            self._apply_headers(response, status)
            return response

        response = await call_next(request)
        self._apply_headers(response, status)
        return response
