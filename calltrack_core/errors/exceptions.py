"""
Resilience Exceptions
=====================
Exception hierarchy raised by the resilience layer.

Each failure kind is its own class so the API boundary can map it to an
HTTP status without inspecting messages.
"""

from typing import Any, Optional


class ResilienceError(Exception):
    """Base exception for all resilience layer errors."""

    def __init__(self, message: str, service_name: str = "unknown"):
        self.message = message
        self.service_name = service_name
        super().__init__(message)


class CircuitOpenError(ResilienceError):
    """Raised when the circuit is open and the call was rejected unattempted."""

    def __init__(self, service_name: str, retry_after: float = 0.0):
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker for {service_name} is open. "
            f"Retry after {retry_after:.1f}s",
            service_name=service_name,
        )


class OperationTimeoutError(ResilienceError):
    """Raised when a guarded call exceeded its deadline."""

    def __init__(self, service_name: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Operation timed out after {timeout * 1000:.0f}ms",
            service_name=service_name,
        )


class RequestFailedError(ResilienceError):
    """Raised on a non-2xx response or a transport failure."""

    def __init__(
        self,
        service_name: str,
        message: str,
        status_code: Optional[int] = None,
        details: Any = None,
    ):
        self.status_code = status_code
        self.details = details
        super().__init__(message, service_name=service_name)

    def __str__(self) -> str:
        return f"[{self.service_name}] {self.message} (Status: {self.status_code})"


def status_code_for(exc: BaseException) -> int:
    """
    Map a resilience error to the HTTP status an API route should return.

    Open circuits and timeouts are temporary unavailability (503). Failed
    downstream requests pass client errors through and surface everything
    else as a bad gateway (502).
    """
    if isinstance(exc, (CircuitOpenError, OperationTimeoutError)):
        return 503
    if isinstance(exc, RequestFailedError):
        if exc.status_code is not None and 400 <= exc.status_code < 500:
            return exc.status_code
        return 502
    return 500
