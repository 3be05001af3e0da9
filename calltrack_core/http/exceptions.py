"""
External Service Exceptions
===========================
Errors surfaced by ``ExternalServiceClient``.
"""

from ..errors.exceptions import (
    ResilienceError,
    RequestFailedError,
    CircuitOpenError,
    OperationTimeoutError,
)

__all__ = [
    "ResilienceError",
    "RequestFailedError",
    "CircuitOpenError",
    "OperationTimeoutError",
]
