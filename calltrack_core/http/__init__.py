from .client import ExternalServiceClient, DEFAULT_HEADERS
from .config import ServiceConfig, RetryConfig
from .exceptions import (
    ResilienceError,
    RequestFailedError,
    CircuitOpenError,
    OperationTimeoutError,
)

__all__ = [
    "ExternalServiceClient",
    "DEFAULT_HEADERS",
    "ServiceConfig",
    "RetryConfig",
    "ResilienceError",
    "RequestFailedError",
    "CircuitOpenError",
    "OperationTimeoutError",
]
