"""
CallTrack Core - Errors
=======================
Exception taxonomy and the fire-and-forget error reporting sink.
"""

from .exceptions import (
    ResilienceError,
    CircuitOpenError,
    OperationTimeoutError,
    RequestFailedError,
    status_code_for,
)
from .reporting import (
    ErrorCode,
    ErrorReport,
    ErrorReporter,
    LoggingErrorReporter,
    classify_error,
    status_for_code,
    report_nowait,
    flush_reports,
)

__all__ = [
    # Exceptions
    "ResilienceError",
    "CircuitOpenError",
    "OperationTimeoutError",
    "RequestFailedError",
    "status_code_for",
    # Reporting
    "ErrorCode",
    "ErrorReport",
    "ErrorReporter",
    "LoggingErrorReporter",
    "classify_error",
    "status_for_code",
    "report_nowait",
    "flush_reports",
]
