"""
Error Reporting
===============
Injected sink for failures and state changes observed by the resilience layer.

Reporting is fire-and-forget: components call ``report_nowait`` which
schedules the sink on the running loop and never raises into the caller.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Set, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)


class ErrorCode(str, Enum):
    """Coarse error classification used when logging reports."""
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_STATUS_BY_CODE = {
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NETWORK_ERROR: 503,
    ErrorCode.INTERNAL_ERROR: 500,
}

# Checked in order; first keyword hit wins
_KEYWORDS = (
    (ErrorCode.UNAUTHORIZED, ("unauthorized", "unauthenticated")),
    (ErrorCode.FORBIDDEN, ("forbidden", "permission")),
    (ErrorCode.NOT_FOUND, ("not found", "404")),
    (ErrorCode.VALIDATION_ERROR, ("validation", "invalid")),
    (ErrorCode.NETWORK_ERROR, ("network", "connection")),
)


def classify_error(error: BaseException) -> ErrorCode:
    """Classify an error from its message."""
    message = str(error).lower()
    for code, keywords in _KEYWORDS:
        if any(keyword in message for keyword in keywords):
            return code
    return ErrorCode.INTERNAL_ERROR


def status_for_code(code: ErrorCode) -> int:
    return _STATUS_BY_CODE.get(code, 500)


@dataclass
class ErrorReport:
    """A reported error with its classification and context."""
    message: str
    code: ErrorCode
    status: int
    error_type: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_error(
        cls,
        error: BaseException,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ErrorReport":
        metadata = dict(metadata or {})
        code = metadata.pop("code", None)
        code = ErrorCode(code) if code else classify_error(error)
        return cls(
            message=str(error),
            code=code,
            status=status_for_code(code),
            error_type=type(error).__name__,
            metadata=metadata,
        )


@runtime_checkable
class ErrorReporter(Protocol):
    """Sink accepting errors with metadata. Implementations must not raise."""

    async def report(
        self,
        error: BaseException,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...


class LoggingErrorReporter:
    """Default reporter: emits one structured log event per report."""

    def __init__(self, logger_name: str = "calltrack_core.errors"):
        self._logger = structlog.get_logger(logger_name)

    async def report(
        self,
        error: BaseException,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        report = ErrorReport.from_error(error, metadata)
        self._logger.error(
            "error_reported",
            error=report.message,
            error_type=report.error_type,
            code=report.code.value,
            status=report.status,
            timestamp=report.timestamp.isoformat(),
            **report.metadata,
        )


# Strong references so scheduled reports are not garbage collected mid-flight
_pending_reports: Set[asyncio.Task] = set()


async def _safe_report(
    reporter: ErrorReporter,
    error: BaseException,
    metadata: Optional[Dict[str, Any]],
) -> None:
    try:
        await reporter.report(error, metadata)
    except Exception as e:
        logger.warning(
            "error_reporter_failed",
            reporter=type(reporter).__name__,
            error=str(e),
        )


def report_nowait(
    reporter: Optional[ErrorReporter],
    error: BaseException,
    metadata: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Dispatch a report without waiting for it.

    Outside a running event loop the report is logged directly, since there
    is nothing to schedule the sink on.
    """
    if reporter is None:
        return

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.error(
            "error_reported_without_loop",
            error=str(error),
            error_type=type(error).__name__,
            **(metadata or {}),
        )
        return

    task = loop.create_task(_safe_report(reporter, error, metadata))
    _pending_reports.add(task)
    task.add_done_callback(_pending_reports.discard)


async def flush_reports() -> None:
    """Wait for every report dispatched so far (shutdown and tests)."""
    loop = asyncio.get_running_loop()
    while True:
        pending = [
            task for task in _pending_reports
            if task.get_loop() is loop and not task.done()
        ]
        if not pending:
            return
        await asyncio.gather(*pending, return_exceptions=True)
