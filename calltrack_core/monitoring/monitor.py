"""
Performance Monitor
===================
Records operation durations and outcomes and raises advisory alerts.
"""

import asyncio
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, TypeVar

import structlog

from ..errors.reporting import ErrorReporter, report_nowait
from .models import (
    AggregateMetrics,
    MonitorConfig,
    PerformanceMetric,
    PerformanceThresholds,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def nearest_rank(sorted_values: List[float], percentile: int) -> float:
    """Pick a percentile straight from sorted samples, no interpolation."""
    if not sorted_values:
        return 0.0
    idx = len(sorted_values) * percentile // 100
    return sorted_values[min(idx, len(sorted_values) - 1)]


class PerformanceThresholdExceeded(Exception):
    """Reported (never raised) when a sample crosses its critical threshold."""

    def __init__(self, metric: PerformanceMetric, threshold: float):
        self.metric = metric
        self.threshold = threshold
        super().__init__(
            f"Critical performance threshold exceeded for {metric.name}"
        )


class PerformanceMonitor:
    """
    In-process performance monitor.

    Samples live in a ring buffer capped at ``max_metrics``; samples older
    than ``retention`` are evicted by a periodic cleanup task started with
    ``start_cleanup()``.

    Example:
        monitor = PerformanceMonitor(reporter=LoggingErrorReporter())

        result = await monitor.track_operation("database", lambda: fetch_agents())
        stats = monitor.get_average_metrics("database", window=60)
    """

    def __init__(
        self,
        config: Optional[MonitorConfig] = None,
        reporter: Optional[ErrorReporter] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or MonitorConfig()
        self.reporter = reporter
        self._clock = clock
        self._metrics: Deque[PerformanceMetric] = deque(maxlen=self.config.max_metrics)
        self._cleanup_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._metrics)

    async def track_operation(
        self,
        name: str,
        operation: Callable[[], Awaitable[T]],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> T:
        """
        Run ``operation`` and record its duration and outcome.

        The sample is recorded even when the operation raises; the original
        exception is re-raised untouched.
        """
        start = time.perf_counter()
        success = False
        try:
            result = await operation()
            success = True
            return result
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            self.record_metric(
                PerformanceMetric(
                    name=name,
                    duration_ms=duration_ms,
                    timestamp=self._now(),
                    success=success,
                    metadata=metadata,
                )
            )

    def record_metric(self, metric: PerformanceMetric) -> None:
        """Store a sample and check it against its thresholds."""
        try:
            self._metrics.append(metric)
            self._check_thresholds(metric)
        except Exception as e:
            logger.error("metric_record_failed", metric=metric.name, error=str(e))
            report_nowait(
                self.reporter,
                e,
                {"action": "record_metric", "metric_name": metric.name},
            )

    def get_metrics(
        self,
        name: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        success_only: bool = False,
    ) -> List[PerformanceMetric]:
        metrics = list(self._metrics)
        if name is not None:
            metrics = [m for m in metrics if m.name == name]
        if start_time is not None:
            metrics = [m for m in metrics if m.timestamp >= start_time]
        if end_time is not None:
            metrics = [m for m in metrics if m.timestamp <= end_time]
        if success_only:
            metrics = [m for m in metrics if m.success]
        return metrics

    def get_average_metrics(self, name: str, window: float = 60.0) -> AggregateMetrics:
        """
        Aggregate samples for ``name`` recorded within the trailing ``window``
        seconds.
        """
        now = self._clock()
        relevant = [
            m for m in self._metrics
            if m.name == name and now - m.timestamp.timestamp() <= window
        ]
        if not relevant:
            return AggregateMetrics()

        durations = sorted(m.duration_ms for m in relevant)
        successes = sum(1 for m in relevant if m.success)
        count = len(relevant)

        return AggregateMetrics(
            average=sum(durations) / count,
            p95=nearest_rank(durations, 95),
            p99=nearest_rank(durations, 99),
            success_rate=successes / count * 100,
            count=count,
        )

    def thresholds_for(self, name: str) -> PerformanceThresholds:
        thresholds = self.config.thresholds
        return thresholds.get(name) or thresholds["default"]

    def _check_thresholds(self, metric: PerformanceMetric) -> None:
        thresholds = self.thresholds_for(metric.name)

        if metric.duration_ms >= thresholds.critical:
            report_nowait(
                self.reporter,
                PerformanceThresholdExceeded(metric, thresholds.critical),
                {
                    "action": "performance_threshold_exceeded",
                    "metric": metric.name,
                    "value": metric.duration_ms,
                    "threshold": thresholds.critical,
                },
            )
        elif metric.duration_ms >= thresholds.warning:
            logger.warning(
                "performance_threshold_warning",
                metric=metric.name,
                duration_ms=round(metric.duration_ms, 2),
                threshold=thresholds.warning,
                **(metric.metadata or {}),
            )

    def evict_expired(self) -> int:
        """Drop samples older than the retention window. Returns the count dropped."""
        cutoff = self._clock() - self.config.retention
        before = len(self._metrics)
        kept = [m for m in self._metrics if m.timestamp.timestamp() >= cutoff]
        self._metrics = deque(kept, maxlen=self.config.max_metrics)
        dropped = before - len(self._metrics)
        if dropped:
            logger.debug("metrics_evicted", dropped=dropped, remaining=len(self._metrics))
        return dropped

    def start_cleanup(self) -> asyncio.Task:
        """Start the periodic age eviction. Must be called inside a running loop."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.get_running_loop().create_task(
                self._cleanup_loop()
            )
        return self._cleanup_task

    async def stop_cleanup(self) -> None:
        task, self._cleanup_task = self._cleanup_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def is_cleaning(self) -> bool:
        return self._cleanup_task is not None and not self._cleanup_task.done()

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval)
            self.evict_expired()

    def clear(self) -> None:
        self._metrics.clear()

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)
