"""
CallTrack Core - Performance Monitoring
=======================================
Duration/outcome sampling with windowed aggregates and threshold alerts.
"""

from .models import (
    PerformanceMetric,
    PerformanceThresholds,
    AggregateMetrics,
    MonitorConfig,
    DEFAULT_THRESHOLDS,
)
from .monitor import PerformanceMonitor, PerformanceThresholdExceeded, nearest_rank

__all__ = [
    # Models
    "PerformanceMetric",
    "PerformanceThresholds",
    "AggregateMetrics",
    "MonitorConfig",
    "DEFAULT_THRESHOLDS",
    # Monitor
    "PerformanceMonitor",
    "PerformanceThresholdExceeded",
    "nearest_rank",
]
