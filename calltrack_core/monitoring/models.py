"""
Performance Monitoring Models
=============================
Metric records, thresholds and aggregate results.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class PerformanceMetric:
    """A single recorded operation sample."""
    name: str
    duration_ms: float
    timestamp: datetime
    success: bool
    metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class PerformanceThresholds:
    """Advisory duration thresholds in milliseconds."""
    warning: float
    critical: float


DEFAULT_THRESHOLDS: Dict[str, PerformanceThresholds] = {
    "default": PerformanceThresholds(warning=1000, critical=3000),
    "database": PerformanceThresholds(warning=500, critical=1000),
    "authentication": PerformanceThresholds(warning=800, critical=2000),
}


@dataclass(frozen=True)
class AggregateMetrics:
    """Windowed statistics for one operation name."""
    average: float = 0.0
    p95: float = 0.0
    p99: float = 0.0
    success_rate: float = 0.0  # Percentage, 0-100
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "average": self.average,
            "p95": self.p95,
            "p99": self.p99,
            "success_rate": self.success_rate,
            "count": self.count,
        }


@dataclass
class MonitorConfig:
    """Retention settings for a performance monitor."""
    max_metrics: int = 1000               # Ring buffer size
    retention: float = 24 * 60 * 60       # Seconds a sample is kept
    cleanup_interval: float = 60 * 60     # Seconds between age evictions
    thresholds: Dict[str, PerformanceThresholds] = field(
        default_factory=lambda: dict(DEFAULT_THRESHOLDS)
    )
