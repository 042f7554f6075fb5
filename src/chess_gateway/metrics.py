"""
Metrics Collection System for Chess Gateway

Collects in-process counters, timers and histograms for inbound requests and
upstream calls, optionally scoped per route.
"""

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional


@dataclass
class MetricValue:
    """Base class for metric values."""

    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class CounterValue(MetricValue):
    """Counter metric value."""

    count: int = 0


@dataclass
class TimerValue(MetricValue):
    """Timer metric value with statistics."""

    count: int = 0
    total_ms: float = 0.0
    min_ms: float = float("inf")
    max_ms: float = 0.0

    @property
    def avg_ms(self) -> float:
        """Average duration in milliseconds."""
        return self.total_ms / self.count if self.count > 0 else 0.0

    def observe(self, duration_ms: float):
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict:
        return {
            "count": self.count,
            "total_ms": self.total_ms,
            "avg_ms": self.avg_ms,
            "min_ms": self.min_ms if self.min_ms != float("inf") else 0,
            "max_ms": self.max_ms,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class HistogramValue(MetricValue):
    """Histogram metric value with percentiles."""

    values: List[float] = field(default_factory=list)
    max_samples: int = 1000  # Keep last N samples for percentile calculation

    def add_value(self, value: float):
        self.values.append(value)
        if len(self.values) > self.max_samples:
            self.values.pop(0)

    def get_percentile(self, percentile: float) -> float:
        """Get percentile value (0-100), interpolating between samples."""
        if not self.values:
            return 0.0

        sorted_values = sorted(self.values)
        index = (percentile / 100.0) * (len(sorted_values) - 1)
        lower_index = int(index)
        if index == lower_index:
            return sorted_values[lower_index]

        upper_index = min(lower_index + 1, len(sorted_values) - 1)
        weight = index - lower_index
        return sorted_values[lower_index] * (1 - weight) + sorted_values[upper_index] * weight

    @property
    def p50(self) -> float:
        return self.get_percentile(50)

    @property
    def p95(self) -> float:
        return self.get_percentile(95)

    @property
    def p99(self) -> float:
        return self.get_percentile(99)


def _counter_dict(value: CounterValue) -> Dict:
    return {"count": value.count, "timestamp": value.timestamp.isoformat()}


class MetricsCollector:
    """Thread-safe metrics collector."""

    def __init__(self):
        self._lock = threading.RLock()
        self._counters: Dict[str, CounterValue] = {}
        self._timers: Dict[str, TimerValue] = {}
        self._histograms: Dict[str, HistogramValue] = {}

        # Route-specific metrics
        self._route_counters: Dict[str, Dict[str, CounterValue]] = defaultdict(dict)
        self._route_timers: Dict[str, Dict[str, TimerValue]] = defaultdict(dict)

    def increment_counter(
        self,
        name: str,
        value: int = 1,
        route: Optional[str] = None,
        labels: Optional[Dict[str, str]] = None,
    ):
        """Increment a counter metric."""
        with self._lock:
            key = self._build_key(name, labels)
            counters = self._route_counters[route] if route else self._counters

            if key not in counters:
                counters[key] = CounterValue()
            counters[key].count += value
            counters[key].timestamp = datetime.now(timezone.utc)

    def record_timer(
        self,
        name: str,
        duration_ms: float,
        route: Optional[str] = None,
        labels: Optional[Dict[str, str]] = None,
    ):
        """Record a timer metric."""
        with self._lock:
            key = self._build_key(name, labels)
            timers = self._route_timers[route] if route else self._timers

            if key not in timers:
                timers[key] = TimerValue()
            timers[key].observe(duration_ms)

    def record_histogram(self, name: str, value: float, labels: Optional[Dict[str, str]] = None):
        """Record a histogram metric."""
        with self._lock:
            key = self._build_key(name, labels)

            if key not in self._histograms:
                self._histograms[key] = HistogramValue()

            self._histograms[key].add_value(value)
            self._histograms[key].timestamp = datetime.now(timezone.utc)

    def get_counter(
        self, name: str, route: Optional[str] = None, labels: Optional[Dict[str, str]] = None
    ) -> Optional[CounterValue]:
        with self._lock:
            key = self._build_key(name, labels)
            if route:
                return self._route_counters.get(route, {}).get(key)
            return self._counters.get(key)

    def get_timer(
        self, name: str, route: Optional[str] = None, labels: Optional[Dict[str, str]] = None
    ) -> Optional[TimerValue]:
        with self._lock:
            key = self._build_key(name, labels)
            if route:
                return self._route_timers.get(route, {}).get(key)
            return self._timers.get(key)

    def get_histogram(
        self, name: str, labels: Optional[Dict[str, str]] = None
    ) -> Optional[HistogramValue]:
        with self._lock:
            return self._histograms.get(self._build_key(name, labels))

    def get_route_metrics(self, route: str) -> Dict[str, Dict]:
        """Get metrics recorded for a single route."""
        with self._lock:
            return {
                "counters": {
                    k: _counter_dict(v) for k, v in self._route_counters.get(route, {}).items()
                },
                "timers": {k: v.to_dict() for k, v in self._route_timers.get(route, {}).items()},
            }

    def get_all_metrics(self) -> Dict[str, Dict]:
        """Get all metrics as a dictionary."""
        with self._lock:
            routes = set(self._route_counters) | set(self._route_timers)
            return {
                "counters": {k: _counter_dict(v) for k, v in self._counters.items()},
                "timers": {k: v.to_dict() for k, v in self._timers.items()},
                "histograms": {
                    k: {
                        "count": len(v.values),
                        "p50": v.p50,
                        "p95": v.p95,
                        "p99": v.p99,
                        "timestamp": v.timestamp.isoformat(),
                    }
                    for k, v in self._histograms.items()
                },
                "routes": {route: self.get_route_metrics(route) for route in sorted(routes)},
            }

    def reset_metrics(self, route: Optional[str] = None):
        """Reset metrics (useful for testing)."""
        with self._lock:
            if route:
                self._route_counters.pop(route, None)
                self._route_timers.pop(route, None)
            else:
                self._counters.clear()
                self._timers.clear()
                self._histograms.clear()
                self._route_counters.clear()
                self._route_timers.clear()

    def _build_key(self, name: str, labels: Optional[Dict[str, str]] = None) -> str:
        if not labels:
            return name

        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}[{label_str}]"


# Global metrics collector instance
metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return metrics


class MetricNames:
    """Common metric names for consistency."""

    # Inbound request metrics
    REQUESTS_TOTAL = "requests_total"
    REQUEST_DURATION = "request_duration_ms"
    REQUEST_ERRORS = "requests_errors_total"
    RESPONSE_SIZE = "response_size_bytes"

    # Upstream metrics
    UPSTREAM_REQUESTS = "upstream_requests_total"
    UPSTREAM_DURATION = "upstream_duration_ms"
    UPSTREAM_ERRORS = "upstream_errors_total"

    # Local rejections
    VALIDATION_ERRORS = "validation_errors_total"
    CONFIG_ERRORS = "config_errors_total"
