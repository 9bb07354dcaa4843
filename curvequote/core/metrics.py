"""
In-process metrics for the quoting engine
Counts quotes, rejections and RPC outcomes; keeps latency samples per operation
"""

import statistics
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass
class HistogramStats:
    """Summary of latency samples for one operation"""
    operation: str
    count: int
    p50: float
    p95: float
    p99: float
    mean: float
    min: float
    max: float


class MetricsCollector:
    """Counters plus bounded latency histograms, optionally split by labels"""

    def __init__(self, enable_histogram: bool = True, max_samples: int = 10_000):
        """
        Args:
            enable_histogram: Whether latency samples are retained
            max_samples: Samples kept per operation (oldest dropped first)
        """
        self.enable_histogram = enable_histogram
        self._latencies: Dict[str, deque] = defaultdict(lambda: deque(maxlen=max_samples))
        self._counters: Dict[str, int] = defaultdict(int)
        self._labeled_counters: Dict[tuple, int] = defaultdict(int)

    def record_latency(
        self,
        operation: str,
        latency_ms: float,
        labels: Optional[Dict[str, str]] = None
    ) -> None:
        """Record one latency sample and bump the operation's call count"""
        if self.enable_histogram:
            self._latencies[operation].append(latency_ms)
        self.increment_counter(f"{operation}_count", labels=labels)

    def increment_counter(
        self,
        metric_name: str,
        value: int = 1,
        labels: Optional[Dict[str, str]] = None
    ) -> None:
        if labels:
            self._labeled_counters[(metric_name, tuple(sorted(labels.items())))] += value
        else:
            self._counters[metric_name] += value

    def get_counter(self, metric_name: str, labels: Optional[Dict[str, str]] = None) -> int:
        if labels:
            return self._labeled_counters.get((metric_name, tuple(sorted(labels.items()))), 0)
        return self._counters.get(metric_name, 0)

    def get_histogram_stats(self, operation: str) -> Optional[HistogramStats]:
        """
        Percentile summary for an operation

        Returns:
            HistogramStats, or None when nothing was recorded
        """
        samples = sorted(self._latencies.get(operation, []))
        if not samples:
            return None

        return HistogramStats(
            operation=operation,
            count=len(samples),
            p50=self._percentile(samples, 50),
            p95=self._percentile(samples, 95),
            p99=self._percentile(samples, 99),
            mean=statistics.mean(samples),
            min=samples[0],
            max=samples[-1]
        )

    def export_metrics(self) -> Dict:
        """All metrics as a JSON-serializable dict"""
        labeled = defaultdict(dict)
        for (name, label_items), value in self._labeled_counters.items():
            key = ",".join(f"{k}={v}" for k, v in label_items)
            labeled[name][key] = value

        histograms = {}
        for operation in list(self._latencies.keys()):
            stats = self.get_histogram_stats(operation)
            if stats:
                histograms[operation] = {
                    "count": stats.count,
                    "p50": stats.p50,
                    "p95": stats.p95,
                    "p99": stats.p99,
                    "mean": stats.mean,
                }

        return {
            "counters": dict(self._counters),
            "labeled_counters": dict(labeled),
            "histograms": histograms
        }

    def reset(self) -> None:
        """Drop everything (used between tests)"""
        self._latencies.clear()
        self._counters.clear()
        self._labeled_counters.clear()

    @staticmethod
    def _percentile(sorted_data: List[float], percentile: float) -> float:
        """Linear-interpolated percentile of already sorted data"""
        if len(sorted_data) == 1:
            return sorted_data[0]

        index = (percentile / 100) * (len(sorted_data) - 1)
        lower = int(index)
        upper = lower + 1
        if upper >= len(sorted_data):
            return sorted_data[-1]

        weight = index - lower
        return sorted_data[lower] * (1 - weight) + sorted_data[upper] * weight


class LatencyTimer:
    """Context manager recording the wall time of a block in milliseconds"""

    def __init__(self, metrics: MetricsCollector, operation: str, labels: Optional[Dict[str, str]] = None):
        self.metrics = metrics
        self.operation = operation
        self.labels = labels
        self.start_time: Optional[float] = None
        self.latency_ms: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            self.latency_ms = (time.perf_counter() - self.start_time) * 1000
            self.metrics.record_latency(self.operation, self.latency_ms, self.labels)


_global_metrics: Optional[MetricsCollector] = None


def get_metrics() -> MetricsCollector:
    """Process-wide collector, created on first use"""
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = MetricsCollector()
    return _global_metrics


def init_metrics(enable_histogram: bool = True) -> MetricsCollector:
    """
    Configure the process-wide collector (called once at startup)

    Modules hold a reference taken at import time, so the existing
    instance is reconfigured rather than replaced.
    """
    collector = get_metrics()
    collector.enable_histogram = enable_histogram
    return collector
