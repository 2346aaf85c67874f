"""
In-memory counters for the worker loop.

- jobs_claimed_total: Counter of successful claims
- jobs_finished_total{status}: Counter of recorded outcomes (done, failed)
- task_duration_seconds{status}: Running aggregate of task-body execution times
- claim_errors_total: Counter of claims that hit a ConnectivityError
- recording_errors_total: Counter of outcomes that could not be written

The worker logs ``get_metrics_summary()`` when it shuts down.
"""
from collections import defaultdict
from dataclasses import dataclass
from typing import Any


@dataclass
class _Aggregate:
    """Fixed-size running statistics for one observed series."""

    count: int = 0
    total: float = 0.0
    min: float = 0.0
    max: float = 0.0

    def add(self, value: float) -> None:
        if self.count == 0:
            self.min = self.max = value
        else:
            self.min = min(self.min, value)
            self.max = max(self.max, value)
        self.count += 1
        self.total += value


class MetricsCollector:
    """Simple in-memory metrics collector."""

    def __init__(self):
        self.counters: dict[str, int] = defaultdict(int)
        self.histograms: dict[str, _Aggregate] = defaultdict(_Aggregate)

    def increment_counter(self, name: str, value: int = 1, labels: dict[str, str] | None = None):
        """Increment a counter metric."""
        key = self._build_key(name, labels)
        self.counters[key] += value

    def observe_histogram(self, name: str, value: float, labels: dict[str, str] | None = None):
        """Fold an observation into the series' running aggregate."""
        key = self._build_key(name, labels)
        self.histograms[key].add(value)

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        """Get current counter value."""
        key = self._build_key(name, labels)
        return self.counters.get(key, 0)

    def get_histogram_stats(self, name: str, labels: dict[str, str] | None = None) -> dict[str, Any]:
        """Get histogram statistics (count, sum, min, max, avg)."""
        key = self._build_key(name, labels)
        return self._stats(self.histograms.get(key))

    @staticmethod
    def _stats(agg: "_Aggregate | None") -> dict[str, Any]:
        if agg is None or agg.count == 0:
            return {"count": 0, "sum": 0, "min": 0, "max": 0, "avg": 0}
        return {
            "count": agg.count,
            "sum": agg.total,
            "min": agg.min,
            "max": agg.max,
            "avg": agg.total / agg.count,
        }

    def get_all_metrics(self) -> dict[str, Any]:
        """Get all metrics as a dictionary."""
        return {
            "counters": dict(self.counters),
            "histograms": {k: self._stats(v) for k, v in self.histograms.items()},
        }

    def reset(self):
        """Reset all metrics."""
        self.counters.clear()
        self.histograms.clear()

    @staticmethod
    def _build_key(name: str, labels: dict[str, str] | None) -> str:
        """Build metric key from name and labels."""
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"


# Global metrics collector instance
metrics = MetricsCollector()


def record_job_claimed():
    metrics.increment_counter("jobs_claimed_total")


def record_job_finished(status: str, duration_seconds: float):
    """
    Record a recorded task outcome.

    Args:
        status: Terminal job status (done, failed)
        duration_seconds: Task-body execution time in seconds
    """
    metrics.increment_counter("jobs_finished_total", labels={"status": status})
    metrics.observe_histogram("task_duration_seconds", duration_seconds, labels={"status": status})


def record_claim_error():
    metrics.increment_counter("claim_errors_total")


def record_recording_error():
    metrics.increment_counter("recording_errors_total")


def get_metrics_summary() -> dict:
    """Get a summary of all metrics."""
    return metrics.get_all_metrics()
