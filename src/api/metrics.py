"""Metrics service for tracking recommendation performance.

Thread-safe counters and latency tracking per recommendation kind. One
instance is created per application and exposed through ``/status``.
"""

import threading
from typing import Dict

KIND_SIMILAR = "similar"
KIND_PERSONALIZED = "personalized"


class _KindStats:
    def __init__(self):
        self.count = 0
        self.empty_results = 0
        self.total_latency_ms = 0.0
        self.min_latency_ms = float("inf")
        self.max_latency_ms = 0.0


class MetricsService:
    """Recommendation call counts and latency, grouped by kind."""

    def __init__(self):
        """Initialize metrics counters."""
        self._lock = threading.Lock()
        self._stats: Dict[str, _KindStats] = {}

    def record_recommendation(self, kind: str, latency_ms: float, num_results: int) -> None:
        """Record one recommendation call.

        Args:
            kind: Recommendation kind, e.g. "similar" or "personalized"
            latency_ms: Latency in milliseconds
            num_results: Number of items returned
        """
        with self._lock:
            stats = self._stats.setdefault(kind, _KindStats())
            stats.count += 1
            stats.total_latency_ms += latency_ms

            if num_results == 0:
                stats.empty_results += 1

            if latency_ms < stats.min_latency_ms:
                stats.min_latency_ms = latency_ms

            if latency_ms > stats.max_latency_ms:
                stats.max_latency_ms = latency_ms

    def get_metrics(self) -> Dict[str, Dict]:
        """Get current metrics.

        Returns:
            Dictionary keyed by kind, each with:
            - count: Total number of calls
            - empty_results: Calls that returned no items
            - average_latency_ms: Average latency in milliseconds
            - min_latency_ms: Minimum latency observed
            - max_latency_ms: Maximum latency observed
        """
        with self._lock:
            metrics = {}
            for kind, stats in self._stats.items():
                avg_latency = (
                    stats.total_latency_ms / stats.count if stats.count > 0 else 0.0
                )
                metrics[kind] = {
                    "count": stats.count,
                    "empty_results": stats.empty_results,
                    "average_latency_ms": round(avg_latency, 2),
                    "min_latency_ms": round(stats.min_latency_ms, 2)
                    if stats.min_latency_ms != float("inf")
                    else 0.0,
                    "max_latency_ms": round(stats.max_latency_ms, 2),
                }
            return metrics

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._stats.clear()
