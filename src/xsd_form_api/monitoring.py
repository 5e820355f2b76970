"""In-process performance counters for the API and the schema cache.

The monitor aggregates lightweight runtime telemetry so the REST layer and the
schema cache can record events without embedding aggregation logic. No
external backend is required; summaries are primitive-only dictionaries ready
for JSON encoding.

Collected domains:
        * Cache performance (hits, misses, evictions, size)
        * Endpoint latency and error rates
        * Engine operations (parse, validate, generate, import) and their failures

Example::

        from xsd_form_api.monitoring import get_monitor
        monitor = get_monitor()
        monitor.record_endpoint_request("POST /generate", response_time=0.012, status_code=200)
        monitor.record_operation("generate")
        print(monitor.get_performance_summary()["api"]["total_requests"])  # -> 1
"""

from __future__ import annotations

import threading
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class CacheMetrics:
    """Aggregate cache counters.

    Attributes:
        hits: Successful cache lookups.
        misses: Lookups that required parsing.
        evictions: Entries dropped because their TTL expired.
        cache_size: Current number of entries.
    """

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    cache_size: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        total = self.total_requests
        return self.hits / total if total else 0.0


@dataclass
class EndpointMetrics:
    """Aggregated metrics for a single endpoint."""

    total_requests: int = 0
    total_response_time: float = 0.0
    error_count: int = 0
    last_accessed: Optional[datetime] = None
    response_times: deque = field(default_factory=lambda: deque(maxlen=100))

    @property
    def average_response_time(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.total_response_time / self.total_requests

    @property
    def error_rate(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.error_count / self.total_requests


class PerformanceMonitor:
    """Thread-safe recorder shared as a process-wide singleton."""

    def __init__(self) -> None:
        self.start_time = datetime.now()
        self._lock = threading.RLock()
        self.cache_metrics = CacheMetrics()
        self.endpoint_metrics: Dict[str, EndpointMetrics] = defaultdict(EndpointMetrics)
        self.operations: Dict[str, int] = defaultdict(int)
        self.failures: Dict[str, int] = defaultdict(int)
        self.recent_errors: deque = deque(maxlen=100)

    def record_cache_hit(self) -> None:
        with self._lock:
            self.cache_metrics.hits += 1

    def record_cache_miss(self) -> None:
        with self._lock:
            self.cache_metrics.misses += 1

    def record_cache_eviction(self) -> None:
        with self._lock:
            self.cache_metrics.evictions += 1

    def update_cache_size(self, cache_size: int) -> None:
        with self._lock:
            self.cache_metrics.cache_size = cache_size

    def record_operation(self, name: str, failed: bool = False) -> None:
        """Count one engine operation (``parse``, ``validate``, ...)."""
        with self._lock:
            self.operations[name] += 1
            if failed:
                self.failures[name] += 1

    def record_endpoint_request(
        self, endpoint: str, response_time: float, status_code: int = 200
    ) -> None:
        """Record an API endpoint invocation.

        Args:
            endpoint: Logical endpoint name (``"POST /generate"``).
            response_time: Handling time in seconds.
            status_code: HTTP status; ``>= 400`` counts as an error.
        """
        with self._lock:
            metrics = self.endpoint_metrics[endpoint]
            metrics.total_requests += 1
            metrics.total_response_time += response_time
            metrics.last_accessed = datetime.now()
            metrics.response_times.append(response_time)
            if status_code >= 400:
                metrics.error_count += 1
                self.recent_errors.append(
                    {
                        "endpoint": endpoint,
                        "status_code": status_code,
                        "timestamp": datetime.now().isoformat(),
                    }
                )

    def get_performance_summary(self) -> Dict[str, Any]:
        """Return a consolidated snapshot of all recorded metrics."""
        with self._lock:
            top_endpoints = sorted(
                self.endpoint_metrics.items(),
                key=lambda item: item[1].total_requests,
                reverse=True,
            )[:10]
            return {
                "timestamp": datetime.now().isoformat(),
                "uptime_seconds": round(
                    (datetime.now() - self.start_time).total_seconds(), 2
                ),
                "cache": {
                    "hit_rate": round(self.cache_metrics.hit_rate * 100, 2),
                    "hits": self.cache_metrics.hits,
                    "misses": self.cache_metrics.misses,
                    "evictions": self.cache_metrics.evictions,
                    "cache_size": self.cache_metrics.cache_size,
                },
                "api": {
                    "total_requests": sum(
                        m.total_requests for m in self.endpoint_metrics.values()
                    ),
                    "top_endpoints": [
                        {
                            "endpoint": endpoint,
                            "requests": metrics.total_requests,
                            "avg_response_time_ms": round(
                                metrics.average_response_time * 1000, 2
                            ),
                            "error_rate": round(metrics.error_rate * 100, 2),
                        }
                        for endpoint, metrics in top_endpoints
                    ],
                },
                "operations": dict(self.operations),
                "failures": dict(self.failures),
                "errors": {"total_recent_errors": len(self.recent_errors)},
            }

    def reset_metrics(self) -> None:
        """Reset all counters (primarily for tests)."""
        with self._lock:
            self.cache_metrics = CacheMetrics()
            self.endpoint_metrics.clear()
            self.operations.clear()
            self.failures.clear()
            self.recent_errors.clear()
            self.start_time = datetime.now()


_monitor: Optional[PerformanceMonitor] = None


def get_monitor() -> PerformanceMonitor:
    """Return (and lazily initialize) the process-wide monitor."""
    global _monitor
    if _monitor is None:
        _monitor = PerformanceMonitor()
    return _monitor
