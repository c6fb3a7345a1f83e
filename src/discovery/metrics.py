"""Prometheus counters and latency histograms.

A ``MetricsCollector`` is constructed explicitly (one per application, one per
test) and passed to the code that records into it.  Each collector owns its
own ``CollectorRegistry``, so two collectors never share samples.  Keys follow
the ``"service:operation"`` convention, e.g. ``"recommend:social.failed"``,
and become the ``key`` label of the exported series.
"""

import threading
import time

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

EVENTS_METRIC = "discovery_events"
LATENCY_METRIC = "discovery_latency_seconds"


class MetricsCollector:
    def __init__(self):
        self._lock = threading.Lock()
        self.registry = CollectorRegistry()
        self._events = Counter(
            EVENTS_METRIC,
            "Discovery events by key",
            ["key"],
            registry=self.registry,
        )
        self._latency = Histogram(
            LATENCY_METRIC,
            "Discovery operation latency by key",
            ["key"],
            registry=self.registry,
        )
        self._started_at = time.time()

    def incr(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._events.labels(key=key).inc(amount)

    def observe(self, key: str, latency_ms: float) -> None:
        with self._lock:
            self._latency.labels(key=key).observe(latency_ms / 1000.0)

    def count(self, key: str) -> int:
        value = self.registry.get_sample_value(f"{EVENTS_METRIC}_total", {"key": key})
        return int(value) if value is not None else 0

    def _snapshot(self) -> dict:
        counters: dict[str, int] = {}
        for metric in self._events.collect():
            for sample in metric.samples:
                if sample.name == f"{EVENTS_METRIC}_total":
                    counters[sample.labels["key"]] = int(sample.value)

        latency: dict[str, dict] = {}
        for metric in self._latency.collect():
            for sample in metric.samples:
                stats = latency.setdefault(sample.labels.get("key", ""), {"count": 0, "sum_ms": 0.0})
                if sample.name == f"{LATENCY_METRIC}_count":
                    stats["count"] = int(sample.value)
                elif sample.name == f"{LATENCY_METRIC}_sum":
                    stats["sum_ms"] = sample.value * 1000.0
        for stats in latency.values():
            stats["avg_ms"] = stats["sum_ms"] / stats["count"] if stats["count"] else 0.0

        return {
            "counters": counters,
            "latency": latency,
            "since": self._started_at,
            "generated_at": time.time(),
        }

    def _clear(self) -> None:
        self._events.clear()
        self._latency.clear()
        self._started_at = time.time()

    def snapshot(self) -> dict:
        with self._lock:
            return self._snapshot()

    def reset(self) -> None:
        with self._lock:
            self._clear()

    def flush(self) -> dict:
        """Return the current snapshot and start a new collection window.

        Reading and clearing happen under one lock, so no increment recorded
        between them is lost.
        """
        with self._lock:
            snap = self._snapshot()
            self._clear()
        return snap

    def render(self) -> bytes:
        """The registry in the Prometheus text exposition format."""
        return generate_latest(self.registry)


class timed:
    """Context manager recording the elapsed milliseconds under *key*."""

    def __init__(self, metrics: MetricsCollector, key: str):
        self._metrics = metrics
        self._key = key
        self._start = 0.0

    def __enter__(self):
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        self._metrics.observe(self._key, (time.perf_counter() - self._start) * 1000)
        return False
