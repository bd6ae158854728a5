"""Prometheus metrics for the HTTP surface and the index registry."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Generator


REQUEST_LATENCY = Histogram(
    "search_bridge_request_latency_seconds",
    "Request latency in seconds",
    ["route", "method"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

REQUEST_COUNT = Counter(
    "search_bridge_requests_total",
    "Total HTTP requests",
    ["route", "method", "status"],
)

QUERY_LATENCY = Histogram(
    "search_bridge_query_latency_seconds",
    "Query execution latency",
    ["target"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5),
)

INDEX_COUNT = Gauge(
    "search_bridge_indexes",
    "Registered indexes",
)

VIEW_REBUILDS = Counter(
    "search_bridge_view_rebuilds_total",
    "Federated view rebuilds",
    ["view"],
)

METADATA_FAULTS = Counter(
    "search_bridge_metadata_faults_total",
    "Index metadata entries replaced by defaults",
    ["key"],
)


@contextmanager
def track_latency(histogram: Histogram, **labels: str) -> Generator[None, None, None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
