"""Observability: structured logging, Prometheus metrics and OpenTelemetry tracing."""

from search_bridge.observability.context import get_trace_context, set_trace_context, trace_context
from search_bridge.observability.logging import JsonFormatter, configure_logging
from search_bridge.observability.metrics import (
    INDEX_COUNT,
    METADATA_FAULTS,
    QUERY_LATENCY,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    VIEW_REBUILDS,
    get_metrics,
    get_metrics_content_type,
    track_latency,
)
from search_bridge.observability.tracing import create_span, get_tracer, init_tracing, trace_request


__all__ = [
    "INDEX_COUNT",
    "METADATA_FAULTS",
    "QUERY_LATENCY",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "VIEW_REBUILDS",
    "JsonFormatter",
    "configure_logging",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_tracing",
    "set_trace_context",
    "trace_context",
    "trace_request",
]
