"""Tests for structured logging, trace context and metrics helpers."""

import json
import logging

import pytest

from search_bridge.observability.context import get_trace_context, set_trace_context, trace_context, update_span_id
from search_bridge.observability.logging import JsonFormatter, configure_logging
from search_bridge.observability.metrics import QUERY_LATENCY, get_metrics, track_latency
from search_bridge.observability.tracing import _extract_index_from_path


@pytest.fixture(autouse=True)
def reset_trace_context():
    token = trace_context.set(None)
    yield
    trace_context.reset(token)


def make_record(name="search_bridge.registry", msg="hello %s", args=("world",), **extra):
    record = logging.LogRecord(name, logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestJsonFormatter:
    def test_formats_message_with_trace_and_component(self):
        set_trace_context("t" * 32, "s" * 16, index="docs")

        payload = json.loads(JsonFormatter().format(make_record()))

        assert payload["message"] == "hello world"
        assert payload["level"] == "INFO"
        assert payload["trace_id"] == "t" * 32
        assert payload["span_id"] == "s" * 16
        assert payload["component"] == "registry"
        assert payload["index"] == "docs"

    def test_extra_fields_are_included(self):
        payload = json.loads(JsonFormatter().format(make_record(languages={"en"})))

        assert payload["languages"] == ["en"]

    def test_long_messages_are_truncated(self):
        payload = json.loads(JsonFormatter().format(make_record(msg="x" * 5000, args=None)))

        assert payload["message"].endswith("...")
        assert len(payload["message"]) == JsonFormatter.MAX_MESSAGE_LEN + 3


@pytest.mark.unit
class TestTraceContext:
    def test_context_is_generated_on_demand(self):
        ctx = get_trace_context()

        assert len(ctx["trace_id"]) == 32
        assert len(ctx["span_id"]) == 16

    def test_update_span_keeps_trace(self):
        set_trace_context("abc", "one")
        update_span_id("two")

        assert get_trace_context() == {"trace_id": "abc", "span_id": "two"}


@pytest.mark.unit
def test_configure_logging_applies_levels():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging("warning", json_output=False, logger_levels={"search_bridge.registry": "debug"})

        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert logging.getLogger("search_bridge.registry").level == logging.DEBUG
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        logging.getLogger("search_bridge.registry").setLevel(logging.NOTSET)


@pytest.mark.unit
def test_track_latency_observes_histogram():
    with track_latency(QUERY_LATENCY, target="unit-test"):
        pass

    assert b'search_bridge_query_latency_seconds_count{target="unit-test"}' in get_metrics()


@pytest.mark.unit
@pytest.mark.parametrize(
    ("path", "expected"),
    [("/docs/query", "docs"), ("/_all", "_all"), ("/_/health", None), ("/", None)],
)
def test_extract_index_from_path(path, expected):
    assert _extract_index_from_path(path) == expected
