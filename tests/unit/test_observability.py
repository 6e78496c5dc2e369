"""Tests for flowsync.observability.

Covers:
  - StructuredFormatter JSON output, extra fields, exceptions, stack info
  - get_logger idempotence, string levels and custom streams
  - record_warning: list append, structured log line, returned warning
  - NoopMetricsHook and the recording hook used across the suite
"""

import io
import json
import logging
import sys

from flowsync.models import SyncWarning
from flowsync.observability import (
    NoopMetricsHook,
    StructuredFormatter,
    get_logger,
    record_warning,
)


def make_record(msg, level=logging.INFO, exc_info=None, extra_fields=None):
    record = logging.LogRecord(
        name="test",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    if extra_fields is not None:
        record.extra_fields = extra_fields
    return record


# =========================================================================
# StructuredFormatter
# =========================================================================

class TestStructuredFormatter:

    def test_basic_format(self):
        result = json.loads(StructuredFormatter().format(make_record("hello world")))
        assert result["message"] == "hello world"
        assert result["level"] == "INFO"
        assert result["logger"] == "test"
        assert "ts" in result

    def test_extra_fields_merged(self):
        record = make_record("msg", extra_fields={"op": "create_pages", "created": 5})
        result = json.loads(StructuredFormatter().format(record))
        assert result["op"] == "create_pages"
        assert result["created"] == 5

    def test_non_json_values_stringified(self):
        record = make_record("msg", extra_fields={"error": ValueError("bad")})
        result = json.loads(StructuredFormatter().format(record))
        assert result["error"] == "bad"

    def test_exception_info_included(self):
        try:
            raise ValueError("test error")
        except ValueError:
            exc_info = sys.exc_info()
        result = json.loads(StructuredFormatter().format(make_record("boom", exc_info=exc_info)))
        assert "ValueError: test error" in result["exception"]

    def test_stack_info_included(self):
        record = make_record("msg")
        record.stack_info = "Stack (most recent call last):\n  frame"
        result = json.loads(StructuredFormatter().format(record))
        assert "frame" in result["stack_info"]

    def test_single_line(self):
        record = make_record("line one\nline two")
        assert "\n" not in StructuredFormatter().format(record)


# =========================================================================
# get_logger
# =========================================================================

class TestGetLogger:

    def test_returns_logger_with_structured_handler(self):
        logger = get_logger("flowsync.test.handler")
        assert logger.handlers
        assert isinstance(logger.handlers[0].formatter, StructuredFormatter)
        assert logger.propagate is False

    def test_string_level(self):
        logger = get_logger("flowsync.test.level", level="warning")
        assert logger.level == logging.WARNING

    def test_idempotent_no_duplicate_handlers(self):
        first = get_logger("flowsync.test.idem")
        count = len(first.handlers)
        second = get_logger("flowsync.test.idem")
        assert first is second
        assert len(second.handlers) == count

    def test_custom_stream(self):
        stream = io.StringIO()
        logger = get_logger("flowsync.test.stream", stream=stream)
        logger.info("hi", extra={"extra_fields": {"page_id": "p1"}})
        line = json.loads(stream.getvalue().strip())
        assert line["message"] == "hi"
        assert line["page_id"] == "p1"


# =========================================================================
# record_warning
# =========================================================================

class TestRecordWarning:

    def test_appends_and_returns(self):
        warnings = []
        log = get_logger("flowsync.test.warnings.append", stream=io.StringIO())
        warning = record_warning(warnings, log, "UNMATCHED_OPTION", "no option", field="Tags")
        assert warnings == [warning]
        assert warning == SyncWarning(code="UNMATCHED_OPTION", message="no option", context={"field": "Tags"})

    def test_none_list_still_logs(self):
        stream = io.StringIO()
        log = get_logger("flowsync.test.warnings.none", stream=stream)
        warning = record_warning(None, log, "STATUS_FALLBACK", "fallback", status="Published")
        assert warning.code == "STATUS_FALLBACK"
        line = json.loads(stream.getvalue().strip())
        assert line["level"] == "WARNING"
        assert line["warning_code"] == "STATUS_FALLBACK"
        assert line["status"] == "Published"


# =========================================================================
# Metrics hooks
# =========================================================================

class TestMetricsHooks:

    def test_noop_hook_accepts_all_calls(self):
        hook = NoopMetricsHook()
        assert hook.increment("flowsync.requests_total", tags={"service": "notion"}) is None
        assert hook.timing("flowsync.request_duration_ms", 12.5) is None
        assert hook.gauge("flowsync.id_map_size", 3) is None

    def test_recording_hook(self, metrics):
        metrics.increment("a", tags={"k": "v"})
        metrics.timing("b", 1.5)
        metrics.gauge("c", 2)
        assert metrics.names() == ["a"]
        assert metrics.names("timings") == ["b"]
        assert metrics.gauges == [{"name": "c", "value": 2, "tags": None}]
