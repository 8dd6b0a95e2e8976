"""Tests for ErrorTranslator."""

from __future__ import annotations

from typing import Any

import httpx
import pytest
from structlog.testing import capture_logs

from fastapi_request_correlation.exceptions import (
    BadRequest,
    InternalError,
    NotFound,
    RateLimited,
    Unavailable,
)
from fastapi_request_correlation.translator import ErrorTranslator

METHOD_KEY = "pet-service#GET /pets"

ECHO_HEADERS = {
    "X-Request-ID": "r-1",
    "X-Session-ID": "s-1",
    "X-Response-Trace-ID": "t-1",
}


class BrokenHeaders:
    def get(self, name: str) -> Any:
        raise RuntimeError("header map is gone")

    def items(self) -> Any:
        raise RuntimeError("header map is gone")


class BrokenBody:
    def read(self) -> bytes:
        raise OSError("stream closed")


@pytest.fixture
def translator() -> ErrorTranslator:
    return ErrorTranslator()


class TestStatusMapping:
    @pytest.mark.parametrize(
        ("status", "error_class"),
        [
            (404, NotFound),
            (400, BadRequest),
            (429, RateLimited),
            (500, InternalError),
            (503, Unavailable),
        ],
    )
    def test_known_statuses(
        self, translator: ErrorTranslator, status: int, error_class: type
    ) -> None:
        error = translator.translate(status, ECHO_HEADERS, b"{}", METHOD_KEY)
        assert type(error) is error_class
        assert error.status == status
        assert error.method_key == METHOD_KEY
        assert METHOD_KEY in error.message
        assert f"HTTP {status}" in error.message

    def test_unmapped_status_falls_back_to_bad_request(
        self, translator: ErrorTranslator
    ) -> None:
        error = translator.translate(
            418, ECHO_HEADERS, b"teapot", METHOD_KEY, trace_id="trace-9"
        )
        assert type(error) is BadRequest
        assert error.status == 418
        assert "RequestID: r-1" in error.message
        assert "SessionID: s-1" in error.message
        assert "TraceID: trace-9" in error.message
        assert "status 418" in error.message


class TestExtraction:
    def test_echoed_ids(self, translator: ErrorTranslator) -> None:
        error = translator.translate(404, ECHO_HEADERS, b"missing", METHOD_KEY)
        assert error.request_id == "r-1"
        assert error.session_id == "s-1"
        assert error.response_trace_id == "t-1"
        assert error.body == b"missing"
        assert error.degraded == ()

    def test_header_lookup_is_case_insensitive(self, translator: ErrorTranslator) -> None:
        error = translator.translate(404, {"x-request-id": "r-2"}, b"", METHOD_KEY)
        assert error.request_id == "r-2"

    def test_absent_headers_are_unknown(self, translator: ErrorTranslator) -> None:
        error = translator.translate(500, {}, None, METHOD_KEY)
        assert error.request_id == "unknown"
        assert error.session_id == "unknown"
        assert error.response_trace_id == "unknown"
        assert error.body == b""
        assert error.degraded == ()

    def test_missing_header_map(self, translator: ErrorTranslator) -> None:
        error = translator.translate(500, None, b"", METHOD_KEY)
        assert error.request_id == "unknown"

    def test_broken_headers_never_raise(self, translator: ErrorTranslator) -> None:
        error = translator.translate(503, BrokenHeaders(), b"", METHOD_KEY)
        assert type(error) is Unavailable
        assert error.request_id == "unknown"
        assert error.session_id == "unknown"
        assert error.response_trace_id == "unknown"
        assert set(error.degraded) == {
            "X-Request-ID",
            "X-Session-ID",
            "X-Response-Trace-ID",
        }

    def test_unreadable_body_becomes_empty(self, translator: ErrorTranslator) -> None:
        error = translator.translate(500, ECHO_HEADERS, BrokenBody(), METHOD_KEY)
        assert error.body == b""
        assert error.degraded == ("body",)

    def test_repeated_header_uses_first_value(self, translator: ErrorTranslator) -> None:
        headers = httpx.Headers([("X-Request-ID", "r-1"), ("X-Request-ID", "r-2")])
        error = translator.translate(404, headers, b"", METHOD_KEY)
        assert error.request_id == "r-1"

    def test_non_buffer_body_becomes_empty(self, translator: ErrorTranslator) -> None:
        error = translator.translate(500, ECHO_HEADERS, 42, METHOD_KEY)
        assert error.body == b""
        assert error.degraded == ("body",)

    def test_text_body_encoded(self, translator: ErrorTranslator) -> None:
        error = translator.translate(400, {}, "bad input", METHOD_KEY)
        assert error.body == b"bad input"


class TestTranslateResponse:
    def test_reads_httpx_response(self, translator: ErrorTranslator) -> None:
        response = httpx.Response(404, headers=ECHO_HEADERS, content=b"no pets")
        error = translator.translate_response(response, METHOD_KEY)
        assert type(error) is NotFound
        assert error.request_id == "r-1"
        assert error.body == b"no pets"


class TestLogging:
    def test_logs_failure_with_ids(self, translator: ErrorTranslator) -> None:
        with capture_logs() as logs:
            translator.translate(500, ECHO_HEADERS, b"", METHOD_KEY, trace_id="trace-9")

        events = [entry for entry in logs if entry["event"] == "downstream.error"]
        assert len(events) == 1
        assert events[0]["log_level"] == "error"
        assert events[0]["method"] == METHOD_KEY
        assert events[0]["status"] == 500
        assert events[0]["request_id"] == "r-1"
        assert events[0]["trace_id"] == "trace-9"
