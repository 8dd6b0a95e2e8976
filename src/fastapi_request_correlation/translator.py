"""ErrorTranslator — maps downstream failure responses onto typed errors."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from fastapi_request_correlation.exceptions import (
    BadRequest,
    DownstreamError,
    InternalError,
    NotFound,
    RateLimited,
    Unavailable,
)
from fastapi_request_correlation.headers import (
    UNKNOWN,
    X_REQUEST_ID,
    X_RESPONSE_TRACE_ID,
    X_SESSION_ID,
)

logger = structlog.get_logger(__name__)

_STATUS_ERRORS: dict[int, tuple[type[DownstreamError], str]] = {
    404: (NotFound, "Resource not found"),
    400: (BadRequest, "Bad request"),
    429: (RateLimited, "Rate limit exceeded"),
    500: (InternalError, "Internal server error"),
    503: (Unavailable, "Service unavailable"),
}


class ErrorTranslator:
    """Total translation of a failed downstream response into a ``DownstreamError``.

    ``translate`` never raises: unreadable headers become ``"unknown"`` and an
    unreadable body becomes ``b""``. Fields that had to fall back because
    extraction itself failed are listed on ``error.degraded``.
    """

    def translate(
        self,
        status_code: int,
        response_headers: Any,
        response_body: Any,
        method_key: str,
        *,
        trace_id: str | None = None,
    ) -> DownstreamError:
        degraded: list[str] = []
        request_id = self._header(response_headers, X_REQUEST_ID, degraded)
        session_id = self._header(response_headers, X_SESSION_ID, degraded)
        response_trace_id = self._header(response_headers, X_RESPONSE_TRACE_ID, degraded)
        body = self._body(response_body, degraded)

        logger.error(
            "downstream.error",
            method=method_key,
            status=status_code,
            request_id=request_id,
            session_id=session_id,
            trace_id=trace_id or UNKNOWN,
            response_trace_id=response_trace_id,
        )

        mapped = _STATUS_ERRORS.get(status_code)
        if mapped is not None:
            error_class, summary = mapped
            message = f"{summary} for {method_key} (HTTP {status_code})"
        else:
            error_class = BadRequest
            message = (
                f"Service call failed for {method_key} "
                f"[RequestID: {request_id}, SessionID: {session_id}, "
                f"TraceID: {trace_id or UNKNOWN}] with status {status_code}"
            )

        return error_class(
            message,
            method_key=method_key,
            status=status_code,
            request_id=request_id,
            session_id=session_id,
            response_trace_id=response_trace_id,
            body=body,
            degraded=tuple(degraded),
        )

    def translate_response(
        self,
        response: httpx.Response,
        method_key: str,
        *,
        trace_id: str | None = None,
    ) -> DownstreamError:
        return self.translate(
            response.status_code,
            response.headers,
            response,
            method_key,
            trace_id=trace_id,
        )

    @staticmethod
    def _header(headers: Any, name: str, degraded: list[str]) -> str:
        try:
            if headers is None:
                return UNKNOWN
            if callable(getattr(headers, "get_list", None)):
                # Repeated headers: first value only, never the comma-joined form.
                values = headers.get_list(name)
                value = values[0] if values else None
            else:
                value = headers.get(name)
                if value is None:
                    lowered = name.lower()
                    value = next(
                        (v for k, v in headers.items() if str(k).lower() == lowered),
                        None,
                    )
            if isinstance(value, (list, tuple)):
                value = value[0] if value else None
            if value is None:
                return UNKNOWN
            if isinstance(value, bytes):
                value = value.decode("latin-1")
            text = str(value).strip()
            return text or UNKNOWN
        except Exception as exc:
            degraded.append(name)
            logger.warning("downstream.header_unreadable", header=name, error=str(exc))
            return UNKNOWN

    @staticmethod
    def _body(body: Any, degraded: list[str]) -> bytes:
        try:
            if body is None:
                return b""
            if callable(getattr(body, "read", None)):
                body = body.read()
            if isinstance(body, str):
                return body.encode("utf-8")
            if isinstance(body, (bytes, bytearray, memoryview)):
                return bytes(body)
            raise TypeError(f"unsupported body type {type(body).__name__}")
        except Exception as exc:
            degraded.append("body")
            logger.warning("downstream.body_unreadable", error=str(exc))
            return b""
