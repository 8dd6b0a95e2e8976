"""InboundContextEstablisher — creates, finalizes and tears down request contexts."""

from __future__ import annotations

import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager

import structlog
from starlette.requests import Request
from starlette.responses import Response

from fastapi_request_correlation._types import SessionReader
from fastapi_request_correlation.config import CorrelationSettings, get_settings
from fastapi_request_correlation.context import RequestContext
from fastapi_request_correlation.headers import (
    CLIENT_IP_HEADERS,
    REFERER,
    UNKNOWN,
    USER_AGENT,
    X_CORRELATION_ID,
    X_PARENT_SPAN_ID,
    X_REQUEST_DURATION,
    X_REQUEST_ID,
    X_RESPONSE_REQUEST_ID,
    X_RESPONSE_SPAN_ID,
    X_RESPONSE_TRACE_ID,
    X_SPAN_ID,
    X_TRACE_ID,
)
from fastapi_request_correlation.ids import new_request_id, new_span_id, new_trace_id
from fastapi_request_correlation.logging import (
    bind_request_context,
    clear_request_context,
)

logger = structlog.get_logger(__name__)


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def resolve_client_ip(request: Request) -> str | None:
    """Originating client address, honouring proxy headers before the peer address."""
    for name in CLIENT_IP_HEADERS:
        value = _header(request.headers, name)
        if value is None or value.lower() == UNKNOWN:
            continue
        first = value.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None


class InboundContextEstablisher:
    """Runs at the start and end of every inbound request."""

    def __init__(
        self,
        settings: CorrelationSettings | None = None,
        *,
        session_reader: SessionReader | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._session_reader = session_reader or self._read_session_cookie

    def on_request_start(self, request: Request) -> RequestContext:
        headers = request.headers
        parent_span_id = _header(headers, X_SPAN_ID)

        ctx = RequestContext(
            request_id=self._resolve_request_id(headers),
            trace_id=_header(headers, X_TRACE_ID) or new_trace_id(),
            span_id=new_span_id(avoid=parent_span_id),
            parent_span_id=parent_span_id,
            http_session_id=self._read_http_session_id(request),
            client_ip=resolve_client_ip(request),
            user_agent=_header(headers, USER_AGENT),
            referer=_header(headers, REFERER),
            request_uri=request.url.path,
            request_method=request.method,
            request=request,
        )
        bind_request_context(ctx)
        logger.debug(
            "request.start",
            request_id=ctx.request_id,
            uri=ctx.request_uri,
            method=ctx.request_method,
            trace_id=ctx.trace_id,
            span_id=ctx.span_id,
            parent_span_id=ctx.parent_span_id,
        )
        return ctx

    def on_request_end(
        self,
        request: Request,
        response: Response | None,
        ctx: RequestContext,
        error: BaseException | None = None,
    ) -> None:
        try:
            self.complete(request, response, ctx, error)
        finally:
            clear_request_context()

    def complete(
        self,
        request: Request,
        response: Response | None,
        ctx: RequestContext,
        error: BaseException | None = None,
    ) -> None:
        """Finalize ``ctx`` and write the response headers, keeping the log context bound.

        Callers that still log on behalf of the request afterwards, such as
        end-of-request hooks, clear the log context themselves.
        """
        if not ctx.finalized:
            status = response.status_code if response is not None else 500
            duration_ms = max(int((time.time() - ctx.start_time) * 1000), 0)
            ctx.finalize(status, duration_ms, error)
        bind_request_context(ctx)

        if error is not None:
            logger.error(
                "request.failed",
                request_id=ctx.request_id,
                error_type=ctx.exception_type,
                error=ctx.exception_message,
                exc_info=error,
            )
        else:
            logger.info(
                "request.completed",
                request_id=ctx.request_id,
                status=ctx.response_status,
                duration_ms=ctx.duration_ms,
            )

        if response is not None:
            self.write_response_headers(response, ctx)

    @contextmanager
    def establish(self, request: Request) -> Iterator[RequestContext]:
        """Scope a context to a block; the log context is cleared on every exit path.

        A context still open when the block raises is finalized as a failure.
        """
        ctx = self.on_request_start(request)
        try:
            yield ctx
        except BaseException as exc:
            if not ctx.finalized:
                self.on_request_end(request, None, ctx, exc)
            raise
        finally:
            clear_request_context()

    @staticmethod
    def write_response_headers(response: Response, ctx: RequestContext) -> None:
        response.headers[X_REQUEST_ID] = ctx.request_id
        response.headers[X_CORRELATION_ID] = ctx.request_id
        response.headers[X_TRACE_ID] = ctx.trace_id
        response.headers[X_SPAN_ID] = ctx.span_id
        if ctx.parent_span_id:
            response.headers[X_PARENT_SPAN_ID] = ctx.parent_span_id

        response.headers[X_RESPONSE_TRACE_ID] = ctx.trace_id
        response.headers[X_RESPONSE_SPAN_ID] = ctx.span_id
        response.headers[X_RESPONSE_REQUEST_ID] = ctx.request_id
        if ctx.duration_ms is not None:
            response.headers[X_REQUEST_DURATION] = str(ctx.duration_ms)

    @staticmethod
    def _resolve_request_id(headers: Mapping[str, str]) -> str:
        request_id = _header(headers, X_REQUEST_ID)
        if request_id:
            logger.debug("request.id_inherited", source=X_REQUEST_ID)
            return request_id

        request_id = _header(headers, X_CORRELATION_ID)
        if request_id:
            logger.debug("request.id_inherited", source=X_CORRELATION_ID)
            return request_id

        return new_request_id()

    def _read_http_session_id(self, request: Request) -> str | None:
        try:
            return self._session_reader(request) or None
        except Exception as exc:
            logger.debug("request.session_id_unavailable", error=str(exc))
            return None

    def _read_session_cookie(self, request: Request) -> str | None:
        return request.cookies.get(self._settings.session_cookie_name)
