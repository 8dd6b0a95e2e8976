"""OutboundContextPropagator — stamps correlation headers onto downstream calls."""

from __future__ import annotations

import time
from dataclasses import dataclass

import httpx
import structlog

from fastapi_request_correlation.config import (
    CorrelationSettings,
    ServiceTarget,
    get_settings,
    resolve_app_version,
)
from fastapi_request_correlation.context import RequestContext
from fastapi_request_correlation.exceptions import ContextMissing
from fastapi_request_correlation.headers import (
    ACCEPT,
    APPLICATION_JSON,
    CACHE_CONTROL,
    CONTENT_TYPE,
    NO_CACHE,
    X_AUTH_TYPE,
    X_AUTHENTICATED,
    X_CORRELATION_ID,
    X_HTTP_SESSION_ID,
    X_PARENT_SPAN_ID,
    X_REQUEST_ID,
    X_REQUEST_METHOD,
    X_REQUEST_TIMESTAMP,
    X_REQUEST_URI,
    X_SESSION_ID,
    X_SESSION_ID_LOWERCASE,
    X_SOURCE_CONTAINER,
    X_SOURCE_SERVICE,
    X_SOURCE_VERSION,
    X_SPAN_ID,
    X_TARGET_SERVICE,
    X_TRACE_ID,
    X_USER_EMAIL,
    X_USER_NAME,
)
from fastapi_request_correlation.ids import new_span_id

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OutgoingRequest:
    """Immutable description of one outbound call and the headers it carries."""

    method: str
    url: str
    target: str
    span_id: str
    headers: tuple[tuple[str, str], ...]

    def header(self, name: str) -> str | None:
        """First value of ``name``, matched case-insensitively."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None

    def header_names(self) -> frozenset[str]:
        return frozenset(key.lower() for key, _ in self.headers)


class _HeaderBuilder:
    """Ordered header pairs where ``set`` replaces a name and ``add`` appends."""

    def __init__(self) -> None:
        self._pairs: list[tuple[str, str]] = []

    def set(self, name: str, value: str | None) -> None:
        if value is None or value == "":
            return
        lowered = name.lower()
        self._pairs = [(k, v) for k, v in self._pairs if k.lower() != lowered]
        self._pairs.append((name, value))

    def add(self, name: str, value: str | None) -> None:
        if value is None or value == "":
            return
        self._pairs.append((name, value))

    def build(self) -> tuple[tuple[str, str], ...]:
        return tuple(self._pairs)


class OutboundContextPropagator:
    """Computes the headers every downstream call carries for a request context."""

    def __init__(self, settings: CorrelationSettings | None = None) -> None:
        self._settings = settings or get_settings()
        self._version = resolve_app_version(self._settings)

    @property
    def source_version(self) -> str:
        return self._version

    def prepare(
        self,
        ctx: RequestContext | None,
        target: ServiceTarget,
        method: str,
        url: str,
        *,
        timestamp_ms: int | None = None,
    ) -> OutgoingRequest:
        """Pure transform from (context, target) to the outgoing request descriptor."""
        if ctx is None:
            raise ContextMissing(
                f"Outbound call to {target.name} requires an established request context"
            )

        span_id = new_span_id(avoid=ctx.span_id)
        builder = _HeaderBuilder()

        for name, value in ctx.forward_headers:
            builder.add(name, value)

        builder.set(CONTENT_TYPE, APPLICATION_JSON)
        builder.set(ACCEPT, APPLICATION_JSON)
        builder.set(CACHE_CONTROL, NO_CACHE)

        # Session
        builder.set(X_SESSION_ID, ctx.session_id)
        builder.add(X_SESSION_ID_LOWERCASE, ctx.session_id)
        builder.set(X_HTTP_SESSION_ID, ctx.http_session_id)

        # Correlation
        builder.set(X_REQUEST_ID, ctx.request_id)
        builder.set(X_CORRELATION_ID, ctx.request_id)
        builder.set(X_TRACE_ID, ctx.trace_id)
        builder.set(X_PARENT_SPAN_ID, ctx.span_id)
        builder.set(X_SPAN_ID, span_id)

        # User
        builder.set(X_USER_NAME, ctx.user_name)
        builder.set(X_USER_EMAIL, ctx.user_email)
        builder.set(X_AUTH_TYPE, ctx.auth_type)
        if ctx.auth_type:
            builder.set(X_AUTHENTICATED, "true" if ctx.is_authenticated else "false")

        # Service identity
        builder.set(X_SOURCE_SERVICE, self._settings.service_name)
        builder.set(X_SOURCE_VERSION, self._version)
        builder.set(X_TARGET_SERVICE, target.name)
        builder.set(X_SOURCE_CONTAINER, self._settings.container_host)

        builder.set(X_REQUEST_URI, ctx.request_uri)
        builder.set(X_REQUEST_METHOD, ctx.request_method)
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        builder.set(X_REQUEST_TIMESTAMP, str(timestamp_ms))

        return OutgoingRequest(
            method=method.upper(),
            url=url,
            target=target.name,
            span_id=span_id,
            headers=builder.build(),
        )

    def before_send(
        self,
        request: httpx.Request,
        target: ServiceTarget,
        ctx: RequestContext | None,
    ) -> None:
        """Stamp ``request`` in place with the headers ``prepare`` computes."""
        outgoing = self.prepare(ctx, target, request.method, str(request.url))
        replaced = outgoing.header_names()
        kept = [
            (key, value)
            for key, value in request.headers.multi_items()
            if key.lower() not in replaced
        ]
        request.headers = httpx.Headers(kept + list(outgoing.headers))

        logger.info(
            "downstream.request",
            method=outgoing.method,
            url=outgoing.url,
            request_id=outgoing.header(X_REQUEST_ID),
            trace_id=outgoing.header(X_TRACE_ID),
            target=outgoing.target,
        )
