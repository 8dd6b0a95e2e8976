"""DownstreamClient — blocking HTTP client for calls to downstream services."""

from __future__ import annotations

from types import TracebackType
from typing import Any

import httpx
import structlog

from fastapi_request_correlation.config import (
    CorrelationSettings,
    ServiceTarget,
    get_settings,
)
from fastapi_request_correlation.context import RequestContext
from fastapi_request_correlation.exceptions import TransportError
from fastapi_request_correlation.outbound import OutboundContextPropagator
from fastapi_request_correlation.translator import ErrorTranslator

logger = structlog.get_logger(__name__)


class DownstreamClient:
    """Calls one downstream service on behalf of a request context.

    Every call is stamped by the propagator, uses fixed connect/read
    timeouts and follows redirects. Non-2xx responses are raised as the
    ``DownstreamError`` the translator produces; timeouts and connection
    failures are raised as ``TransportError`` and never retried.
    """

    def __init__(
        self,
        target: ServiceTarget,
        *,
        settings: CorrelationSettings | None = None,
        propagator: OutboundContextPropagator | None = None,
        translator: ErrorTranslator | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.target = target
        self._propagator = propagator or OutboundContextPropagator(settings)
        self._translator = translator or ErrorTranslator()
        self._http = httpx.Client(
            base_url=target.base_url,
            timeout=httpx.Timeout(settings.read_timeout, connect=settings.connect_timeout),
            follow_redirects=settings.follow_redirects,
            transport=transport,
        )

    @classmethod
    def for_service(
        cls,
        name: str,
        *,
        settings: CorrelationSettings | None = None,
        **kwargs: Any,
    ) -> DownstreamClient:
        settings = settings or get_settings()
        return cls(settings.target(name), settings=settings, **kwargs)

    def method_key(self, method: str, path: str) -> str:
        return f"{self.target.name}#{method.upper()} {path}"

    def request(
        self,
        ctx: RequestContext | None,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: str | bytes | None = None,
        operation: str | None = None,
    ) -> httpx.Response:
        method_key = operation or self.method_key(method, path)
        request = self._http.build_request(
            method, path, params=params, json=json, content=content
        )
        self._propagator.before_send(request, self.target, ctx)

        try:
            response = self._http.send(request)
        except httpx.TimeoutException as exc:
            logger.error("downstream.timeout", method=method_key, error=str(exc))
            raise TransportError(
                f"Timed out calling {method_key}", method_key=method_key, cause=exc
            ) from exc
        except httpx.RequestError as exc:
            logger.error(
                "downstream.transport_error",
                method=method_key,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise TransportError(
                f"Could not reach {method_key}: {exc}", method_key=method_key, cause=exc
            ) from exc

        if not response.is_success:
            raise self._translator.translate_response(
                response,
                method_key,
                trace_id=ctx.trace_id if ctx else None,
            )
        return response

    def get_json(
        self, ctx: RequestContext | None, path: str, **kwargs: Any
    ) -> Any:
        return self.request(ctx, "GET", path, **kwargs).json()

    def post_json(
        self, ctx: RequestContext | None, path: str, payload: Any, **kwargs: Any
    ) -> Any:
        response = self.request(ctx, "POST", path, json=payload, **kwargs)
        return response.json() if response.content else None

    def for_context(self, ctx: RequestContext) -> BoundDownstreamClient:
        return BoundDownstreamClient(self, ctx)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> DownstreamClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class BoundDownstreamClient:
    """A ``DownstreamClient`` view bound to one request context."""

    def __init__(self, client: DownstreamClient, ctx: RequestContext) -> None:
        self._client = client
        self.ctx = ctx

    def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return self._client.request(self.ctx, method, path, **kwargs)

    def get_json(self, path: str, **kwargs: Any) -> Any:
        return self._client.get_json(self.ctx, path, **kwargs)

    def post_json(self, path: str, payload: Any, **kwargs: Any) -> Any:
        return self._client.post_json(self.ctx, path, payload, **kwargs)
