"""FastAPI integration — context dependency and downstream error handlers."""

from __future__ import annotations

from typing import Any

import structlog
from starlette.requests import Request
from starlette.responses import JSONResponse

from fastapi_request_correlation.context import RequestContext
from fastapi_request_correlation.exceptions import (
    ClientError,
    ContextMissing,
    DownstreamError,
    ServiceCallFailed,
)
from fastapi_request_correlation.middleware import STATE_ATTRIBUTE

logger = structlog.get_logger(__name__)


def get_request_context(request: Request) -> RequestContext:
    """FastAPI dependency returning the context established for this request."""
    ctx = getattr(request.state, STATE_ATTRIBUTE, None)
    if not isinstance(ctx, RequestContext):
        raise ContextMissing()
    return ctx


def _status_for(error: DownstreamError) -> int:
    if isinstance(error, ClientError) and error.status is not None:
        return error.status
    return 502


def _correlation_ids(request: Request) -> dict[str, Any]:
    ctx = getattr(request.state, STATE_ATTRIBUTE, None)
    if not isinstance(ctx, RequestContext):
        return {}
    return {"request_id": ctx.request_id, "trace_id": ctx.trace_id}


async def downstream_error_handler(
    request: Request, exc: DownstreamError | ServiceCallFailed
) -> JSONResponse:
    cause = exc.cause if isinstance(exc, ServiceCallFailed) else exc
    status_code = _status_for(cause)
    body = exc.to_dict()
    body.update(_correlation_ids(request))
    logger.warning("request.downstream_failure", status=status_code, error=body.get("error"))
    return JSONResponse(body, status_code=status_code)


def register_exception_handlers(app: Any) -> None:
    """Answer unhandled downstream failures with a JSON error carrying correlation ids."""
    app.add_exception_handler(DownstreamError, downstream_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ServiceCallFailed, downstream_error_handler)  # type: ignore[arg-type]
