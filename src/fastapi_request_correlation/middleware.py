"""CorrelationMiddleware — establishes a request context around every request."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from fastapi_request_correlation.config import CorrelationSettings, get_settings
from fastapi_request_correlation.context import RequestContext
from fastapi_request_correlation.hooks import ContextHook
from fastapi_request_correlation.inbound import InboundContextEstablisher

logger = structlog.get_logger(__name__)

STATE_ATTRIBUTE = "correlation"


class CorrelationMiddleware(BaseHTTPMiddleware):
    """
    Runs the establisher for every request outside the excluded path prefixes.

    The context is stored on ``request.state`` for the ``get_request_context``
    dependency. An unhandled exception is finalized as a 500 and answered with
    a JSON body that carries the request id and all correlation headers.

    End-of-request hooks run after the response headers are written and while
    the request's log context is still bound. A failing end hook is logged and
    never replaces the response.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        settings: CorrelationSettings | None = None,
        establisher: InboundContextEstablisher | None = None,
        hooks: Sequence[ContextHook] = (),
    ) -> None:
        super().__init__(app)
        self._settings = settings or get_settings()
        self._establisher = establisher or InboundContextEstablisher(self._settings)
        self._hooks = tuple(hooks)
        self._excluded = tuple(self._settings.excluded_path_prefixes)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if self._excluded and request.url.path.startswith(self._excluded):
            return await call_next(request)

        with self._establisher.establish(request) as ctx:
            setattr(request.state, STATE_ATTRIBUTE, ctx)
            try:
                for hook in self._hooks:
                    await hook.on_request_start(ctx)
                response = await call_next(request)
            except Exception as exc:
                response = JSONResponse(
                    {"detail": "Internal Server Error", "request_id": ctx.request_id},
                    status_code=500,
                )
                self._establisher.complete(request, response, ctx, exc)
            else:
                self._establisher.complete(request, response, ctx)

            await self._run_end_hooks(ctx)
            return response

    async def _run_end_hooks(self, ctx: RequestContext) -> None:
        for hook in self._hooks:
            try:
                await hook.on_request_end(ctx)
            except Exception:
                logger.exception("request.end_hook_failed", hook=type(hook).__name__)
