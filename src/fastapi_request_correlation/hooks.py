"""ContextHook base and convenience hook classes."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi_request_correlation.context import RequestContext


class ContextHook:
    """Lifecycle callbacks around a request context. No-op by default."""

    async def on_request_start(self, ctx: RequestContext) -> None:
        pass

    async def on_request_end(self, ctx: RequestContext) -> None:
        pass


class BeforeRequest(ContextHook):
    """Convenience hook that only fires once the context is established."""

    def __init__(self, callback: Callable[[RequestContext], Awaitable[None]]) -> None:
        self._callback = callback

    async def on_request_start(self, ctx: RequestContext) -> None:
        await self._callback(ctx)


class AfterRequest(ContextHook):
    """Convenience hook that only fires after the context is finalized."""

    def __init__(self, callback: Callable[[RequestContext], Awaitable[None]]) -> None:
        self._callback = callback

    async def on_request_end(self, ctx: RequestContext) -> None:
        await self._callback(ctx)
