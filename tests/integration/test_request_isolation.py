"""Integration tests for isolation of correlation state between requests."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient

from fastapi_request_correlation.client import DownstreamClient
from fastapi_request_correlation.config import CorrelationSettings
from fastapi_request_correlation.context import RequestContext
from fastapi_request_correlation.dependency import get_request_context
from fastapi_request_correlation.identity import BearerTokenIdentity
from fastapi_request_correlation.middleware import CorrelationMiddleware


async def _decode(token: str) -> dict[str, Any] | None:
    users = {"ada-token": {"name": "Ada", "email": "ada@example.com"}}
    return users.get(token)


def _make_app(settings: CorrelationSettings, transport: httpx.BaseTransport) -> FastAPI:
    app = FastAPI()
    app.add_middleware(
        CorrelationMiddleware, settings=settings, hooks=[BearerTokenIdentity(decode=_decode)]
    )
    pets = DownstreamClient.for_service("pet-service", settings=settings, transport=transport)

    @app.get("/pets")
    def list_pets(
        ctx: RequestContext = Depends(get_request_context),  # noqa: B008
    ) -> Any:
        ctx.set_attribute("log_context", dict(structlog.contextvars.get_contextvars()))
        return {
            "pets": pets.get_json(ctx, "/pets"),
            "log_request_id": ctx.attributes["log_context"].get("request_id"),
        }

    @app.get("/boom")
    async def boom() -> None:
        raise RuntimeError("kaboom")

    return app


class TestSequentialRequests:
    async def test_no_state_leaks_into_next_request(
        self, settings: CorrelationSettings, recording_transport: Any
    ) -> None:
        downstream = recording_transport()
        app = _make_app(settings, downstream)

        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            first = await client.get(
                "/pets",
                headers={
                    "X-Request-ID": "req-ada",
                    "X-Trace-ID": "trace-ada",
                    "Authorization": "Bearer ada-token",
                },
            )
            second = await client.get("/pets")

        assert first.headers["X-Request-ID"] == "req-ada"
        assert second.headers["X-Request-ID"] != "req-ada"
        assert second.headers["X-Trace-ID"] != "trace-ada"

        ada_call, anonymous_call = downstream.requests
        assert ada_call.headers["X-User-Name"] == "Ada"
        assert anonymous_call.headers["X-User-Name"] == "Guest"
        assert anonymous_call.headers["X-Authenticated"] == "false"
        assert "X-User-Email" not in anonymous_call.headers
        assert anonymous_call.headers["X-Request-ID"] == second.headers["X-Request-ID"]

    async def test_handler_sees_its_own_log_context(
        self, settings: CorrelationSettings, recording_transport: Any
    ) -> None:
        app = _make_app(settings, recording_transport())
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            resp = await client.get("/pets", headers={"X-Request-ID": "req-log"})

        assert resp.json()["log_request_id"] == "req-log"
        assert structlog.contextvars.get_contextvars() == {}

    async def test_failed_request_leaves_nothing_behind(
        self, settings: CorrelationSettings, recording_transport: Any
    ) -> None:
        downstream = recording_transport()
        app = _make_app(settings, downstream)

        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            failed = await client.get(
                "/boom",
                headers={
                    "X-Request-ID": "req-err",
                    "X-Trace-ID": "t-err",
                    "Authorization": "Bearer ada-token",
                },
            )
            assert structlog.contextvars.get_contextvars() == {}
            after = await client.get("/pets")

        assert failed.status_code == 500
        assert failed.headers["X-Response-Trace-ID"] == "t-err"
        assert "X-Request-Duration" in failed.headers

        assert after.status_code == 200
        assert after.headers["X-Request-ID"] != "req-err"
        assert after.headers["X-Trace-ID"] != "t-err"
        assert after.json()["log_request_id"] == after.headers["X-Request-ID"]

        (sent,) = downstream.requests
        assert sent.headers["X-Request-ID"] == after.headers["X-Request-ID"]
        assert sent.headers["X-Trace-ID"] == after.headers["X-Trace-ID"]
        assert sent.headers["X-User-Name"] == "Guest"
        assert "X-User-Email" not in sent.headers


class TestConcurrentRequests:
    async def test_each_request_propagates_its_own_ids(
        self, settings: CorrelationSettings, recording_transport: Any
    ) -> None:
        downstream = recording_transport()
        app = _make_app(settings, downstream)
        request_ids = [f"req-{n:02d}" for n in range(10)]

        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            responses = await asyncio.gather(
                *(
                    client.get(
                        "/pets",
                        headers={"X-Request-ID": rid, "X-Trace-ID": f"trace-{rid}"},
                    )
                    for rid in request_ids
                )
            )

        for rid, resp in zip(request_ids, responses):
            assert resp.status_code == 200
            assert resp.headers["X-Request-ID"] == rid
            assert resp.headers["X-Trace-ID"] == f"trace-{rid}"
            assert resp.json()["log_request_id"] == rid

        assert len(downstream.requests) == len(request_ids)
        for sent in downstream.requests:
            assert sent.headers["X-Trace-ID"] == f"trace-{sent.headers['X-Request-ID']}"
