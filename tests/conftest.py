"""Shared pytest fixtures for fastapi-request-correlation tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest
import structlog
from starlette.requests import Request

from fastapi_request_correlation.config import CorrelationSettings, ServiceTarget
from fastapi_request_correlation.context import RequestContext


@pytest.fixture(autouse=True)
def _clean_log_context() -> Iterator[None]:
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def settings() -> CorrelationSettings:
    return CorrelationSettings(
        _env_file=None,
        service_name="petstoreapp",
        app_version="1.2.3",
        container_host="web-7f9c",
        service_urls={"pet-service": "http://pets.internal"},
    )


@pytest.fixture
def pet_target() -> ServiceTarget:
    return ServiceTarget(name="pet-service", base_url="http://pets.internal")


@pytest.fixture
def make_request() -> Any:
    """Factory for creating Starlette Request objects."""

    def _make(
        method: str = "GET",
        path: str = "/",
        headers: dict[str, str] | None = None,
        query_string: str = "",
        client: tuple[str, int] | None = ("10.0.0.9", 51000),
    ) -> Request:
        scope: dict[str, Any] = {
            "type": "http",
            "method": method,
            "scheme": "http",
            "server": ("testserver", 80),
            "path": path,
            "query_string": query_string.encode(),
            "headers": [
                (k.lower().encode(), v.encode()) for k, v in (headers or {}).items()
            ],
            "root_path": "",
            "client": client,
        }
        return Request(scope)

    return _make


@pytest.fixture
def make_context() -> Any:
    """Factory for RequestContext instances with stable identifiers."""

    def _make(**overrides: Any) -> RequestContext:
        values: dict[str, Any] = {
            "request_id": "a1b2c3d4",
            "trace_id": "0123456789abcdef0123456789abcdef",
            "span_id": "span-0000-000001",
            "request_uri": "/pets",
            "request_method": "GET",
        }
        values.update(overrides)
        return RequestContext(**values)

    return _make


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(
        self, handler: Callable[[httpx.Request], httpx.Response] | None = None
    ) -> None:
        self.requests: list[httpx.Request] = []
        self._respond = handler or (lambda request: httpx.Response(200, json=[]))
        super().__init__(self._record)

    def _record(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._respond(request)


@pytest.fixture
def recording_transport() -> Callable[..., RecordingTransport]:
    return RecordingTransport
