"""RequestContext — per-request correlation record."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from starlette.requests import Request

from fastapi_request_correlation.exceptions import ContextFinalized

if TYPE_CHECKING:
    from fastapi_request_correlation.identity import Identity


@dataclass
class RequestContext:
    """Correlation state for one inbound request.

    Created at inbound entry, enriched by identity resolution and business
    code, read by the outbound propagator and frozen by ``finalize()``.
    """

    request_id: str
    trace_id: str
    span_id: str
    parent_span_id: str | None = None

    session_id: str | None = None
    http_session_id: str | None = None
    user_name: str | None = None
    user_email: str | None = None
    auth_type: str | None = None
    is_authenticated: bool = False

    client_ip: str | None = None
    user_agent: str | None = None
    referer: str | None = None
    request_uri: str | None = None
    request_method: str | None = None

    start_time: float = field(default_factory=time.time)
    duration_ms: int | None = None
    response_status: int | None = None

    exception_type: str | None = None
    exception_message: str | None = None

    attributes: dict[str, Any] = field(default_factory=dict)
    forward_headers: list[tuple[str, str]] = field(default_factory=list)
    request: Request | None = field(default=None, repr=False, compare=False)
    finalized: bool = field(default=False, init=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if self.__dict__.get("finalized", False):
            raise ContextFinalized(name)
        super().__setattr__(name, value)

    def apply_identity(self, identity: Identity) -> None:
        self.user_name = identity.user_name
        self.user_email = identity.user_email
        self.auth_type = identity.auth_type
        self.is_authenticated = identity.is_authenticated
        self.session_id = identity.session_id or self.http_session_id

    def add_forward_header(self, name: str, value: str) -> None:
        if self.finalized:
            raise ContextFinalized("forward_headers")
        self.forward_headers.append((name, value))

    def set_attribute(self, key: str, value: Any) -> None:
        if self.finalized:
            raise ContextFinalized("attributes")
        self.attributes[key] = value

    def finalize(
        self,
        status: int,
        duration_ms: int,
        error: BaseException | None = None,
    ) -> None:
        self.response_status = status
        self.duration_ms = duration_ms
        if error is not None:
            self.exception_type = type(error).__name__
            self.exception_message = str(error)
        self.finalized = True

    def log_fields(self) -> dict[str, Any]:
        """Known correlation fields, flattened for structured logging."""
        fields: dict[str, Any] = {
            "request_id": self.request_id,
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "parent_span_id": self.parent_span_id,
            "session_id": self.session_id,
            "user_name": self.user_name,
            "auth_type": self.auth_type,
            "client_ip": self.client_ip,
            "request_uri": self.request_uri,
            "request_method": self.request_method,
            "response_status": self.response_status,
            "duration_ms": self.duration_ms,
            "exception_type": self.exception_type,
        }
        fields.update(self.attributes)
        return {k: v for k, v in fields.items() if v is not None and v != ""}
