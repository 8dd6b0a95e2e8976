"""Exception hierarchy for correlation and downstream call failures.

    CorrelationException
    ├── ContextMissing
    ├── ContextFinalized
    ├── ConfigurationError
    ├── DownstreamError
    │   ├── ClientError: NotFound, BadRequest, RateLimited
    │   ├── ServerError: InternalError, Unavailable
    │   └── TransportError
    └── ServiceCallFailed
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi_request_correlation.headers import UNKNOWN


class ErrorKind(Enum):
    """Kinds of downstream failure a caller can branch on."""

    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    RATE_LIMITED = "rate_limited"
    INTERNAL_ERROR = "internal_error"
    UNAVAILABLE = "unavailable"
    TRANSPORT = "transport"

    @property
    def is_client_error(self) -> bool:
        return self in (
            ErrorKind.NOT_FOUND,
            ErrorKind.BAD_REQUEST,
            ErrorKind.RATE_LIMITED,
        )


class CorrelationException(Exception):
    """Base for all package exceptions."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "message": self.message}


class ContextMissing(CorrelationException):
    """No request context was established for the current request."""

    def __init__(self, message: str = "No request context established") -> None:
        super().__init__(message)


class ContextFinalized(CorrelationException):
    """A finalized request context was modified."""

    def __init__(self, field_name: str) -> None:
        super().__init__(f"Request context is finalized; cannot set {field_name!r}")
        self.field_name = field_name


class ConfigurationError(CorrelationException):
    """Settings are missing or inconsistent."""


class DownstreamError(CorrelationException):
    """Typed error describing a failed call to a downstream service.

    Attributes:
        kind: The ``ErrorKind`` of the failure.
        method_key: Descriptor of the failed call, e.g. ``pet-service#GET /pets``.
        status: HTTP status of the downstream response, ``None`` for transport failures.
        request_id: ``X-Request-ID`` echoed by the downstream service.
        session_id: ``X-Session-ID`` echoed by the downstream service.
        response_trace_id: ``X-Response-Trace-ID`` echoed by the downstream service.
        body: Raw response body, empty when unreadable.
        degraded: Names of fields whose extraction failed and fell back to a sentinel.
    """

    kind: ErrorKind = ErrorKind.BAD_REQUEST

    def __init__(
        self,
        message: str,
        *,
        method_key: str,
        status: int | None = None,
        request_id: str = UNKNOWN,
        session_id: str = UNKNOWN,
        response_trace_id: str = UNKNOWN,
        body: bytes = b"",
        degraded: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message)
        self.method_key = method_key
        self.status = status
        self.request_id = request_id
        self.session_id = session_id
        self.response_trace_id = response_trace_id
        self.body = body
        self.degraded = degraded

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.kind.value,
            "message": self.message,
            "status": self.status,
            "method": self.method_key,
            "request_id": self.request_id,
            "session_id": self.session_id,
            "response_trace_id": self.response_trace_id,
        }


class ClientError(DownstreamError):
    """Downstream rejected the call (4xx family)."""


class NotFound(ClientError):
    kind = ErrorKind.NOT_FOUND


class BadRequest(ClientError):
    kind = ErrorKind.BAD_REQUEST


class RateLimited(ClientError):
    kind = ErrorKind.RATE_LIMITED


class ServerError(DownstreamError):
    """Downstream failed to serve the call (5xx family)."""


class InternalError(ServerError):
    kind = ErrorKind.INTERNAL_ERROR


class Unavailable(ServerError):
    kind = ErrorKind.UNAVAILABLE


class TransportError(DownstreamError):
    """Connect/read timeout, DNS or connection failure. Never retried."""

    kind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        *,
        method_key: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, method_key=method_key)
        self.cause = cause


class ServiceCallFailed(CorrelationException):
    """Domain-level failure a caller raises around a ``DownstreamError``."""

    def __init__(
        self,
        message: str,
        *,
        cause: DownstreamError,
        request_id: str | None = None,
        trace_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.request_id = request_id
        self.trace_id = trace_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "request_id": self.request_id,
            "trace_id": self.trace_id,
            "downstream": self.cause.to_dict(),
        }
