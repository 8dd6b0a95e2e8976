"""FastAPI Request Correlation - trace context establishment and propagation for FastAPI."""

from fastapi_request_correlation.client import BoundDownstreamClient, DownstreamClient
from fastapi_request_correlation.config import (
    CorrelationSettings,
    ServiceTarget,
    get_settings,
    resolve_app_version,
)
from fastapi_request_correlation.context import RequestContext
from fastapi_request_correlation.dependency import (
    get_request_context,
    register_exception_handlers,
)
from fastapi_request_correlation.exceptions import (
    BadRequest,
    ClientError,
    ConfigurationError,
    ContextFinalized,
    ContextMissing,
    CorrelationException,
    DownstreamError,
    ErrorKind,
    InternalError,
    NotFound,
    RateLimited,
    ServerError,
    ServiceCallFailed,
    TransportError,
    Unavailable,
)
from fastapi_request_correlation.hooks import AfterRequest, BeforeRequest, ContextHook
from fastapi_request_correlation.identity import (
    BearerTokenIdentity,
    Identity,
    IdentityResolver,
    SessionCookieIdentity,
)
from fastapi_request_correlation.inbound import (
    InboundContextEstablisher,
    resolve_client_ip,
)
from fastapi_request_correlation.logging import (
    configure_logging,
    log_operation,
    log_startup_info,
)
from fastapi_request_correlation.middleware import CorrelationMiddleware
from fastapi_request_correlation.outbound import (
    OutboundContextPropagator,
    OutgoingRequest,
)
from fastapi_request_correlation.translator import ErrorTranslator

__all__ = [
    "AfterRequest",
    "BadRequest",
    "BearerTokenIdentity",
    "BeforeRequest",
    "BoundDownstreamClient",
    "ClientError",
    "ConfigurationError",
    "ContextFinalized",
    "ContextHook",
    "ContextMissing",
    "CorrelationException",
    "CorrelationMiddleware",
    "CorrelationSettings",
    "DownstreamClient",
    "DownstreamError",
    "ErrorKind",
    "ErrorTranslator",
    "Identity",
    "IdentityResolver",
    "InboundContextEstablisher",
    "InternalError",
    "NotFound",
    "OutboundContextPropagator",
    "OutgoingRequest",
    "RateLimited",
    "RequestContext",
    "ServerError",
    "ServiceCallFailed",
    "ServiceTarget",
    "SessionCookieIdentity",
    "TransportError",
    "Unavailable",
    "configure_logging",
    "get_request_context",
    "get_settings",
    "log_operation",
    "log_startup_info",
    "register_exception_handlers",
    "resolve_app_version",
    "resolve_client_ip",
]
