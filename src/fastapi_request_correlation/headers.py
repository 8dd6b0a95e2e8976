"""Header names exchanged with callers and downstream services."""

from __future__ import annotations

# Correlation
X_REQUEST_ID = "X-Request-ID"
X_CORRELATION_ID = "X-Correlation-ID"
X_TRACE_ID = "X-Trace-ID"
X_SPAN_ID = "X-Span-ID"
X_PARENT_SPAN_ID = "X-Parent-Span-ID"

# Session and user context
X_SESSION_ID = "X-Session-ID"
X_SESSION_ID_LOWERCASE = "x-session-id"
X_HTTP_SESSION_ID = "X-HTTP-Session-ID"
X_USER_NAME = "X-User-Name"
X_USER_EMAIL = "X-User-Email"
X_AUTH_TYPE = "X-Auth-Type"
X_AUTHENTICATED = "X-Authenticated"

# Service identity
X_SOURCE_SERVICE = "X-Source-Service"
X_SOURCE_VERSION = "X-Source-Version"
X_SOURCE_CONTAINER = "X-Source-Container"
X_TARGET_SERVICE = "X-Target-Service"

# Request mirroring
X_REQUEST_TIMESTAMP = "X-Request-Timestamp"
X_REQUEST_URI = "X-Request-URI"
X_REQUEST_METHOD = "X-Request-Method"

# Written on the response at completion
X_REQUEST_DURATION = "X-Request-Duration"
X_RESPONSE_TRACE_ID = "X-Response-Trace-ID"
X_RESPONSE_SPAN_ID = "X-Response-Span-ID"
X_RESPONSE_REQUEST_ID = "X-Response-Request-ID"

CONTENT_TYPE = "Content-Type"
ACCEPT = "Accept"
CACHE_CONTROL = "Cache-Control"
USER_AGENT = "User-Agent"
REFERER = "Referer"
AUTHORIZATION = "Authorization"

APPLICATION_JSON = "application/json"
NO_CACHE = "no-cache"

# Client IP discovery, first present wins.
CLIENT_IP_HEADERS: tuple[str, ...] = (
    "X-Forwarded-For",
    "X-Real-IP",
    "Proxy-Client-IP",
    "WL-Proxy-Client-IP",
    "HTTP_X_FORWARDED_FOR",
)

UNKNOWN = "unknown"
