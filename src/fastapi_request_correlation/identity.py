"""Identity resolvers — fill session and user facts on the request context."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from fastapi_request_correlation import claims
from fastapi_request_correlation._types import DecodeCallback, LookupCallback
from fastapi_request_correlation.config import CorrelationSettings, get_settings
from fastapi_request_correlation.context import RequestContext
from fastapi_request_correlation.headers import AUTHORIZATION
from fastapi_request_correlation.hooks import ContextHook
from fastapi_request_correlation.logging import bind_request_context

logger = structlog.get_logger(__name__)

ANONYMOUS_AUTH_TYPE = "Anonymous"
GUEST_NAME = "Guest"


@dataclass(frozen=True)
class Identity:
    """Resolved session and user facts for one request."""

    user_name: str | None = None
    user_email: str | None = None
    auth_type: str | None = None
    is_authenticated: bool = False
    session_id: str | None = None

    @classmethod
    def anonymous(cls, session_id: str | None = None) -> Identity:
        return cls(
            user_name=GUEST_NAME,
            auth_type=ANONYMOUS_AUTH_TYPE,
            is_authenticated=False,
            session_id=session_id,
        )

    @classmethod
    def from_claims(
        cls,
        user_claims: Mapping[str, Any],
        *,
        auth_type: str,
        session_id: str | None = None,
    ) -> Identity:
        return cls(
            user_name=claims.display_name(user_claims),
            user_email=claims.email(user_claims),
            auth_type=auth_type,
            is_authenticated=True,
            session_id=session_id,
        )


class IdentityResolver(ContextHook, ABC):
    """Resolves an identity when the context is established.

    A resolver never rejects a request: anything it cannot resolve, including
    a failing callback, leaves the request anonymous.
    """

    async def on_request_start(self, ctx: RequestContext) -> None:
        try:
            identity = await self.resolve(ctx)
        except Exception as exc:
            logger.debug(
                "identity.resolution_failed",
                resolver=type(self).__name__,
                error=str(exc),
            )
            identity = None
        ctx.apply_identity(identity or Identity.anonymous())
        bind_request_context(ctx)

    @abstractmethod
    async def resolve(self, ctx: RequestContext) -> Identity | None: ...


class BearerTokenIdentity(IdentityResolver):
    """Decodes a Bearer token from the Authorization header into claims."""

    def __init__(
        self,
        decode: DecodeCallback,
        *,
        auth_type: str = "Bearer",
        scheme: str = "Bearer",
        header: str = AUTHORIZATION,
    ) -> None:
        self._decode = decode
        self._auth_type = auth_type
        self._scheme = scheme
        self._header = header

    async def resolve(self, ctx: RequestContext) -> Identity | None:
        if ctx.request is None:
            return None
        auth_value = ctx.request.headers.get(self._header)
        if not auth_value:
            return None

        parts = auth_value.split(" ", 1)
        if len(parts) != 2 or parts[0] != self._scheme or not parts[1].strip():
            return None

        user_claims = await self._decode(parts[1].strip())
        if not user_claims:
            return None
        return Identity.from_claims(
            user_claims,
            auth_type=self._auth_type,
            session_id=ctx.http_session_id,
        )


class SessionCookieIdentity(IdentityResolver):
    """Looks up the user behind a session cookie.

    The cookie name defaults to the configured ``session_cookie_name``.
    """

    def __init__(
        self,
        lookup: LookupCallback,
        *,
        cookie_name: str | None = None,
        auth_type: str = "Session",
        settings: CorrelationSettings | None = None,
    ) -> None:
        self._lookup = lookup
        self._cookie_name = cookie_name or (settings or get_settings()).session_cookie_name
        self._auth_type = auth_type

    async def resolve(self, ctx: RequestContext) -> Identity | None:
        if ctx.request is None:
            return None
        cookie_value = ctx.request.cookies.get(self._cookie_name)
        if not cookie_value:
            return None

        user_claims = await self._lookup(cookie_value)
        if not user_claims:
            return Identity.anonymous(session_id=cookie_value)
        return Identity.from_claims(
            user_claims,
            auth_type=self._auth_type,
            session_id=cookie_value,
        )
