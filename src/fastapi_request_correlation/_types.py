"""Shared type aliases."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from starlette.requests import Request

# Identity resolvers
DecodeCallback = Callable[[str], Awaitable[Mapping[str, Any] | None]]
LookupCallback = Callable[[str], Awaitable[Mapping[str, Any] | None]]

# Reads the transport-level session id from the live request.
SessionReader = Callable[[Request], str | None]
