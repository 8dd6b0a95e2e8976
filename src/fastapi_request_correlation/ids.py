"""Identifier generation for requests, traces and spans."""

from __future__ import annotations

import uuid

REQUEST_ID_LENGTH = 8
TRACE_ID_LENGTH = 32
SPAN_ID_LENGTH = 16


def new_request_id() -> str:
    """Short caller-facing id. Not collision resistant at scale."""
    return str(uuid.uuid4())[:REQUEST_ID_LENGTH]


def new_trace_id() -> str:
    return uuid.uuid4().hex


def new_span_id(*, avoid: str | None = None) -> str:
    """Fresh span id for one hop, never equal to ``avoid``."""
    while True:
        span_id = str(uuid.uuid4())[:SPAN_ID_LENGTH]
        if span_id != avoid:
            return span_id
