"""
Basic usage example of fastapi-request-correlation.

Demonstrates:
- Establishing a request context for every request with the middleware
- Resolving the caller's identity from a Bearer token
- Reading the context in endpoints through a dependency
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from fastapi_request_correlation import (
    BearerTokenIdentity,
    CorrelationMiddleware,
    RequestContext,
    configure_logging,
    get_request_context,
    get_settings,
    log_startup_info,
)

settings = get_settings()
configure_logging(settings.log_level, settings.log_json_output)


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_startup_info(settings)
    yield


app = FastAPI(title="Basic Correlation Example", lifespan=lifespan)


# Mock token decoder (replace with real implementation)
async def decode_token(token: str) -> dict | None:
    """Decode a Bearer token and return its claims."""
    # In production, use a library like python-jose or PyJWT
    if token == "valid-token":
        return {"name": "Ada Lovelace", "email": "ada@example.com"}
    return None


app.add_middleware(
    CorrelationMiddleware,
    settings=settings,
    hooks=[BearerTokenIdentity(decode=decode_token)],
)


@app.get("/")
async def public_endpoint():
    """Every response carries X-Request-ID, X-Trace-ID and X-Span-ID."""
    return {"message": "Hello, World!"}


@app.get("/me")
async def get_current_user(ctx: RequestContext = Depends(get_request_context)):
    """Correlation and identity facts for this request."""
    return {
        "request_id": ctx.request_id,
        "trace_id": ctx.trace_id,
        "span_id": ctx.span_id,
        "parent_span_id": ctx.parent_span_id,
        "user_name": ctx.user_name,
        "authenticated": ctx.is_authenticated,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

    # Test with:
    # curl -i http://localhost:8000/
    # curl -i -H "X-Trace-ID: abc123" -H "X-Span-ID: S1" http://localhost:8000/me
    # curl -i -H "Authorization: Bearer valid-token" http://localhost:8000/me
