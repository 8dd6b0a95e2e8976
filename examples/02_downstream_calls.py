"""
Downstream calls example.

Demonstrates:
- Calling a downstream service with correlation headers stamped on every call
- Translating downstream failures into typed errors
- Wrapping a downstream failure in a domain error with the request's ids

Configure the downstream service with:
    CORRELATION_SERVICE_URLS='{"pet-service": "http://localhost:8081"}'
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from fastapi_request_correlation import (
    CorrelationMiddleware,
    DownstreamClient,
    DownstreamError,
    NotFound,
    RequestContext,
    ServiceCallFailed,
    configure_logging,
    get_request_context,
    get_settings,
    log_operation,
    register_exception_handlers,
)

settings = get_settings()
configure_logging(settings.log_level, settings.log_json_output)

pet_service = DownstreamClient.for_service("pet-service", settings=settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    pet_service.close()


app = FastAPI(title="Downstream Calls Example", lifespan=lifespan)
app.add_middleware(CorrelationMiddleware, settings=settings)
register_exception_handlers(app)


@app.get("/pets")
def list_pets(category: str = "all", ctx: RequestContext = Depends(get_request_context)):
    """Downstream failures are answered by the registered exception handlers."""
    with log_operation(ctx, "listPets", category=category):
        return pet_service.get_json(
            ctx,
            "/petstorepetservice/v2/pet/findByStatus",
            params={"status": "available", "category": category},
        )


@app.get("/pets/{pet_id}")
def get_pet(pet_id: int, ctx: RequestContext = Depends(get_request_context)):
    """A missing pet is an expected outcome; anything else is a service failure."""
    try:
        return pet_service.for_context(ctx).get_json(f"/petstorepetservice/v2/pet/{pet_id}")
    except NotFound:
        return {"id": pet_id, "available": False}
    except DownstreamError as exc:
        raise ServiceCallFailed(
            f"Unable to retrieve pet {pet_id}",
            cause=exc,
            request_id=ctx.request_id,
            trace_id=ctx.trace_id,
        ) from exc


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

    # Test with:
    # curl -i -H "X-Request-ID: demo-1" http://localhost:8000/pets
    # curl -i http://localhost:8000/pets/42
