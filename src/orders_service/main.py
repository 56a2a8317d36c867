# src/orders_service/main.py
"""Main entry point for the orders service."""

from __future__ import annotations

import logging

import redis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from orders_service.api.middleware import RequestIdMiddleware
from orders_service.api.v1 import orders_router
from orders_service.core.errors import (
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_UNPROCESSABLE_ENTITY,
    OrderServiceError,
    error_body,
)
from orders_service.core.logging_config import configure_logging
from orders_service.core.settings import settings
from orders_service.db.session import SessionLocal
from orders_service.services.events import LoggingEventsPublisher
from orders_service.services.outbox_relay import OutboxRelayWorker

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Multi-tenant order lifecycle API",
    version=settings.app_version,
)

app.add_middleware(RequestIdMiddleware)

# Include API routers
app.include_router(orders_router, prefix="/api/v1")


@app.exception_handler(OrderServiceError)
async def order_service_error_handler(request: Request, exc: OrderServiceError) -> JSONResponse:
    logger.info(
        "%s %s failed with %s: %s",
        request.method,
        request.url.path,
        exc.code,
        exc.message,
    )
    return JSONResponse(
        error_body(exc.code, exc.message, request.url.path, exc.details),
        status_code=exc.status_code,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        error_body(
            "VALIDATION_ERROR",
            "Request validation failed",
            request.url.path,
            {"errors": jsonable_encoder(exc.errors())},
        ),
        status_code=HTTP_UNPROCESSABLE_ENTITY,
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = "NOT_FOUND" if exc.status_code == 404 else f"HTTP_{exc.status_code}"
    return JSONResponse(
        error_body(code, str(exc.detail), request.url.path),
        status_code=exc.status_code,
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        error_body("INTERNAL_ERROR", "Internal Server Error", request.url.path),
        status_code=HTTP_INTERNAL_SERVER_ERROR,
    )


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging(settings.log_level)
    app.state.redis = redis.Redis.from_url(settings.redis_url, decode_responses=True)
    app.state.events_publisher = LoggingEventsPublisher()
    if settings.outbox_relay_enabled:
        relay = OutboxRelayWorker(
            SessionLocal,
            app.state.events_publisher,
            source=settings.event_source,
            batch_size=settings.outbox_relay_batch_size,
            interval_seconds=settings.outbox_relay_interval_seconds,
        )
        await relay.start()
        app.state.outbox_relay = relay
    else:
        app.state.outbox_relay = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    relay: OutboxRelayWorker | None = getattr(app.state, "outbox_relay", None)
    if relay:
        await relay.stop()
    client: redis.Redis | None = getattr(app.state, "redis", None)
    if client is not None:
        client.close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("orders_service.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
