"""Shared API dependencies: sessions, tenant resolution and service wiring.

Long-lived clients (Redis, the events publisher, the outbox relay) are built
once at startup and kept on ``app.state``; the functions below hand them to
each request explicitly.
"""

import uuid
from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from orders_service.core.errors import InvalidPrecondition, TenantRequired
from orders_service.core.settings import settings
from orders_service.db.session import get_db
from orders_service.services.events import EventsPublisher
from orders_service.services.idempotency import IdempotencyStore
from orders_service.services.order_service import OrderService
from orders_service.services.outbox_relay import OutboxRelayWorker

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_tenant_id(
    x_tenant_id: Annotated[str | None, Header(alias="X-Tenant-Id")] = None,
) -> str:
    """Return the tenant named by the ``X-Tenant-Id`` header.

    Raises:
        TenantRequired: If the header is missing or blank.
    """
    if not x_tenant_id or not x_tenant_id.strip():
        raise TenantRequired("Missing X-Tenant-Id header")
    return x_tenant_id.strip()


def get_trace_id(
    request: Request,
    x_request_id: Annotated[str | None, Header(alias="X-Request-ID")] = None,
) -> str:
    """Return the correlation id assigned to this request.

    ``RequestIdMiddleware`` normally sets it; without the middleware the
    header is used, or a fresh uuid4.
    """
    request_id = getattr(request.state, "request_id", None)
    return request_id or x_request_id or str(uuid.uuid4())


def parse_if_match(if_match: str) -> int:
    """Parse an ``If-Match`` value such as ``"3"`` or ``W/"3"`` into a version.

    Raises:
        InvalidPrecondition: If the value is not a non-negative integer.
    """
    value = if_match.strip()
    if value.startswith("W/"):
        value = value[2:]
    value = value.strip('"')
    if not value.isdigit():
        raise InvalidPrecondition(
            "If-Match must carry the expected order version",
            {"ifMatch": if_match},
        )
    return int(value)


def get_idempotency_store(request: Request) -> IdempotencyStore:
    """Return an idempotency store backed by the application's Redis client."""
    return IdempotencyStore(
        request.app.state.redis,
        ttl_seconds=settings.idempotency_ttl_seconds,
        pending_ttl_seconds=settings.idempotency_pending_ttl_seconds,
    )


def get_events_publisher(request: Request) -> EventsPublisher:
    """Return the application's events publisher."""
    return request.app.state.events_publisher


def get_order_service(
    request: Request,
    db: SessionDep,
    idempotency: Annotated[IdempotencyStore, Depends(get_idempotency_store)],
    publisher: Annotated[EventsPublisher, Depends(get_events_publisher)],
) -> OrderService:
    """Build the per-request order service from explicitly injected collaborators."""
    relay: OutboxRelayWorker | None = getattr(request.app.state, "outbox_relay", None)
    return OrderService(
        db,
        idempotency,
        publisher,
        event_source=settings.event_source,
        on_outbox_commit=relay.notify if relay is not None else None,
        default_page_size=settings.orders_default_page_size,
        max_page_size=settings.orders_max_page_size,
    )


TenantDep = Annotated[str, Depends(get_tenant_id)]
TraceIdDep = Annotated[str, Depends(get_trace_id)]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
