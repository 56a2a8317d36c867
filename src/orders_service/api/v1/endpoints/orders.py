"""Order lifecycle endpoints for the orders API."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Header, Query, Response, status
from fastapi.responses import JSONResponse

from orders_service.api.v1.dependencies import (
    OrderServiceDep,
    TenantDep,
    TraceIdDep,
    parse_if_match,
)
from orders_service.core.settings import settings
from orders_service.schemas.common import ErrorBody
from orders_service.schemas.order import (
    ClosedOrder,
    ConfirmedOrder,
    ConfirmOrderRequest,
    OrderSummary,
)

router = APIRouter(
    prefix="/orders",
    tags=["orders"],
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": ErrorBody},
        status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorBody},
    },
)


@router.post(
    "",
    response_model=OrderSummary,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_409_CONFLICT: {"model": ErrorBody}},
)
async def create_order(
    service: OrderServiceDep,
    tenant_id: TenantDep,
    trace_id: TraceIdDep,
    idempotency_key: Annotated[str, Header(alias="Idempotency-Key", min_length=1)],
    body: Annotated[dict[str, Any] | None, Body()] = None,
) -> OrderSummary:
    """Create a draft order.

    Retrying with the same ``Idempotency-Key`` and body returns the original
    response without creating another order.
    """
    return service.create_draft(tenant_id, idempotency_key, body, trace_id)


@router.patch(
    "/{order_id}/confirm",
    response_model=ConfirmedOrder,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorBody},
        status.HTTP_404_NOT_FOUND: {"model": ErrorBody},
        status.HTTP_409_CONFLICT: {"model": ErrorBody},
    },
)
async def confirm_order(
    order_id: str,
    payload: ConfirmOrderRequest,
    response: Response,
    service: OrderServiceDep,
    tenant_id: TenantDep,
    trace_id: TraceIdDep,
    if_match: Annotated[str, Header(alias="If-Match")],
) -> ConfirmedOrder:
    """Confirm a draft order; ``If-Match`` carries the version the caller last saw."""
    expected_version = parse_if_match(if_match)
    confirmed = service.confirm(
        order_id, tenant_id, expected_version, payload.total_cents, trace_id
    )
    response.headers["ETag"] = f'"{confirmed.version}"'
    return confirmed


@router.post(
    "/{order_id}/close",
    response_model=ClosedOrder,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorBody},
        status.HTTP_404_NOT_FOUND: {"model": ErrorBody},
    },
)
async def close_order(
    order_id: str,
    service: OrderServiceDep,
    tenant_id: TenantDep,
    trace_id: TraceIdDep,
) -> ClosedOrder:
    """Close a confirmed order."""
    return service.close(order_id, tenant_id, trace_id)


@router.get("", responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorBody}})
async def list_orders(
    service: OrderServiceDep,
    tenant_id: TenantDep,
    limit: int | None = Query(
        None,
        ge=1,
        le=settings.orders_max_page_size,
        description="Maximum number of orders to return",
    ),
    cursor: str | None = Query(None, description="Opaque cursor from a previous page"),
) -> JSONResponse:
    """List the tenant's orders, newest first.

    ``nextCursor`` is present only when another page exists.
    """
    page = service.list_orders(tenant_id, limit, cursor)
    content = page.model_dump(mode="json", by_alias=True)
    if content["nextCursor"] is None:
        del content["nextCursor"]
    return JSONResponse(content=content)
