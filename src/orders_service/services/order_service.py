"""Order lifecycle commands: create draft, confirm, close, list.

Orders move ``draft -> confirmed -> closed`` and never backwards. Two
concurrency disciplines are used on purpose:

* ``confirm`` is optimistic. The caller supplies the version it last saw and
  the write is a single conditional UPDATE that re-checks that version, so a
  concurrent confirm that committed first turns this one into a conflict.
* ``close`` is pessimistic. It takes an exclusive row lock inside an explicit
  transaction because it is the terminal transition and must not interleave
  with any other transition on the same row.

State-changing commands append their outbox entry in the same transaction as
the order update. ``create_draft`` only emits a best-effort notification,
since there is no prior state for a lost event to misrepresent.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import redis
from sqlalchemy.orm import Session

from orders_service.core.errors import (
    IdempotencyKeyConflict,
    IdempotencyRequestInProgress,
    OrderNotFound,
    OrderStatusInvalid,
    OrderVersionConflict,
)
from orders_service.db.time import as_utc, utcnow
from orders_service.models.order import (
    ORDER_STATUS_CLOSED,
    ORDER_STATUS_CONFIRMED,
    ORDER_STATUS_DRAFT,
    Order,
)
from orders_service.repositories.order_repo import OrderRepository
from orders_service.repositories.outbox_repo import OutboxRepository
from orders_service.schemas.order import (
    ClosedOrder,
    ConfirmedOrder,
    OrderListItem,
    OrderPage,
    OrderSummary,
)
from orders_service.services.events import (
    EVENT_ORDER_CLOSED,
    EVENT_ORDER_CONFIRMED,
    EVENT_ORDER_CREATED,
    EventEnvelope,
    EventsPublisher,
)
from orders_service.services.idempotency import IdempotencyRecord, IdempotencyStore
from orders_service.services.pager import decode_cursor
from orders_service.utils.hash import request_fingerprint

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class OrderService:
    """Command handlers for the order lifecycle.

    One instance serves one request: it wraps the request's database session
    and receives the shared idempotency cache and publisher explicitly.
    """

    def __init__(
        self,
        session: Session,
        idempotency: IdempotencyStore,
        publisher: EventsPublisher,
        *,
        event_source: str = "orders-service",
        on_outbox_commit: Callable[[], None] | None = None,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> None:
        """Initialize the service.

        Args:
            session: Database session owning the unit of work.
            idempotency: Cache used to make ``create_draft`` retry-safe.
            publisher: Target for best-effort notifications.
            event_source: ``source`` attribute stamped on emitted envelopes.
            on_outbox_commit: Called after a commit that appended outbox rows,
                typically to wake the relay.
            default_page_size: Page size used when the caller gives none.
            max_page_size: Upper bound applied to caller-supplied page sizes.
        """
        self.session = session
        self.orders = OrderRepository(session)
        self.outbox = OutboxRepository(session)
        self.idempotency = idempotency
        self.publisher = publisher
        self.event_source = event_source
        self._on_outbox_commit = on_outbox_commit
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Commit on success, roll back every write of the block on failure."""
        try:
            yield
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def create_draft(
        self,
        tenant_id: str,
        idempotency_key: str,
        body: Any,
        trace_id: str | None = None,
    ) -> OrderSummary:
        """Create a draft order, replaying the stored response for retried keys.

        Raises:
            IdempotencyKeyConflict: The key was already used with another body.
            IdempotencyRequestInProgress: The first request for the key is
                still running.
        """
        body_hash = request_fingerprint(body)
        existing = self.idempotency.claim(tenant_id, idempotency_key, body_hash)
        if existing is not None:
            return self._replay(existing, idempotency_key, body_hash)

        try:
            with self._transaction():
                order = self.orders.create_draft(tenant_id)
                summary = OrderSummary(
                    id=order.id,
                    tenant_id=order.tenant_id,
                    status=order.status,
                    version=order.version,
                    created_at=as_utc(order.created_at),
                )
        except Exception:
            self.idempotency.release(tenant_id, idempotency_key)
            raise

        try:
            self.idempotency.complete(
                tenant_id,
                idempotency_key,
                body_hash,
                summary.model_dump(mode="json", by_alias=True),
            )
        except redis.RedisError as exc:
            # The order is committed; the pending claim expires on its short TTL.
            logger.warning(
                "Failed to store idempotent response for key %s: %s", idempotency_key, exc
            )
        logger.info("Created draft order %s for tenant %s", summary.id, tenant_id)

        self._publish_best_effort(
            EVENT_ORDER_CREATED,
            tenant_id,
            {
                "orderId": summary.id,
                "tenantId": summary.tenant_id,
                "createdAt": summary.created_at.isoformat(),
            },
            trace_id,
        )
        return summary

    def _replay(
        self,
        record: IdempotencyRecord,
        idempotency_key: str,
        body_hash: str,
    ) -> OrderSummary:
        if record.body_hash != body_hash:
            raise IdempotencyKeyConflict(
                "Idempotency key already used with different request body",
                {"idempotencyKey": idempotency_key},
            )
        if not record.completed:
            raise IdempotencyRequestInProgress(
                "A request with this idempotency key is still in progress",
                {"idempotencyKey": idempotency_key},
            )
        logger.debug("Replaying cached response for idempotency key %s", idempotency_key)
        return OrderSummary.model_validate(record.response)

    def confirm(
        self,
        order_id: str,
        tenant_id: str,
        expected_version: int,
        total_cents: int,
        trace_id: str | None = None,
    ) -> ConfirmedOrder:
        """Confirm a draft order if the caller's version is still current.

        Raises:
            OrderNotFound: No such order for the tenant.
            OrderVersionConflict: ``expected_version`` is stale, either at
                read time or because another writer committed first.
            OrderStatusInvalid: The order is not a draft.
        """
        with self._transaction():
            order = self._require(order_id, tenant_id)

            if order.version != expected_version:
                raise OrderVersionConflict(
                    "Order version is stale",
                    {"currentVersion": order.version, "expectedVersion": expected_version},
                )
            if order.status != ORDER_STATUS_DRAFT:
                raise OrderStatusInvalid(
                    "Only draft orders can be confirmed",
                    {"status": order.status},
                )

            applied = self.orders.update_if_version(
                order_id,
                tenant_id,
                expected_version=expected_version,
                expected_status=ORDER_STATUS_DRAFT,
                values={"status": ORDER_STATUS_CONFIRMED, "total_cents": total_cents},
            )
            if not applied:
                raise OrderVersionConflict(
                    "Order was modified concurrently",
                    {"expectedVersion": expected_version},
                )
            self.session.refresh(order)

            self.outbox.append(
                EVENT_ORDER_CONFIRMED,
                order,
                {
                    "orderId": order.id,
                    "tenantId": order.tenant_id,
                    "totalCents": order.total_cents,
                    "version": order.version,
                },
                trace_id=trace_id,
            )
            result = ConfirmedOrder(
                id=order.id,
                status=order.status,
                version=order.version,
                total_cents=order.total_cents,
            )

        logger.info("Confirmed order %s at version %d", result.id, result.version)
        self._signal_outbox()
        return result

    def close(
        self,
        order_id: str,
        tenant_id: str,
        trace_id: str | None = None,
    ) -> ClosedOrder:
        """Close a confirmed order under a row lock and record ``orders.closed``.

        Raises:
            OrderNotFound: No such order for the tenant.
            OrderStatusInvalid: The order is not confirmed.
        """
        with self._transaction():
            order = self.orders.get_for_update(order_id, tenant_id)
            if order is None:
                raise self._not_found(order_id)
            if order.status != ORDER_STATUS_CONFIRMED:
                raise OrderStatusInvalid(
                    "Only confirmed orders can be closed",
                    {"status": order.status},
                )

            closed_at = utcnow()
            order.status = ORDER_STATUS_CLOSED
            order.version += 1
            order.updated_at = closed_at
            self.session.flush()

            self.outbox.append(
                EVENT_ORDER_CLOSED,
                order,
                {
                    "orderId": order.id,
                    "tenantId": order.tenant_id,
                    "totalCents": order.total_cents,
                    "closedAt": closed_at.isoformat(),
                },
                trace_id=trace_id,
            )
            result = ClosedOrder(id=order.id, status=order.status, version=order.version)

        logger.info("Closed order %s at version %d", result.id, result.version)
        self._signal_outbox()
        return result

    def list_orders(
        self,
        tenant_id: str,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> OrderPage:
        """Return one page of the tenant's orders, newest first.

        Raises:
            InvalidCursor: ``cursor`` was not issued by this service.
        """
        position = decode_cursor(cursor) if cursor else None
        requested = self.default_page_size if limit is None else limit
        page_size = max(1, min(requested, self.max_page_size))
        page = self.orders.list_page(tenant_id, page_size, position)
        return OrderPage(
            items=[
                OrderListItem(
                    id=order.id,
                    tenant_id=order.tenant_id,
                    status=order.status,
                    version=order.version,
                    total_cents=order.total_cents,
                    created_at=order.created_at,
                )
                for order in page.items
            ],
            next_cursor=page.next_cursor,
        )

    def _require(self, order_id: str, tenant_id: str) -> Order:
        order = self.orders.get(order_id, tenant_id)
        if order is None:
            raise self._not_found(order_id)
        return order

    @staticmethod
    def _not_found(order_id: str) -> OrderNotFound:
        return OrderNotFound(f"Order with ID {order_id} not found", {"orderId": order_id})

    def _signal_outbox(self) -> None:
        if self._on_outbox_commit is None:
            return
        try:
            self._on_outbox_commit()
        except Exception as exc:  # pragma: no cover - the relay still polls
            logger.warning("Outbox commit signal failed: %s", exc)

    def _publish_best_effort(
        self,
        event_type: str,
        tenant_id: str,
        data: dict[str, Any],
        trace_id: str | None,
    ) -> None:
        envelope = EventEnvelope(
            type=event_type,
            source=self.event_source,
            tenant_id=tenant_id,
            data=data,
            trace_id=trace_id,
        )
        try:
            self.publisher.publish(envelope)
        except Exception as exc:
            logger.warning("Failed to publish %s for tenant %s: %s", event_type, tenant_id, exc)
