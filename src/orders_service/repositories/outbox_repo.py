"""Data access helpers for the transactional outbox."""
from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from orders_service.db.time import utcnow
from orders_service.models.order import Order
from orders_service.models.outbox import Outbox

__all__ = ["OutboxRepository"]


class OutboxRepository:
    """Append and drain outbox entries within the caller's transaction."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def append(
        self,
        event_type: str,
        order: Order,
        payload: dict[str, Any],
        *,
        trace_id: str | None = None,
    ) -> Outbox:
        """Stage an outbox entry for ``order`` in the current unit of work.

        Nothing is committed here: the entry becomes durable only when the
        transaction that mutated the order commits.
        """
        entry = Outbox(
            event_type=event_type,
            order_id=order.id,
            tenant_id=order.tenant_id,
            payload=dict(payload),
            trace_id=trace_id,
            published_at=None,
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def claim_unpublished(self, limit: int) -> list[Outbox]:
        """Lock up to ``limit`` unpublished entries, oldest first.

        ``SKIP LOCKED`` lets several relay instances drain concurrently
        without handing the same row to two of them.
        """
        return list(
            self.session.scalars(
                select(Outbox)
                .where(Outbox.published_at.is_(None))
                .order_by(Outbox.created_at, Outbox.id)
                .limit(limit)
                .with_for_update(skip_locked=True)
            )
        )

    def mark_published(self, entry: Outbox) -> None:
        entry.published_at = utcnow()
        self.session.flush()

    def list_for_order(self, order_id: str) -> list[Outbox]:
        return list(
            self.session.scalars(
                select(Outbox).where(Outbox.order_id == order_id).order_by(Outbox.created_at)
            )
        )
