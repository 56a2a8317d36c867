"""SQLAlchemy model for the transactional outbox."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from orders_service.db.session import Base
from orders_service.db.time import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class Outbox(Base):
    """Event recorded in the same transaction as the order change it reports.

    Rows are append-only; the relay only ever sets ``published_at``.
    """

    __tablename__ = "outbox"
    __table_args__ = (
        # Relay scan: pending rows, oldest first.
        Index("ix_outbox_pending", "published_at", "created_at", "id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    event_type: Mapped[str] = mapped_column(Text, nullable=False, index=True)  # e.g. 'orders.closed'
    order_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    trace_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
