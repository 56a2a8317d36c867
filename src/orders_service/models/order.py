"""SQLAlchemy model for tenant-owned orders."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from orders_service.db.session import Base
from orders_service.db.time import utcnow

# Lifecycle states; transitions only move draft -> confirmed -> closed.
ORDER_STATUS_DRAFT = "draft"
ORDER_STATUS_CONFIRMED = "confirmed"
ORDER_STATUS_CLOSED = "closed"


def _new_id() -> str:
    return str(uuid.uuid4())


class Order(Base):
    """A business order scoped to exactly one tenant.

    ``version`` starts at 1 and is bumped by exactly one on every accepted
    mutation; it doubles as the optimistic-concurrency fence for confirm.
    ``total_cents`` stays null while the order is a draft.
    """

    __tablename__ = "orders"
    __table_args__ = (Index("ix_orders_tenant_created_id", "tenant_id", "created_at", "id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=ORDER_STATUS_DRAFT)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
