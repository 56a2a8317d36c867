"""Data access helpers for working with orders."""
from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from orders_service.db.time import utcnow
from orders_service.models.order import ORDER_STATUS_DRAFT, Order
from orders_service.services.pager import CursorPosition, Page, apply_keyset, build_page

__all__ = ["OrderRepository"]


class OrderRepository:
    """Thin wrapper around database access for order entities.

    The repository never commits; transaction boundaries belong to the caller.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get(self, order_id: str, tenant_id: str) -> Order | None:
        """Return an order visible to ``tenant_id``."""
        return self.session.scalars(
            select(Order).where(Order.id == order_id, Order.tenant_id == tenant_id)
        ).first()

    def get_for_update(self, order_id: str, tenant_id: str) -> Order | None:
        """Return an order under an exclusive row lock held until commit/rollback."""
        return self.session.scalars(
            select(Order)
            .where(Order.id == order_id, Order.tenant_id == tenant_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()

    def create_draft(self, tenant_id: str) -> Order:
        """Insert a new draft order and flush it so defaults are populated."""
        order = Order(
            tenant_id=tenant_id,
            status=ORDER_STATUS_DRAFT,
            version=1,
            total_cents=None,
        )
        self.session.add(order)
        self.session.flush()
        return order

    def update_if_version(
        self,
        order_id: str,
        tenant_id: str,
        *,
        expected_version: int,
        expected_status: str,
        values: dict[str, object],
    ) -> bool:
        """Apply ``values`` and bump the version only if the row is unchanged.

        The version and status checks run inside the UPDATE itself, so a
        concurrent writer that committed after the caller's read makes this
        return False instead of being overwritten.
        """
        result = self.session.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.tenant_id == tenant_id,
                Order.version == expected_version,
                Order.status == expected_status,
            )
            .values(**values, version=Order.version + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_page(
        self,
        tenant_id: str,
        limit: int,
        position: CursorPosition | None = None,
    ) -> Page[Order]:
        """Return one page of the tenant's orders, newest first."""
        stmt = apply_keyset(
            select(Order).where(Order.tenant_id == tenant_id),
            Order.created_at,
            Order.id,
            position,
            limit,
        )
        rows = list(self.session.scalars(stmt))
        return build_page(rows, limit, lambda order: (order.created_at, order.id))
