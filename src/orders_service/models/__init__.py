"""SQLAlchemy models for the orders service."""

from .order import ORDER_STATUS_CLOSED, ORDER_STATUS_CONFIRMED, ORDER_STATUS_DRAFT, Order
from .outbox import Outbox

__all__ = [
    "Order",
    "Outbox",
    "ORDER_STATUS_DRAFT",
    "ORDER_STATUS_CONFIRMED",
    "ORDER_STATUS_CLOSED",
]
