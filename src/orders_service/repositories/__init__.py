"""Data access layer for orders and outbox entries."""

from .order_repo import OrderRepository
from .outbox_repo import OutboxRepository

__all__ = ["OrderRepository", "OutboxRepository"]
