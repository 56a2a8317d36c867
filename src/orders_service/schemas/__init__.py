"""Pydantic schemas for the orders API."""

from .common import ErrorBody, ErrorDetail
from .order import (
    ClosedOrder,
    ConfirmedOrder,
    ConfirmOrderRequest,
    OrderListItem,
    OrderPage,
    OrderSummary,
)

__all__ = [
    "ErrorBody",
    "ErrorDetail",
    "ClosedOrder",
    "ConfirmedOrder",
    "ConfirmOrderRequest",
    "OrderListItem",
    "OrderPage",
    "OrderSummary",
]
