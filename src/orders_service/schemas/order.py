"""Order-related Pydantic schemas.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from orders_service.db.time import as_utc


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderSummary(_CamelModel):
    """Response returned by create; also the value cached for idempotent replays."""

    id: str
    tenant_id: str
    status: str
    version: int
    created_at: datetime

    @field_serializer("created_at")
    def _serialize_created_at(self, value: datetime) -> str:
        return as_utc(value).isoformat()


class ConfirmOrderRequest(_CamelModel):
    """Schema for confirming a draft order."""

    total_cents: int = Field(..., ge=0, description="Order total in cents")


class ConfirmedOrder(_CamelModel):
    id: str
    status: str
    version: int
    total_cents: int | None


class ClosedOrder(_CamelModel):
    id: str
    status: str
    version: int


class OrderListItem(_CamelModel):
    """Schema for order information returned by the list endpoint."""

    id: str
    tenant_id: str
    status: str
    version: int
    total_cents: int | None
    created_at: datetime

    @field_serializer("created_at")
    def _serialize_created_at(self, value: datetime) -> str:
        return as_utc(value).isoformat()

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class OrderPage(_CamelModel):
    items: list[OrderListItem]
    next_cursor: str | None = None
