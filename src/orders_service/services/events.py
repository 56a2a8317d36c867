"""Event envelopes and publishers.

The lifecycle engine emits best-effort notifications through an
:class:`EventsPublisher`; durable delivery of state changes goes through the
outbox and :mod:`orders_service.services.outbox_relay`.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

from orders_service.db.time import utcnow

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1"

EVENT_ORDER_CREATED = "orders.created"
EVENT_ORDER_CONFIRMED = "orders.confirmed"
EVENT_ORDER_CLOSED = "orders.closed"


@dataclass(frozen=True)
class EventEnvelope:
    """Wire format shared by every event the service emits."""

    type: str
    source: str
    tenant_id: str
    data: dict[str, Any]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    time: str = field(default_factory=lambda: utcnow().isoformat())
    schema_version: str = SCHEMA_VERSION
    trace_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        raw = asdict(self)
        return {
            "id": raw["id"],
            "type": raw["type"],
            "source": raw["source"],
            "tenantId": raw["tenant_id"],
            "time": raw["time"],
            "schemaVersion": raw["schema_version"],
            "traceId": raw["trace_id"],
            "data": raw["data"],
        }


class EventsPublisher(Protocol):
    """Anything able to hand an envelope to a message bus."""

    def publish(self, envelope: EventEnvelope) -> None: ...


class LoggingEventsPublisher:
    """Publisher that writes envelopes to the log.

    Stands in for a broker client in local runs; the relay and the lifecycle
    engine only depend on the :class:`EventsPublisher` protocol.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def publish(self, envelope: EventEnvelope) -> None:
        self._log.info(
            "Publishing event %s for tenant %s: %s",
            envelope.type,
            envelope.tenant_id,
            json.dumps(envelope.to_dict(), sort_keys=True),
        )
