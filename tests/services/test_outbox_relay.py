"""Tests for the outbox relay worker."""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import inspect, select

from orders_service.models import Outbox
from orders_service.services.outbox_relay import OutboxRelayWorker

TENANT = "tenant-a"


def _closed_order(order_service) -> str:
    created = order_service.create_draft(TENANT, "k1", {})
    order_service.confirm(created.id, TENANT, expected_version=1, total_cents=500)
    order_service.close(created.id, TENANT)
    return created.id


def _unpublished(session_factory) -> list[Outbox]:
    with session_factory() as db:
        return list(db.scalars(select(Outbox).where(Outbox.published_at.is_(None))))


def test_drain_once_publishes_and_marks_entries(order_service, session_factory, publisher) -> None:
    order_id = _closed_order(order_service)
    publisher.envelopes.clear()
    relay = OutboxRelayWorker(session_factory, publisher, source="orders-test")

    published = relay.drain_once()

    assert published == 2
    assert publisher.types() == ["orders.confirmed", "orders.closed"]
    assert _unpublished(session_factory) == []

    with session_factory() as db:
        entries = {row.id: row for row in db.scalars(select(Outbox))}
    for envelope in publisher.envelopes:
        entry = entries[envelope.id]
        assert envelope.source == "orders-test"
        assert envelope.tenant_id == TENANT
        assert envelope.data == entry.payload
        assert envelope.data["orderId"] == order_id


def test_drain_once_skips_already_published(order_service, session_factory, publisher) -> None:
    _closed_order(order_service)
    relay = OutboxRelayWorker(session_factory, publisher)
    relay.drain_once()
    publisher.envelopes.clear()

    assert relay.drain_once() == 0
    assert publisher.envelopes == []


def test_drain_once_leaves_entries_pending_when_publish_fails(
    order_service, session_factory, publisher
) -> None:
    _closed_order(order_service)
    publisher.fail = True
    relay = OutboxRelayWorker(session_factory, publisher)

    assert relay.drain_once() == 0
    assert len(_unpublished(session_factory)) == 2

    publisher.fail = False
    assert relay.drain_once() == 2
    assert _unpublished(session_factory) == []


def test_drain_once_respects_batch_size(order_service, session_factory, publisher) -> None:
    _closed_order(order_service)
    relay = OutboxRelayWorker(session_factory, publisher, batch_size=1)

    assert relay.drain_once() == 1
    assert len(_unpublished(session_factory)) == 1


@pytest.mark.asyncio
async def test_relay_loop_publishes_after_notify(order_service, session_factory, publisher) -> None:
    relay = OutboxRelayWorker(session_factory, publisher, interval_seconds=30)
    await relay.start()
    try:
        _closed_order(order_service)
        publisher.envelopes.clear()
        relay.notify()

        for _ in range(100):
            if len(publisher.envelopes) == 2:
                break
            await asyncio.sleep(0.02)
    finally:
        await relay.stop()

    assert publisher.types() == ["orders.confirmed", "orders.closed"]


def test_notify_before_start_is_a_no_op(session_factory, publisher) -> None:
    relay = OutboxRelayWorker(session_factory, publisher)

    relay.notify()


def test_envelopes_carry_the_trace_id_of_the_originating_request(
    order_service, session_factory, publisher
) -> None:
    created = order_service.create_draft(TENANT, "k1", {})
    order_service.confirm(created.id, TENANT, expected_version=1, total_cents=5, trace_id="req-7")
    publisher.envelopes.clear()

    OutboxRelayWorker(session_factory, publisher).drain_once()

    assert [envelope.trace_id for envelope in publisher.envelopes] == ["req-7"]
    assert publisher.envelopes[0].to_dict()["traceId"] == "req-7"


def test_pending_scan_is_backed_by_an_index(engine) -> None:
    indexes = {index["name"]: index["column_names"] for index in inspect(engine).get_indexes("outbox")}

    assert indexes["ix_outbox_pending"] == ["published_at", "created_at", "id"]
