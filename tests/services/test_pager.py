"""Tests for cursor pagination."""

from __future__ import annotations

import base64
import json
from datetime import UTC, datetime, timedelta

import pytest

from orders_service.core.errors import InvalidCursor
from orders_service.models import Order
from orders_service.repositories.order_repo import OrderRepository
from orders_service.services.pager import build_page, decode_cursor, encode_cursor

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"


def _b64(document: object) -> str:
    return base64.urlsafe_b64encode(json.dumps(document).encode()).decode().rstrip("=")


def test_cursor_round_trip() -> None:
    created_at = datetime(2025, 3, 1, 12, 30, 15, 123456, tzinfo=UTC)

    position = decode_cursor(encode_cursor(created_at, "order-1"))

    assert position.created_at == created_at
    assert position.id == "order-1"


def test_cursor_treats_naive_datetimes_as_utc() -> None:
    naive = datetime(2025, 3, 1, 12, 30, 15)

    position = decode_cursor(encode_cursor(naive, "order-1"))

    assert position.created_at == naive.replace(tzinfo=UTC)


@pytest.mark.parametrize(
    "token",
    [
        "",
        "not base64!",
        _b64([1, 2]),
        _b64({"createdAt": "2025-03-01T12:00:00+00:00"}),
        _b64({"createdAt": "2025-03-01T12:00:00+00:00", "id": "x", "extra": 1}),
        _b64({"createdAt": "yesterday", "id": "x"}),
        _b64({"createdAt": "2025-03-01T12:00:00", "id": "x"}),
        _b64({"createdAt": "2025-03-01T12:00:00+00:00", "id": ""}),
        _b64({"createdAt": 1700000000, "id": "x"}),
        base64.urlsafe_b64encode(b"\xff\xfe").decode(),
    ],
)
def test_decode_rejects_tokens_it_did_not_issue(token: str) -> None:
    with pytest.raises(InvalidCursor):
        decode_cursor(token)


def test_decode_rejects_alternate_spellings_of_an_issued_cursor() -> None:
    created_at = datetime(2025, 3, 1, 12, 30, 15, 123456, tzinfo=UTC)
    issued = encode_cursor(created_at, "order-1")
    document = {"createdAt": created_at.isoformat(), "id": "order-1"}
    reordered = json.dumps(
        {"id": "order-1", "createdAt": created_at.isoformat()}, separators=(",", ":")
    )

    variants = [
        issued + "=" * (-len(issued) % 4 or 4),
        _b64(document),
        base64.urlsafe_b64encode(reordered.encode()).decode().rstrip("="),
    ]

    assert decode_cursor(issued).id == "order-1"
    for token in variants:
        assert token != issued
        with pytest.raises(InvalidCursor):
            decode_cursor(token)


def test_build_page_detects_next_page_from_lookahead_row() -> None:
    base = datetime(2025, 1, 1, tzinfo=UTC)
    rows = [(base - timedelta(seconds=i), f"id-{i}") for i in range(4)]

    page = build_page(rows, 3, lambda row: row)

    assert page.items == rows[:3]
    assert page.next_cursor is not None
    assert decode_cursor(page.next_cursor).id == "id-2"


def test_build_page_without_more_rows_has_no_cursor() -> None:
    base = datetime(2025, 1, 1, tzinfo=UTC)
    rows = [(base, "id-0"), (base, "id-1")]

    page = build_page(rows, 2, lambda row: row)

    assert page.next_cursor is None


def test_list_orders_pages_through_25_orders(order_service, db_session) -> None:
    for i in range(25):
        order_service.create_draft(TENANT, f"key-{i}", {"n": i})
    order_service.create_draft(OTHER_TENANT, "key-x", {})

    expected = sorted(
        (o for o in db_session.query(Order).filter(Order.tenant_id == TENANT)),
        key=lambda o: (o.created_at, o.id),
        reverse=True,
    )

    first = order_service.list_orders(TENANT, limit=20)
    assert len(first.items) == 20
    assert first.next_cursor is not None

    second = order_service.list_orders(TENANT, limit=20, cursor=first.next_cursor)
    assert len(second.items) == 5
    assert second.next_cursor is None

    listed = [item.id for item in first.items + second.items]
    assert listed == [o.id for o in expected]
    assert len(set(listed)) == 25
    assert all(item.tenant_id == TENANT for item in first.items + second.items)


def test_list_orders_breaks_timestamp_ties_by_id(db_session, order_service) -> None:
    same_instant = datetime(2025, 5, 5, 8, 0, tzinfo=UTC)
    ids = [f"00000000-0000-0000-0000-00000000000{i}" for i in range(5)]
    for order_id in ids:
        db_session.add(
            Order(
                id=order_id,
                tenant_id=TENANT,
                status="draft",
                version=1,
                created_at=same_instant,
                updated_at=same_instant,
            )
        )
    db_session.commit()

    seen: list[str] = []
    cursor = None
    while True:
        page = order_service.list_orders(TENANT, limit=2, cursor=cursor)
        seen.extend(item.id for item in page.items)
        cursor = page.next_cursor
        if cursor is None:
            break

    assert seen == sorted(ids, reverse=True)


def test_list_orders_uses_default_page_size(order_service) -> None:
    for i in range(21):
        order_service.create_draft(TENANT, f"key-{i}", {})

    page = order_service.list_orders(TENANT)

    assert len(page.items) == 20
    assert page.next_cursor is not None


def test_list_orders_never_widens_a_zero_limit(order_service) -> None:
    for i in range(3):
        order_service.create_draft(TENANT, f"key-{i}", {})

    page = order_service.list_orders(TENANT, limit=0)

    assert len(page.items) == 1
    assert page.next_cursor is not None


def test_list_orders_rejects_malformed_cursor(order_service) -> None:
    with pytest.raises(InvalidCursor):
        order_service.list_orders(TENANT, cursor="garbage")


def test_repository_list_page_on_empty_tenant(db_session) -> None:
    page = OrderRepository(db_session).list_page(TENANT, 20)

    assert page.items == []
    assert page.next_cursor is None
