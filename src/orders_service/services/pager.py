"""Keyset (cursor) pagination helpers.

A cursor is the ``(created_at, id)`` pair of the last row of a page, wrapped
as unpadded URL-safe base64 of a canonical JSON document. Rows are ordered
``created_at DESC, id DESC``; the id tie-break keeps the order total when
several rows share a timestamp.
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, and_, or_
from sqlalchemy.orm import InstrumentedAttribute

from orders_service.core.errors import InvalidCursor
from orders_service.db.time import as_utc
from orders_service.utils.hash import canonical_json

T = TypeVar("T")

_CURSOR_KEYS = frozenset({"createdAt", "id"})


@dataclass(frozen=True)
class CursorPosition:
    """Decoded cursor: the sort key of the last row already returned."""

    created_at: datetime
    id: str


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    next_cursor: str | None


def encode_cursor(created_at: datetime, row_id: str) -> str:
    """Return an opaque token positioned right after ``(created_at, row_id)``."""
    document = {"createdAt": as_utc(created_at).isoformat(), "id": row_id}
    return base64.urlsafe_b64encode(canonical_json(document)).decode("ascii").rstrip("=")


def decode_cursor(token: str) -> CursorPosition:
    """Decode a token produced by :func:`encode_cursor`.

    Raises:
        InvalidCursor: If the token is not one this module issued.
    """
    padding = "=" * (-len(token) % 4)
    try:
        raw = base64.b64decode(token + padding, altchars=b"-_", validate=True)
        document = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as err:
        raise InvalidCursor("Cursor is malformed") from err

    if not isinstance(document, dict) or set(document) != _CURSOR_KEYS:
        raise InvalidCursor("Cursor is malformed")

    created_at, row_id = document["createdAt"], document["id"]
    if not isinstance(created_at, str) or not isinstance(row_id, str) or not row_id:
        raise InvalidCursor("Cursor is malformed")

    try:
        parsed = datetime.fromisoformat(created_at)
    except ValueError as err:
        raise InvalidCursor("Cursor is malformed") from err
    if parsed.tzinfo is None:
        raise InvalidCursor("Cursor is malformed")

    if encode_cursor(parsed, row_id) != token:
        # Same document, different spelling: not a token this module issued.
        raise InvalidCursor("Cursor is malformed")

    return CursorPosition(created_at=as_utc(parsed), id=row_id)


def apply_keyset(
    stmt: Select[Any],
    created_column: InstrumentedAttribute[datetime],
    id_column: InstrumentedAttribute[str],
    position: CursorPosition | None,
    limit: int,
) -> Select[Any]:
    """Order ``stmt`` descending, resume after ``position`` and fetch ``limit + 1`` rows.

    The extra row tells :func:`build_page` whether another page exists
    without issuing a count query.
    """
    if position is not None:
        stmt = stmt.where(
            or_(
                created_column < position.created_at,
                and_(created_column == position.created_at, id_column < position.id),
            )
        )
    return stmt.order_by(created_column.desc(), id_column.desc()).limit(limit + 1)


def build_page(
    rows: Sequence[T],
    limit: int,
    sort_key: Callable[[T], tuple[datetime, str]],
) -> Page[T]:
    """Trim the look-ahead row and attach a cursor when more rows remain."""
    has_more = len(rows) > limit
    items = list(rows[:limit])
    next_cursor = None
    if has_more and items:
        created_at, row_id = sort_key(items[-1])
        next_cursor = encode_cursor(created_at, row_id)
    return Page(items=items, next_cursor=next_cursor)
