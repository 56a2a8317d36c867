"""Canonical serialization and hashing helpers for request fingerprints."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json(data: Any) -> bytes:
    """Serialize ``data`` so that logically equal documents yield equal bytes.

    Object keys are sorted and whitespace is removed; key order in the
    incoming request therefore never affects the result.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def sha256_hexdigest(data: bytes) -> str:
    """Return the hexadecimal SHA-256 digest of the supplied data."""
    return hashlib.sha256(data).hexdigest()


def request_fingerprint(body: Any) -> str:
    """Return a deterministic fingerprint for a request body.

    ``None`` is treated as an empty object, matching clients that send no body.
    """
    return sha256_hexdigest(canonical_json({} if body is None else body))
