"""Redis-backed idempotency records for the create-order command."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Final

import redis

from orders_service.core.errors import IdempotencyRequestInProgress

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS: Final[int] = 60 * 60
DEFAULT_PENDING_TTL_SECONDS: Final[int] = 30
_CLAIM_ATTEMPTS: Final[int] = 2


@dataclass(frozen=True)
class IdempotencyRecord:
    """Stored value for ``(tenant, key)``.

    ``response`` is None while the first request holding the key is still
    running.
    """

    body_hash: str
    response: dict[str, Any] | None

    @property
    def completed(self) -> bool:
        return self.response is not None


class IdempotencyStore:
    """Tenant-scoped idempotency cache.

    The first request for a key claims it with ``SET NX`` before doing any
    work, so concurrent first-time callers cannot both create an order.
    A claim lives for ``pending_ttl_seconds`` only, so a request that dies
    before completing frees the key quickly. Completed records expire after
    ``ttl_seconds``; a key reused after expiry is treated as new.
    """

    def __init__(
        self,
        client: redis.Redis,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        pending_ttl_seconds: int = DEFAULT_PENDING_TTL_SECONDS,
    ) -> None:
        self._redis = client
        self.ttl_seconds = int(ttl_seconds)
        self.pending_ttl_seconds = min(int(pending_ttl_seconds), self.ttl_seconds)

    @staticmethod
    def _key(tenant_id: str, idempotency_key: str) -> str:
        return f"idemp:{tenant_id}:{idempotency_key}"

    @staticmethod
    def _dump(body_hash: str, response: dict[str, Any] | None) -> str:
        return json.dumps({"bodyHash": body_hash, "response": response})

    @staticmethod
    def _load(raw: str | bytes) -> IdempotencyRecord:
        parsed = json.loads(raw)
        return IdempotencyRecord(body_hash=parsed["bodyHash"], response=parsed.get("response"))

    def get(self, tenant_id: str, idempotency_key: str) -> IdempotencyRecord | None:
        raw = self._redis.get(self._key(tenant_id, idempotency_key))
        if raw is None:
            return None
        return self._load(raw)

    def claim(self, tenant_id: str, idempotency_key: str, body_hash: str) -> IdempotencyRecord | None:
        """Reserve the key for the caller.

        Returns:
            None when the caller now owns the key and must perform the
            command; otherwise the record already stored under the key.
        """
        key = self._key(tenant_id, idempotency_key)
        pending = self._dump(body_hash, None)
        for _ in range(_CLAIM_ATTEMPTS):
            if self._redis.set(key, pending, nx=True, ex=self.pending_ttl_seconds):
                return None
            raw = self._redis.get(key)
            if raw is not None:
                return self._load(raw)
            # Expired between SET NX and GET; try to claim again.
        raise IdempotencyRequestInProgress(
            "Idempotency key is busy, retry the request",
            {"idempotencyKey": idempotency_key},
        )

    def complete(
        self,
        tenant_id: str,
        idempotency_key: str,
        body_hash: str,
        response: dict[str, Any],
    ) -> None:
        """Store the final response for a claimed key and extend it to the full TTL."""
        self._redis.set(
            self._key(tenant_id, idempotency_key),
            self._dump(body_hash, response),
            ex=self.ttl_seconds,
        )

    def release(self, tenant_id: str, idempotency_key: str) -> None:
        """Drop a claim whose command failed so the client can retry with the same key."""
        try:
            self._redis.delete(self._key(tenant_id, idempotency_key))
        except redis.RedisError as exc:
            # The claim still expires with its TTL.
            logger.warning("Failed to release idempotency key %s: %s", idempotency_key, exc)
