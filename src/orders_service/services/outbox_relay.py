"""Background relay draining the transactional outbox.

This module provides the OutboxRelayWorker class that forwards unpublished
outbox entries to an events publisher and marks them published once the
publisher accepted them. Delivery is at-least-once: an entry whose publish
succeeded but whose commit failed is sent again on the next cycle, and
consumers deduplicate on the envelope id (which is the outbox entry id).
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from orders_service.db.time import as_utc
from orders_service.models.outbox import Outbox
from orders_service.repositories.outbox_repo import OutboxRepository
from orders_service.services.events import EventEnvelope, EventsPublisher

# Configure logger for this module
logger = logging.getLogger(__name__)


def envelope_for(entry: Outbox, source: str) -> EventEnvelope:
    """Wrap an outbox entry in the envelope consumers receive."""
    return EventEnvelope(
        id=entry.id,
        type=entry.event_type,
        source=source,
        tenant_id=entry.tenant_id,
        time=as_utc(entry.created_at).isoformat(),
        data=dict(entry.payload),
        trace_id=entry.trace_id,
    )


class OutboxRelayWorker:
    """Periodically publishes pending outbox entries.

    Several service instances may run a relay against the same database;
    entries are claimed with ``FOR UPDATE SKIP LOCKED`` so each one is handed
    to a single relay at a time.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        publisher: EventsPublisher,
        *,
        source: str = "orders-service",
        batch_size: int = 50,
        interval_seconds: float = 1.0,
    ) -> None:
        """Initialize the relay.

        Args:
            session_factory: Factory producing sessions for each drain cycle.
            publisher: Destination for outbox events.
            source: ``source`` attribute stamped on envelopes.
            batch_size: Maximum entries claimed per cycle.
            interval_seconds: Idle delay between cycles.
        """
        self.session_factory = session_factory
        self.publisher = publisher
        self.source = source
        self.batch_size = max(1, int(batch_size))
        self.interval_seconds = max(0.1, float(interval_seconds))
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()
        self._wakeup = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None

    async def start(self) -> None:
        """Start the background relay loop."""
        if self._task is None or self._task.done():
            self._loop = asyncio.get_running_loop()
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background relay loop."""
        if self._task is None:
            return

        self._stopping.set()
        self._wakeup.set()
        await self._task
        self._task = None

    def notify(self) -> None:
        """Wake the relay early after a commit appended outbox entries.

        Safe to call from any thread; a no-op while the relay is not running.
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._wakeup.set)

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                published = await asyncio.to_thread(self.drain_once)
            except SQLAlchemyError as e:
                logger.warning("OutboxRelayWorker encountered database error: %s", e)
                published = 0

            if published >= self.batch_size:
                # A full batch likely means more is waiting.
                continue

            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                pass
            self._wakeup.clear()

    def drain_once(self) -> int:
        """Publish one batch of pending entries and return how many were published.

        Publishing stops at the first failure so entries of the same order
        keep their relative order; the remaining entries stay pending.
        """
        published = 0
        with self.session_factory() as db:
            repo = OutboxRepository(db)
            entries = repo.claim_unpublished(self.batch_size)
            logger.debug("Found %d pending outbox entries", len(entries))

            for entry in entries:
                try:
                    self.publisher.publish(envelope_for(entry, self.source))
                except Exception as exc:
                    logger.warning(
                        "Failed to publish outbox entry %s (%s): %s",
                        entry.id,
                        entry.event_type,
                        exc,
                    )
                    break
                repo.mark_published(entry)
                published += 1

            db.commit()

        if published:
            logger.info("Relayed %d outbox entries", published)
        return published
