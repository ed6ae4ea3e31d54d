import asyncio
import contextlib
import logging
from datetime import timedelta
from typing import Optional, Type
from tortoise import timezone
from saga_ledger.core.config import BATCH_SIZE, OUTBOX_PURGE_INTERVAL, OUTBOX_RETENTION_DAYS, POLLING_INTERVAL
from saga_ledger.events.outbox_utility import purge_processed_events
from saga_ledger.messaging.broker import BrokerClient
from saga_ledger.models.ledger import OutboxEntry

log = logging.getLogger(__name__)

# Keep the stored error short; the full traceback goes to the log
MAX_ERROR_LENGTH = 500


async def publish_pending_events(
    outbox_model: Type[OutboxEntry],
    broker: BrokerClient,
    queue_name: str,
    batch_size: int = BATCH_SIZE,
) -> int:
    """
    Queries the Outbox table for unpublished events and publishes them, oldest first.

    A row is marked processed only after the broker accepted it. A failed row
    stays pending and is retried on the next poll; a crash between publish and
    mark makes the next poll publish it again, which the receiving inbox absorbs.
    Returns the number of rows published.
    """
    events = await outbox_model.filter(processed_at__isnull=True).order_by('created_at').limit(batch_size)

    published = 0
    for event in events:
        try:
            # 1. Hand the event to the broker
            await broker.publish(queue_name, event.data, message_id=event.id, message_type=event.event_type)
        except Exception as e:
            # 2. Record the failure and move on, the row stays pending
            event.attempts += 1
            event.last_error = str(e)[:MAX_ERROR_LENGTH]
            await event.save(update_fields=['attempts', 'last_error'])
            log.warning(f"Failed to publish {event.event_type} {event.id} (attempt {event.attempts}): {e}")
            continue

        # 3. Mark the event as published on success
        event.processed_at = timezone.now()
        await event.save(update_fields=['processed_at'])
        published += 1
        log.debug(f"Published {event.event_type} {event.id} to '{queue_name}'")

    if published:
        log.info(f"Published {published}/{len(events)} outbox events to '{queue_name}'.")
    return published


class OutboxPublisher:
    """
    Background task draining one service's outbox into one queue.

    Polls immediately again after a full batch, otherwise waits
    `poll_interval` seconds. `stop()` is observed between poll cycles.
    """

    def __init__(
        self,
        outbox_model: Type[OutboxEntry],
        broker: BrokerClient,
        queue_name: str,
        *,
        batch_size: int = BATCH_SIZE,
        poll_interval: float = POLLING_INTERVAL,
        retention_days: int = OUTBOX_RETENTION_DAYS,
        purge_interval: float = OUTBOX_PURGE_INTERVAL,
    ) -> None:
        self.outbox_model = outbox_model
        self.broker = broker
        self.queue_name = queue_name
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.retention_days = retention_days
        self.purge_interval = purge_interval

        self._stopping = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._last_purge: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            log.warning("Outbox publisher already running")
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self.run())
        log.info(f"--- Outbox Publisher for '{self.queue_name}' Started ---")

    async def stop(self, timeout: float = 30.0) -> None:
        """Signals the loop and waits for the current cycle to finish."""
        if self._task is None:
            return
        self._stopping.set()
        try:
            await asyncio.wait_for(self._task, timeout=timeout)
        except asyncio.TimeoutError:
            log.warning("Outbox publisher shutdown timed out, cancelling")
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        log.info(f"Outbox publisher for '{self.queue_name}' stopped.")

    async def run(self) -> None:
        """Main loop for the publisher."""
        while not self._stopping.is_set():
            published = 0
            try:
                published = await publish_pending_events(
                    self.outbox_model, self.broker, self.queue_name, self.batch_size
                )
                await self.purge_if_due()
            except Exception:
                # Database unreachable and the like: the next cycle retries
                log.exception("Outbox publisher encountered an error")

            if published >= self.batch_size:
                # More events might be waiting, but yield to other tasks
                await asyncio.sleep(0)
                continue
            await self._wait(self.poll_interval)

    async def purge_if_due(self) -> int:
        if self.retention_days <= 0:
            return 0
        loop_time = asyncio.get_running_loop().time()
        if self._last_purge is not None and loop_time - self._last_purge < self.purge_interval:
            return 0
        self._last_purge = loop_time
        cutoff = timezone.now() - timedelta(days=self.retention_days)
        deleted = await purge_processed_events(self.outbox_model, cutoff)
        if deleted:
            log.info(f"Purged {deleted} processed outbox events older than {self.retention_days} days.")
        return deleted

    async def _wait(self, seconds: float) -> None:
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
