"""
Idempotent inbox: applies each distinct incoming event exactly once.

Per message:
  1. decode into a typed event (malformed bodies go straight to the dead-letter queue),
  2. seen-check on the inbox table, a known Id is acknowledged and dropped,
  3. one transaction: insert the inbox row, apply the business effect (which
     may append an outbox row), stamp processed_at,
  4. acknowledge after commit.
Any failure rolls the transaction back and the message is requeued. Database
outages are retried after a short pause for as long as they last; any other
failure dead-letters the message once it has been delivered
MAX_DELIVERY_ATTEMPTS times.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Type
from aio_pika.abc import AbstractIncomingMessage
from tortoise import timezone
from tortoise.exceptions import DBConnectionError, IntegrityError, OperationalError
from tortoise.transactions import in_transaction
from saga_ledger.core.config import CONSUMER_SHUTDOWN_TIMEOUT, MAX_DELIVERY_ATTEMPTS, TRANSIENT_RETRY_DELAY
from saga_ledger.events.contracts import Event
from saga_ledger.messaging.broker import DELIVERY_COUNT_HEADER, BrokerClient
from saga_ledger.models.ledger import InboxEntry

log = logging.getLogger(__name__)

EventParser = Callable[[str], Event]
EventHandler = Callable[[Event, Any], Awaitable[None]]

# Infrastructure failures that say nothing about the message itself
TRANSIENT_ERRORS = (DBConnectionError, OperationalError, asyncio.TimeoutError, ConnectionError)


def delivery_count(message: AbstractIncomingMessage) -> int:
    """How many times the broker delivered this message before (0 on first delivery)."""
    headers = message.headers or {}
    try:
        return int(headers.get(DELIVERY_COUNT_HEADER, 0))
    except (TypeError, ValueError):
        return 0


def is_transient(error: Exception) -> bool:
    # IntegrityError subclasses OperationalError but is a property of the data
    return isinstance(error, TRANSIENT_ERRORS) and not isinstance(error, IntegrityError)


class InboxConsumer:
    def __init__(
        self,
        inbox_model: Type[InboxEntry],
        connection_name: str,
        parser: EventParser,
        handler: EventHandler,
        *,
        max_delivery_attempts: int = MAX_DELIVERY_ATTEMPTS,
        transient_retry_delay: float = TRANSIENT_RETRY_DELAY,
    ) -> None:
        self.inbox_model = inbox_model
        self.connection_name = connection_name
        self.parser = parser
        self.handler = handler
        self.max_delivery_attempts = max_delivery_attempts
        self.transient_retry_delay = transient_retry_delay

        # Held while a message is being handled so stop() can wait for it
        self._lock = asyncio.Lock()
        self._broker: Optional[BrokerClient] = None
        self._queue_name: Optional[str] = None
        self._consumer_tag: Optional[str] = None

    async def start(self, broker: BrokerClient, queue_name: str) -> None:
        self._broker = broker
        self._queue_name = queue_name
        self._consumer_tag = await broker.consume(queue_name, self.handle_message)

    async def stop(self, timeout: float = CONSUMER_SHUTDOWN_TIMEOUT) -> None:
        """Stops receiving, then lets the in-flight message commit or roll back."""
        if self._broker is not None and self._consumer_tag is not None:
            await self._broker.cancel(self._queue_name, self._consumer_tag)
            self._consumer_tag = None
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            log.warning(f"In-flight message on '{self._queue_name}' did not finish within {timeout}s")
            return
        self._lock.release()

    async def handle_message(self, message: AbstractIncomingMessage) -> None:
        """Broker callback. Always ends in exactly one of ack, nack(requeue) or reject."""
        async with self._lock:
            try:
                raw = message.body.decode("utf-8")
                event = self.parser(raw)
            except ValueError as e:
                # UnicodeDecodeError and pydantic's ValidationError are both ValueErrors
                log.error(f"MALFORMED message {message.message_id} -> dead-letter: {e}")
                await message.reject(requeue=False)
                return

            message_type = message.type or type(event).__name__
            try:
                await self.process(event, message_type, raw)
            except Exception as e:
                await self._settle_failure(message, message_type, event, e)
                return

            await message.ack()

    async def _settle_failure(self, message: AbstractIncomingMessage, message_type: str, event: Event,
                              error: Exception) -> None:
        if is_transient(error):
            # Does not count against the dead-letter limit; wait so the requeue is not immediate
            log.warning(f"Transient error processing {message_type} {event.id}, requeueing: {error!r}")
            await asyncio.sleep(self.transient_retry_delay)
            await message.nack(requeue=True)
            return

        attempt = delivery_count(message) + 1
        if attempt >= self.max_delivery_attempts:
            log.error(
                f"Giving up on {message_type} {event.id} after {attempt} deliveries -> dead-letter",
                exc_info=error,
            )
            await message.reject(requeue=False)
        else:
            log.error(f"Error processing {message_type} {event.id} (delivery {attempt}), requeueing",
                      exc_info=error)
            await message.nack(requeue=True)

    async def process(self, event: Event, message_type: str, raw: str) -> bool:
        """
        Applies `event` once. Returns False when the event id was already seen.

        Raises whatever the handler or the database raises; the transaction is
        rolled back in that case and nothing of the event is visible.
        """
        # Idempotency Check
        if await self.inbox_model.filter(id=event.id).exists():
            log.info(f"Idempotency: Event {event.id} already processed.")
            return False

        try:
            async with in_transaction(self.connection_name) as conn:
                # Reserves the id against a concurrent redelivery
                entry = await self.inbox_model.create(
                    id=event.id,
                    message_type=message_type,
                    data=raw,
                    using_db=conn,
                )
                await self.handler(event, conn)
                entry.processed_at = timezone.now()
                await entry.save(update_fields=['processed_at'], using_db=conn)
        except IntegrityError:
            if await self.inbox_model.filter(id=event.id).exists():
                log.info(f"Idempotency: Event {event.id} was recorded concurrently.")
                return False
            raise

        log.info(f"Event {event.id} ({message_type}) processed.")
        return True
