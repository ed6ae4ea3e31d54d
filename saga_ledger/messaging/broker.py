"""Thin aio-pika wrapper: durable queues, persistent publishes, manual-ack consumption.

Each direction of the saga gets its own durable queue on the default exchange,
so slow consumption on one side never blocks the other. Work queues are quorum
queues with a dead-letter route to ``<queue>.dead_letter``; quorum queues also
stamp ``x-delivery-count`` on redeliveries, which the inbox consumer uses to
bound retries of messages that keep failing.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Union
from uuid import UUID

import aio_pika
from aio_pika.abc import (
    AbstractChannel,
    AbstractIncomingMessage,
    AbstractQueue,
    AbstractRobustConnection,
)

from saga_ledger.core.config import (
    BROKER_CONNECT_RETRIES,
    BROKER_CONNECT_RETRY_DELAY,
    RABBITMQ_URL,
)

log = logging.getLogger(__name__)

MessageCallback = Callable[[AbstractIncomingMessage], Awaitable[None]]

DELIVERY_COUNT_HEADER = "x-delivery-count"


def dead_letter_queue_name(queue_name: str) -> str:
    return f"{queue_name}.dead_letter"


def work_queue_arguments(queue_name: str) -> Dict[str, str]:
    return {
        "x-queue-type": "quorum",
        "x-dead-letter-exchange": "",
        "x-dead-letter-routing-key": dead_letter_queue_name(queue_name),
    }


class BrokerClient:
    """One robust connection and one channel per service process."""

    def __init__(
        self,
        url: str = RABBITMQ_URL,
        *,
        prefetch_count: int = 1,
        connect_retries: int = BROKER_CONNECT_RETRIES,
        connect_retry_delay: float = BROKER_CONNECT_RETRY_DELAY,
    ) -> None:
        self.url = url
        self.prefetch_count = prefetch_count
        self.connect_retries = connect_retries
        self.connect_retry_delay = connect_retry_delay

        self._connection: Optional[AbstractRobustConnection] = None
        self._channel: Optional[AbstractChannel] = None
        self._queues: Dict[str, AbstractQueue] = {}

    @property
    def channel(self) -> AbstractChannel:
        if self._channel is None:
            raise RuntimeError("Broker client is not connected")
        return self._channel

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    async def connect(self) -> None:
        """Connects, retrying while the broker is still starting up."""
        for attempt in range(1, self.connect_retries + 1):
            try:
                self._connection = await aio_pika.connect_robust(self.url)
                break
            except (OSError, aio_pika.exceptions.AMQPConnectionError) as e:
                if attempt == self.connect_retries:
                    raise
                log.warning(f"RabbitMQ not ready ({e}), retry {attempt}/{self.connect_retries}")
                await asyncio.sleep(self.connect_retry_delay)

        self._channel = await self._connection.channel()
        # One unacknowledged message in flight per consumer
        await self._channel.set_qos(prefetch_count=self.prefetch_count)
        log.info("Connected to RabbitMQ.")

    async def declare_queue(self, queue_name: str) -> AbstractQueue:
        """Declares the work queue and its dead-letter queue. Idempotent."""
        if queue_name in self._queues:
            return self._queues[queue_name]

        await self.channel.declare_queue(dead_letter_queue_name(queue_name), durable=True)
        queue = await self.channel.declare_queue(
            queue_name,
            durable=True,
            exclusive=False,
            auto_delete=False,
            arguments=work_queue_arguments(queue_name),
        )
        self._queues[queue_name] = queue
        return queue

    async def publish(
        self,
        queue_name: str,
        body: Union[str, bytes],
        *,
        message_id: Union[str, UUID],
        message_type: str,
    ) -> None:
        """
        Publishes a persistent JSON message to `queue_name`.

        The channel runs with publisher confirms, so returning means the broker
        has taken responsibility for the message.
        """
        if isinstance(body, str):
            body = body.encode("utf-8")
        message = aio_pika.Message(
            body=body,
            message_id=str(message_id),
            type=message_type,
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
        )
        await self.channel.default_exchange.publish(message, routing_key=queue_name)

    async def consume(self, queue_name: str, callback: MessageCallback) -> str:
        """Starts manual-ack consumption; returns the consumer tag."""
        queue = await self.declare_queue(queue_name)
        consumer_tag = await queue.consume(callback, no_ack=False)
        log.info(f"Listening on '{queue_name}'")
        return consumer_tag

    async def cancel(self, queue_name: str, consumer_tag: str) -> None:
        queue = self._queues.get(queue_name)
        if queue is not None:
            await queue.cancel(consumer_tag)

    async def close(self) -> None:
        if self._connection is not None and not self._connection.is_closed:
            await self._connection.close()
        self._connection = None
        self._channel = None
        self._queues.clear()
        log.info("RabbitMQ connection closed.")
